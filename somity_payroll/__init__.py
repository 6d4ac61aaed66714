"""
Somity Payroll

Commission, bonus, deduction and manager incentive engine for
microfinance field officers, with a salary sheet workflow and a
FastAPI surface.
"""

__version__ = "0.1.0"
