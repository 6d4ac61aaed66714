"""
Somity Payroll - Utilities Package
"""
