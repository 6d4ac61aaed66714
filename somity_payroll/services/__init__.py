"""
Somity Payroll - Services Package

Business logic services.
"""
