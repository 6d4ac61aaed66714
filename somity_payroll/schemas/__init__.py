"""
Somity Payroll - Schemas Package

Pydantic schemas for the payroll domain and the API.
"""
