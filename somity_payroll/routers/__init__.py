"""
Somity Payroll - Routers Package

FastAPI route handlers.
"""
