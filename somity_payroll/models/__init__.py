"""
Somity Payroll - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from somity_payroll.models.base import BaseModel, TimestampMixin
from somity_payroll.models.payroll import (
    AccountOpening,
    BookTier,
    Center,
    CollectionRecord,
    CollectionTarget,
    CommissionRate,
    Employee,
    SalaryEntry,
    SalarySheet,
)

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "Employee",
    "Center",
    "CollectionRecord",
    "AccountOpening",
    "SalarySheet",
    "SalaryEntry",
    "CommissionRate",
    "BookTier",
    "CollectionTarget",
]
