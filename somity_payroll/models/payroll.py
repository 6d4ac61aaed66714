"""
Somity Payroll - Payroll Models

Tables backing the payroll snapshots:
- employees, centers (master data)
- collection_records, account_openings (facts)
- salary_sheets, salary_entries (monthly sheets)
- commission_rates, book_tiers, collection_targets (configuration)

Collection records keep the ownership type recorded at creation time,
but it is never used for pay; ownership is resolved on read.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, JSON, Numeric, String, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from somity_payroll.models.base import BaseModel


MONEY = Numeric(precision=15, scale=2)
RATE = Numeric(precision=7, scale=2)


# ===========================================
# MASTER DATA
# ===========================================

class Employee(BaseModel):
    """Field officer or branch staff member."""

    __tablename__ = "employees"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    designation: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    base_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    commission_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    is_branch_manager: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, name={self.name}, branch={self.branch_id})>"


class Center(BaseModel):
    """Collection point registered to a branch."""

    __tablename__ = "centers"

    center_code: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    center_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)
    assigned_employee_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    # Explicit OFFICE marks a center as office business regardless of assignment
    type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    __table_args__ = (
        UniqueConstraint("branch_id", "center_code", name="uq_center_branch_code"),
    )


# ===========================================
# FACTS
# ===========================================

class CollectionRecord(BaseModel):
    """A collection made at a center."""

    __tablename__ = "collection_records"

    employee_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    center_code: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    loan_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    collected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    recorded_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)


class AccountOpening(BaseModel):
    """Passbook opened by an employee; credited to at most one salary sheet."""

    __tablename__ = "account_openings"

    account_code: Mapped[str] = mapped_column(String(64), nullable=False)
    # Lower-cased code; account codes are unique regardless of case
    normalized_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)
    term: Mapped[Decimal] = mapped_column(Numeric(precision=5, scale=2), nullable=False)
    collection_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    opening_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_counted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    counted_month: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    salary_sheet_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("salary_sheets.id", ondelete="SET NULL"),
        nullable=True,
    )


# ===========================================
# SALARY SHEETS
# ===========================================

class SalarySheet(BaseModel):
    """Monthly salary sheet covering one or more branches."""

    __tablename__ = "salary_sheets"

    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    branch_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    entries: Mapped[List["SalaryEntry"]] = relationship(
        "SalaryEntry",
        back_populates="sheet",
        cascade="all, delete-orphan",
    )


class SalaryEntry(BaseModel):
    """One employee's line on a salary sheet."""

    __tablename__ = "salary_entries"

    salary_sheet_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("salary_sheets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )

    basic_salary: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    commission_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Collections
    own_somity_count: Mapped[int] = mapped_column(Integer, default=0)
    own_somity_collection: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    office_somity_count: Mapped[int] = mapped_column(Integer, default=0)
    office_somity_collection: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    center_count: Mapped[int] = mapped_column(Integer, default=0)
    center_collection: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total_loan_collection: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))

    # Books per term key ("1.5", "3", ...)
    book_counts: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    book_no_bonus: Mapped[int] = mapped_column(Integer, default=0)

    # Deduction inputs
    input_late_hours: Mapped[Decimal] = mapped_column(Numeric(precision=9, scale=2), default=Decimal("0"))
    input_absent_days: Mapped[Decimal] = mapped_column(Numeric(precision=9, scale=2), default=Decimal("0"))

    # Deductions
    deduction_cash_advance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    deduction_late: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    deduction_abs: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    deduction_misconduct: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    deduction_unlawful: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    deduction_tours: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    deduction_others: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))

    manager_convenience: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))

    # Derived totals
    total_books: Mapped[int] = mapped_column(Integer, default=0)
    total_collection: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    commission: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    bonus: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    final_salary: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))

    sheet: Mapped["SalarySheet"] = relationship("SalarySheet", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("salary_sheet_id", "employee_id", name="uq_salary_entry_sheet_employee"),
    )


# ===========================================
# CONFIGURATION
# ===========================================

class CommissionRate(BaseModel):
    """Own/office commission percentages for a commission type."""

    __tablename__ = "commission_rates"

    type_code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    own_rate_percent: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))
    office_rate_percent: Mapped[Decimal] = mapped_column(RATE, nullable=False, default=Decimal("0"))


class BookTier(BaseModel):
    """Flat commission per qualifying account of a given term."""

    __tablename__ = "book_tiers"

    term: Mapped[Decimal] = mapped_column(Numeric(precision=5, scale=2), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))


class CollectionTarget(BaseModel):
    """Monthly collection and account-opening target for an employee."""

    __tablename__ = "collection_targets"

    employee_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    collection_target: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    account_target: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("employee_id", "month", name="uq_collection_target_employee_month"),
    )
