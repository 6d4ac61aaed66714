"""
Somity Payroll - Payroll Domain Schemas

Pydantic models for the data consumed and produced by the payroll rules:
commission structures, the book tier schedule, master data snapshots,
collection facts, account openings and salary entries.

Numeric fields accept form-field input. Anything that cannot be read as
a finite number is stored as zero.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from somity_payroll.utils.numbers import ZERO, term_key, to_decimal, to_int


# ===========================================
# ENUMS AS LITERALS
# ===========================================

OwnershipEnum = Literal["OWN", "OFFICE"]

SheetStatusEnum = Literal["DRAFT", "FINALIZED"]

NO_BONUS_BUCKET = "no_bonus"


class RejectionReason(str, Enum):
    """Why an account opening cannot be credited to a salary sheet."""
    NOT_FOUND = "not_found"
    OWNERSHIP_MISMATCH = "ownership_mismatch"
    BRANCH_MISMATCH = "branch_mismatch"
    DUPLICATE_IN_SHEET = "duplicate_in_sheet"
    ALREADY_USED = "already_used"
    BELOW_AMOUNT_FLOOR = "below_amount_floor"
    WINDOW_EXPIRED = "window_expired"
    ORDERING_ERROR = "ordering_error"


def _iso_text(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


# ===========================================
# RATE TABLES & RULE PARAMETERS
# ===========================================

class CommissionStructure(BaseModel):
    """Own/office commission percentages for one commission type."""
    type_code: str
    own_rate_percent: Decimal = ZERO
    office_rate_percent: Decimal = ZERO

    @field_validator("own_rate_percent", "office_rate_percent", mode="before")
    @classmethod
    def _coerce_rate(cls, value: Any) -> Decimal:
        return to_decimal(value)


class BookTierSchedule(BaseModel):
    """Flat commission paid per qualifying account, keyed by term."""
    amounts: Dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("amounts", mode="before")
    @classmethod
    def _normalise_terms(cls, value: Any) -> Dict[str, Decimal]:
        if not value:
            return {}
        return {term_key(term): to_decimal(amount) for term, amount in dict(value).items()}

    @property
    def terms(self) -> List[str]:
        return list(self.amounts)

    def amount_for(self, term: Any) -> Decimal:
        return self.amounts.get(term_key(term), ZERO)

    def bucket_for(self, term: Any) -> Optional[str]:
        """Term key of the paying tier, or None when the term pays nothing."""
        key = term_key(term)
        if self.amounts.get(key, ZERO) > 0:
            return key
        return None


class RuleConfig(BaseModel):
    """Business constants for bonus, incentive, deduction and account rules."""
    model_config = ConfigDict(frozen=True)

    bonus_book_threshold: int = 50
    bonus_flat_amount: Decimal = Decimal("500")
    manager_incentive_rate_percent: Decimal = Decimal("2")
    deduction_divisor_days: Decimal = Field(default=Decimal("26"), gt=0)
    deduction_divisor_hours: Decimal = Field(default=Decimal("8"), gt=0)
    account_bonus_floor: Decimal = Decimal("600")
    account_bonus_window_months: int = Field(default=2, ge=0)
    default_commission_type: str = "A"


# ===========================================
# MASTER DATA
# ===========================================

class Employee(BaseModel):
    """Field officer or branch staff member."""
    id: str
    name: str = ""
    branch_id: str
    designation: str = ""
    base_salary: Decimal = ZERO
    commission_type: Optional[str] = None
    is_branch_manager: bool = False

    @field_validator("base_salary", mode="before")
    @classmethod
    def _coerce_salary(cls, value: Any) -> Decimal:
        return to_decimal(value)


class Center(BaseModel):
    """Registered collection point, unique per (branch_id, center_code)."""
    id: Optional[str] = None
    center_code: int
    center_name: str = ""
    branch_id: str
    assigned_employee_id: Optional[str] = None
    type: Optional[OwnershipEnum] = None

    @field_validator("center_code", mode="before")
    @classmethod
    def _coerce_code(cls, value: Any) -> int:
        return to_int(value)


class CollectionTarget(BaseModel):
    """Monthly collection and account-opening target for one employee."""
    employee_id: str
    month: str
    collection_target: Decimal = ZERO
    account_target: int = 0

    @field_validator("collection_target", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("account_target", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return to_int(value)


# ===========================================
# FACTS
# ===========================================

class CollectionRecord(BaseModel):
    """
    One collection made by an employee at a center.

    recorded_type is the classification stored when the record was made.
    It is kept for reference only; ownership is always resolved again
    against the current center master data.
    """
    id: Optional[str] = None
    employee_id: str
    branch_id: str
    center_code: int
    amount: Decimal = ZERO
    loan_amount: Decimal = ZERO
    created_at: str
    recorded_type: Optional[OwnershipEnum] = None

    @field_validator("center_code", mode="before")
    @classmethod
    def _coerce_code(cls, value: Any) -> int:
        return to_int(value)

    @field_validator("amount", "loan_amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def _timestamp_text(cls, value: Any) -> Any:
        return _iso_text(value)

    def in_month(self, month: str) -> bool:
        return self.created_at.startswith(month)


class AccountOpening(BaseModel):
    """
    A passbook opened by an employee.

    Starts uncounted; once credited to a salary sheet it carries the
    sheet month and id and is never credited again.
    """
    id: Optional[str] = None
    account_code: str
    employee_id: str
    branch_id: str
    term: Decimal = ZERO
    collection_amount: Decimal = ZERO
    opening_date: str
    is_counted: bool = False
    counted_month: Optional[str] = None
    salary_sheet_id: Optional[str] = None

    @field_validator("term", "collection_amount", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("opening_date", mode="before")
    @classmethod
    def _date_text(cls, value: Any) -> Any:
        return _iso_text(value)

    @property
    def normalized_code(self) -> str:
        return self.account_code.strip().lower()

    def mark_counted(self, sheet_month: str, salary_sheet_id: Optional[str]) -> "AccountOpening":
        """Return a copy stamped as credited to the given sheet."""
        return self.model_copy(update={
            "is_counted": True,
            "counted_month": sheet_month,
            "salary_sheet_id": salary_sheet_id,
        })


# ===========================================
# SALARY SHEET & ENTRIES
# ===========================================

class SalarySheet(BaseModel):
    """Salary sheet for one month across one or more branches."""
    id: str
    month: str
    branch_ids: List[str] = Field(default_factory=list)
    created_at: str
    status: SheetStatusEnum = "DRAFT"
    finalized_at: Optional[str] = None

    @field_validator("created_at", "finalized_at", mode="before")
    @classmethod
    def _timestamp_text(cls, value: Any) -> Any:
        return _iso_text(value)

    @property
    def is_finalized(self) -> bool:
        return self.status == "FINALIZED"


ENTRY_MONEY_FIELDS = (
    "basic_salary",
    "own_somity_collection",
    "office_somity_collection",
    "center_collection",
    "total_loan_collection",
    "input_late_hours",
    "input_absent_days",
    "deduction_cash_advance",
    "deduction_late",
    "deduction_abs",
    "deduction_misconduct",
    "deduction_unlawful",
    "deduction_tours",
    "deduction_others",
    "manager_convenience",
    "total_collection",
    "total_deductions",
    "commission",
    "bonus",
    "final_salary",
)

ENTRY_COUNT_FIELDS = (
    "own_somity_count",
    "office_somity_count",
    "center_count",
    "book_no_bonus",
    "total_books",
)

# Every entry field besides its ids
ENTRY_COLUMNS = ("commission_type", "book_counts") + ENTRY_MONEY_FIELDS + ENTRY_COUNT_FIELDS


class SalaryEntry(BaseModel):
    """
    One employee's line on a salary sheet.

    Raw inputs are edited by users, collection figures are filled by the
    aggregation pass and book counters by account scans. Derived totals
    are replaced on every recalculation.
    """
    id: str
    salary_sheet_id: str
    employee_id: str

    basic_salary: Decimal = ZERO
    commission_type: Optional[str] = None

    # Collections
    own_somity_count: int = 0
    own_somity_collection: Decimal = ZERO
    office_somity_count: int = 0
    office_somity_collection: Decimal = ZERO
    center_count: int = 0
    center_collection: Decimal = ZERO
    total_loan_collection: Decimal = ZERO

    # Books, keyed by term ("1.5", "3", ...)
    book_counts: Dict[str, int] = Field(default_factory=dict)
    book_no_bonus: int = 0

    # Deduction inputs
    input_late_hours: Decimal = ZERO
    input_absent_days: Decimal = ZERO

    # Deductions
    deduction_cash_advance: Decimal = ZERO
    deduction_late: Decimal = ZERO
    deduction_abs: Decimal = ZERO
    deduction_misconduct: Decimal = ZERO
    deduction_unlawful: Decimal = ZERO
    deduction_tours: Decimal = ZERO
    deduction_others: Decimal = ZERO

    # Incentive
    manager_convenience: Decimal = ZERO

    # Derived totals
    total_books: int = 0
    total_collection: Decimal = ZERO
    total_deductions: Decimal = ZERO
    commission: Decimal = ZERO
    bonus: Decimal = ZERO
    final_salary: Decimal = ZERO

    @field_validator(*ENTRY_MONEY_FIELDS, mode="before")
    @classmethod
    def _coerce_money(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator(*ENTRY_COUNT_FIELDS, mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return to_int(value)

    @field_validator("book_counts", mode="before")
    @classmethod
    def _normalise_books(cls, value: Any) -> Dict[str, int]:
        if not value:
            return {}
        return {term_key(term): to_int(count) for term, count in dict(value).items()}

    def book_count(self, term: Any) -> int:
        return to_int(self.book_counts.get(term_key(term), 0))

    @property
    def bonusable_books(self) -> int:
        return self.total_books - self.book_no_bonus


class ManagerContext(BaseModel):
    """Caller-supplied manager flag and branch-wide collection figure."""
    is_manager: bool = False
    branch_total_collection: Decimal = ZERO

    @field_validator("branch_total_collection", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> Decimal:
        return to_decimal(value)


# ===========================================
# RESULTS
# ===========================================

class CollectionSummary(BaseModel):
    """Own/office split of one employee's collections for a month."""
    own_collection: Decimal = ZERO
    own_center_count: int = 0
    office_collection: Decimal = ZERO
    office_center_count: int = 0
    total_loan_collection: Decimal = ZERO


class AccountValidationResult(BaseModel):
    """Outcome of an account scan: accepted with its bucket, or rejected with a reason."""
    ok: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    account: Optional[AccountOpening] = None
    bucket: Optional[str] = None

    @classmethod
    def accepted(cls, account: AccountOpening, bucket: str) -> "AccountValidationResult":
        return cls(ok=True, account=account, bucket=bucket)

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str) -> "AccountValidationResult":
        return cls(ok=False, reason=reason, message=message)


class AccountScanResult(BaseModel):
    """
    Result of scanning an account against a salary entry.

    On acceptance the entry carries the incremented book counter and
    account is the stamped copy to persist. On rejection the entry is
    returned unchanged and account is None.
    """
    entry: SalaryEntry
    validation: AccountValidationResult
    account: Optional[AccountOpening] = None

    @property
    def accepted(self) -> bool:
        return self.validation.ok


class SalaryRow(BaseModel):
    """Salary entry joined with its employee, as shown on the sheet grid."""
    entry: SalaryEntry
    employee: Employee
