"""
Somity Payroll - API Schemas

Request and response bodies for the payroll endpoints. Engine requests
carry their snapshots inline; sheet requests refer to stored records.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from somity_payroll.schemas.payroll import (
    AccountOpening,
    Center,
    CollectionRecord,
    CommissionStructure,
    ManagerContext,
    OwnershipEnum,
    SalaryEntry,
    SalarySheet,
)
from somity_payroll.utils.numbers import to_decimal


# ===========================================
# ENGINE REQUESTS
# ===========================================

class ClassifyRequest(BaseModel):
    record: CollectionRecord
    centers: List[Center] = Field(default_factory=list)


class ClassifyResponse(BaseModel):
    ownership: OwnershipEnum
    effective_branch_id: str


class AggregateRequest(BaseModel):
    employee_id: str
    month: str = Field(..., min_length=7, description="Sheet month, YYYY-MM")
    records: List[CollectionRecord] = Field(default_factory=list)
    centers: List[Center] = Field(default_factory=list)


class BranchTotalRequest(BaseModel):
    branch_id: str
    month: str = Field(..., min_length=7, description="Sheet month, YYYY-MM")
    records: List[CollectionRecord] = Field(default_factory=list)
    pending_center_collections: List[Decimal] = Field(default_factory=list)

    @field_validator("pending_center_collections", mode="before")
    @classmethod
    def _coerce_pending(cls, value: Any) -> List[Decimal]:
        return [to_decimal(item) for item in value or []]


class BranchTotalResponse(BaseModel):
    branch_id: str
    month: str
    total_collection: Decimal


class ValidateAccountRequest(BaseModel):
    code: str
    employee_id: str
    branch_id: str
    sheet_month: str = Field(..., min_length=7, description="Sheet month, YYYY-MM")
    accounts: List[AccountOpening] = Field(default_factory=list)
    book_tiers: Optional[Dict[str, Decimal]] = Field(
        None, description="Term -> flat amount; the configured schedule when omitted"
    )


class RecalculateRequest(BaseModel):
    entry: SalaryEntry
    contractual_base_salary: Decimal = Decimal("0")
    effective_commission_type: Optional[str] = None
    manager_context: Optional[ManagerContext] = None
    commission_rates: Optional[List[CommissionStructure]] = Field(
        None, description="Rate table; the configured table when omitted"
    )
    book_tiers: Optional[Dict[str, Decimal]] = Field(
        None, description="Term -> flat amount; the configured schedule when omitted"
    )

    @field_validator("contractual_base_salary", mode="before")
    @classmethod
    def _coerce_salary(cls, value: Any) -> Decimal:
        return to_decimal(value)


# ===========================================
# SHEET REQUESTS
# ===========================================

class GenerateSheetRequest(BaseModel):
    month: str = Field(..., min_length=6, description="Sheet month, YYYY-MM")
    branch_ids: List[str] = Field(default_factory=list)


class SheetResponse(BaseModel):
    sheet: SalarySheet
    entries: List[SalaryEntry] = Field(default_factory=list)


class EntryFieldUpdate(BaseModel):
    """One form field edit; book counters are named like book_1_5."""
    field: str = Field(..., min_length=1)
    value: Any = None


class AccountScanRequest(BaseModel):
    code: str = Field(..., min_length=1)
