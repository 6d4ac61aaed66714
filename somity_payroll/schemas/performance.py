"""
Somity Payroll - Performance Report Schemas

Result models for the center collection report, target progress,
branch roll-up, leaderboard and account bonus eligibility statistics.
"""

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from somity_payroll.schemas.payroll import OwnershipEnum


ProgressStatusEnum = Literal["NO_TARGET", "COMPLETED", "ON_TRACK", "NEEDS_FOCUS", "AT_RISK"]


# ===========================================
# CENTER REPORT
# ===========================================

class CenterReportGroup(BaseModel):
    """Collections of one employee at one center in the month."""
    center_code: int
    employee_id: str
    branch_id: str
    type: OwnershipEnum
    record_count: int = 0
    amount: Decimal = Decimal("0")


class CenterReport(BaseModel):
    month: str
    branch_id: Optional[str] = None
    employee_id: Optional[str] = None
    groups: List[CenterReportGroup] = Field(default_factory=list)
    own_total: Decimal = Decimal("0")
    office_total: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")


# ===========================================
# TARGETS
# ===========================================

class TargetProgress(BaseModel):
    """One employee's progress against the monthly targets."""
    employee_id: str
    employee_name: str = ""
    branch_id: str
    month: str

    collection_target: Decimal = Decimal("0")
    collected: Decimal = Decimal("0")
    collection_percent: Decimal = Decimal("0")
    collection_remaining: Decimal = Decimal("0")

    account_target: int = 0
    accounts_opened: int = 0
    account_percent: Decimal = Decimal("0")
    account_remaining: int = 0

    status: ProgressStatusEnum = "NO_TARGET"


class BranchProgress(BaseModel):
    branch_id: str
    employee_count: int = 0
    collection_target: Decimal = Decimal("0")
    collected: Decimal = Decimal("0")
    collection_percent: Decimal = Decimal("0")
    account_target: int = 0
    accounts_opened: int = 0
    at_risk_count: int = 0


# ===========================================
# LEADERBOARD & ACCOUNT STATS
# ===========================================

class LeaderboardEntry(BaseModel):
    rank: int
    employee_id: str
    employee_name: str = ""
    branch_id: str
    total_collection: Decimal = Decimal("0")
    bonusable_books: int = 0
    total_books: int = 0


class BonusEligibilityStats(BaseModel):
    """Share of the month's new accounts that clear the bonus floor."""
    month: str
    accounts_opened: int = 0
    eligible_accounts: int = 0
    eligible_percent: int = 0


class TargetReport(BaseModel):
    """Monthly target progress for employees and branches."""
    month: str
    employees: List[TargetProgress] = Field(default_factory=list)
    branches: List[BranchProgress] = Field(default_factory=list)
    bonus_stats: BonusEligibilityStats
