"""
Somity Payroll - Performance Service

Read-only reports over the month's collection records, account openings
and salary rows:
- Center collection report (grouped by center and collector)
- Target progress per employee and per branch
- Top collectors leaderboard
- Account bonus eligibility statistics

Ownership is resolved against the current center master data, the same
way the salary sheet does it.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from somity_payroll.schemas.payroll import (
    AccountOpening,
    Center,
    CollectionRecord,
    CollectionTarget,
    Employee,
    SalaryRow,
)
from somity_payroll.schemas.performance import (
    BonusEligibilityStats,
    BranchProgress,
    CenterReport,
    CenterReportGroup,
    LeaderboardEntry,
    TargetProgress,
)
from somity_payroll.services.payroll_rules import OWN, CenterOwnershipResolver
from somity_payroll.utils.numbers import ZERO, to_decimal


HUNDRED = Decimal("100")
PERCENT_PLACES = Decimal("0.01")

# Progress thresholds, in percent of the collection target
COMPLETED_AT = Decimal("100")
ON_TRACK_AT = Decimal("80")
NEEDS_FOCUS_AT = Decimal("50")


def _percent(achieved: Decimal, target: Decimal) -> Decimal:
    if target <= 0:
        return ZERO
    return (to_decimal(achieved) / target * HUNDRED).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def progress_status(collection_target: Decimal, percent: Decimal) -> str:
    if collection_target <= 0:
        return "NO_TARGET"
    if percent >= COMPLETED_AT:
        return "COMPLETED"
    if percent >= ON_TRACK_AT:
        return "ON_TRACK"
    if percent >= NEEDS_FOCUS_AT:
        return "NEEDS_FOCUS"
    return "AT_RISK"


# ===========================================
# CENTER REPORT
# ===========================================

def center_report(
    records: Iterable[CollectionRecord],
    centers: Iterable[Center],
    month: str,
    branch_id: Optional[str] = None,
    employee_id: Optional[str] = None,
) -> CenterReport:
    """
    Month's collections grouped by (center code, collector).

    Records of a center that moved branch are reported under its
    current branch.
    """
    resolver = CenterOwnershipResolver(centers)
    groups: Dict[Tuple[int, str], CenterReportGroup] = {}

    for record in records:
        if not record.in_month(month):
            continue
        record = resolver.rehome(record)
        if branch_id and record.branch_id != branch_id:
            continue
        if employee_id and record.employee_id != employee_id:
            continue

        key = (record.center_code, record.employee_id)
        group = groups.get(key)
        if group is None:
            group = CenterReportGroup(
                center_code=record.center_code,
                employee_id=record.employee_id,
                branch_id=record.branch_id,
                type=resolver.resolve(record),
            )
            groups[key] = group
        group.record_count += 1
        group.amount += to_decimal(record.amount)

    ordered = sorted(groups.values(), key=lambda g: (g.center_code, -g.amount))
    own_total = sum((g.amount for g in ordered if g.type == OWN), ZERO)
    office_total = sum((g.amount for g in ordered if g.type != OWN), ZERO)

    return CenterReport(
        month=month,
        branch_id=branch_id,
        employee_id=employee_id,
        groups=ordered,
        own_total=own_total,
        office_total=office_total,
        grand_total=own_total + office_total,
    )


# ===========================================
# TARGETS
# ===========================================

def target_progress(
    employees: Iterable[Employee],
    targets: Iterable[CollectionTarget],
    records: Iterable[CollectionRecord],
    accounts: Iterable[AccountOpening],
    month: str,
) -> List[TargetProgress]:
    """Collection and account-opening progress for each employee in the month."""
    targets_by_employee = {t.employee_id: t for t in targets if t.month == month}

    collected: Dict[str, Decimal] = {}
    for record in records:
        if record.in_month(month):
            collected[record.employee_id] = collected.get(record.employee_id, ZERO) + to_decimal(record.amount)

    opened: Dict[str, int] = {}
    for account in accounts:
        if account.opening_date.startswith(month):
            opened[account.employee_id] = opened.get(account.employee_id, 0) + 1

    progress = []
    for employee in employees:
        target = targets_by_employee.get(employee.id)
        collection_target = target.collection_target if target else ZERO
        account_target = target.account_target if target else 0
        amount = collected.get(employee.id, ZERO)
        accounts_opened = opened.get(employee.id, 0)
        percent = _percent(amount, collection_target)

        progress.append(TargetProgress(
            employee_id=employee.id,
            employee_name=employee.name,
            branch_id=employee.branch_id,
            month=month,
            collection_target=collection_target,
            collected=amount,
            collection_percent=percent,
            collection_remaining=max(ZERO, collection_target - amount),
            account_target=account_target,
            accounts_opened=accounts_opened,
            account_percent=_percent(Decimal(accounts_opened), Decimal(account_target)),
            account_remaining=max(0, account_target - accounts_opened),
            status=progress_status(collection_target, percent),
        ))
    return progress


def branch_progress(progress: Iterable[TargetProgress]) -> List[BranchProgress]:
    """Roll employee progress up to branches, in first-seen branch order."""
    branches: Dict[str, BranchProgress] = {}
    for item in progress:
        branch = branches.setdefault(item.branch_id, BranchProgress(branch_id=item.branch_id))
        branch.employee_count += 1
        branch.collection_target += item.collection_target
        branch.collected += item.collected
        branch.account_target += item.account_target
        branch.accounts_opened += item.accounts_opened
        if item.collection_target > 0 and item.collection_percent < NEEDS_FOCUS_AT:
            branch.at_risk_count += 1

    for branch in branches.values():
        branch.collection_percent = _percent(branch.collected, branch.collection_target)
    return list(branches.values())


# ===========================================
# LEADERBOARD & ACCOUNT STATS
# ===========================================

def leaderboard(rows: Iterable[SalaryRow], limit: int = 3) -> List[LeaderboardEntry]:
    """Top collectors by total collection, then bonusable books, then total books."""
    ranked = sorted(
        rows,
        key=lambda row: (
            to_decimal(row.entry.total_collection),
            row.entry.bonusable_books,
            row.entry.total_books,
        ),
        reverse=True,
    )
    return [
        LeaderboardEntry(
            rank=position,
            employee_id=row.employee.id,
            employee_name=row.employee.name,
            branch_id=row.employee.branch_id,
            total_collection=row.entry.total_collection,
            bonusable_books=row.entry.bonusable_books,
            total_books=row.entry.total_books,
        )
        for position, row in enumerate(ranked[:max(limit, 0)], start=1)
    ]


def bonus_eligibility_stats(
    accounts: Iterable[AccountOpening],
    month: str,
    floor: Decimal,
) -> BonusEligibilityStats:
    opened = [account for account in accounts if account.opening_date.startswith(month)]
    eligible = sum(1 for account in opened if to_decimal(account.collection_amount) >= to_decimal(floor))
    percent = 0
    if opened:
        percent = int((Decimal(eligible) / Decimal(len(opened)) * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return BonusEligibilityStats(
        month=month,
        accounts_opened=len(opened),
        eligible_accounts=eligible,
        eligible_percent=percent,
    )
