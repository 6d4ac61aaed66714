"""
Somity Payroll - Payroll Router

API endpoints for the payroll engine, the salary sheet workflow and
the performance reports.

Engine endpoints are stateless: every snapshot travels in the request.
Sheet and report endpoints read and write through PayrollStore.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from somity_payroll.config import settings
from somity_payroll.database import get_async_session
from somity_payroll.schemas.payroll import (
    AccountScanResult,
    AccountValidationResult,
    BookTierSchedule,
    CollectionSummary,
    RuleConfig,
    SalaryEntry,
    SalaryRow,
    SalarySheet,
)
from somity_payroll.schemas.payroll_api import (
    AccountScanRequest,
    AggregateRequest,
    BranchTotalRequest,
    BranchTotalResponse,
    ClassifyRequest,
    ClassifyResponse,
    EntryFieldUpdate,
    GenerateSheetRequest,
    RecalculateRequest,
    SheetResponse,
    ValidateAccountRequest,
)
from somity_payroll.schemas.performance import CenterReport, LeaderboardEntry, TargetReport
from somity_payroll.services import performance_service
from somity_payroll.services.payroll_rules import (
    DEFAULT_COMMISSION_RATES,
    AccountEligibilityValidator,
    CenterOwnershipResolver,
    CollectionAggregator,
    EntryCalculator,
    branch_total_collection,
    build_rate_table,
    default_book_schedule,
)
from somity_payroll.services.payroll_store import PayrollStore
from somity_payroll.services.salary_sheet_service import SalarySheetService
from somity_payroll.utils.error_handling import (
    AccountRejectedException,
    EmployeeNotFoundException,
    EntryNotFoundException,
    ErrorCode,
    SheetNotFoundException,
    ValidationException,
)
from somity_payroll.utils.numbers import month_key


router = APIRouter()


def get_rule_config() -> RuleConfig:
    return settings.rule_config()


def _schedule(book_tiers: Optional[Dict]) -> BookTierSchedule:
    if book_tiers is None:
        return default_book_schedule()
    schedule = BookTierSchedule(amounts=book_tiers)
    if not schedule.amounts:
        raise ValidationException("Book tier schedule must not be empty", field="book_tiers")
    return schedule


def _report_month(month: str) -> str:
    canonical = month_key(month)
    if canonical is None:
        raise ValidationException(
            f"Invalid month '{month}', expected YYYY-MM",
            field="month",
            code=ErrorCode.INVALID_MONTH,
        )
    return canonical


# ===========================================
# ENGINE ENDPOINTS
# ===========================================

@router.post(
    "/engine/classify",
    response_model=ClassifyResponse,
    summary="Classify a collection record as OWN or OFFICE",
)
async def classify_record(data: ClassifyRequest):
    resolver = CenterOwnershipResolver(data.centers)
    return ClassifyResponse(
        ownership=resolver.resolve(data.record),
        effective_branch_id=resolver.effective_branch_id(data.record),
    )


@router.post(
    "/engine/aggregate",
    response_model=CollectionSummary,
    summary="Aggregate an employee's collections for a month",
)
async def aggregate_collections(data: AggregateRequest):
    return CollectionAggregator(data.centers).aggregate(data.employee_id, data.month, data.records)


@router.post(
    "/engine/branch-total",
    response_model=BranchTotalResponse,
    summary="Branch-wide collection total for a month",
)
async def branch_total(data: BranchTotalRequest):
    total = branch_total_collection(data.branch_id, data.month, data.records, data.pending_center_collections)
    return BranchTotalResponse(branch_id=data.branch_id, month=data.month, total_collection=total)


@router.post(
    "/engine/validate-account",
    response_model=AccountValidationResult,
    summary="Check whether an account may be credited to a salary sheet",
    description="Rejections are returned as a typed result, not as an error status.",
)
async def validate_account(
    data: ValidateAccountRequest,
    config: RuleConfig = Depends(get_rule_config),
):
    validator = AccountEligibilityValidator(_schedule(data.book_tiers), config)
    return validator.validate(data.code, data.employee_id, data.branch_id, data.sheet_month, data.accounts)


@router.post(
    "/engine/recalculate",
    response_model=SalaryEntry,
    summary="Recalculate every derived field of a salary entry",
)
async def recalculate_entry(
    data: RecalculateRequest,
    config: RuleConfig = Depends(get_rule_config),
):
    if data.commission_rates is None:
        rates = dict(DEFAULT_COMMISSION_RATES)
    else:
        rates = build_rate_table(data.commission_rates)
        if not rates:
            raise ValidationException("Commission rate table must not be empty", field="commission_rates")

    calculator = EntryCalculator(rates, _schedule(data.book_tiers), config)
    return calculator.recalculate(
        data.entry,
        data.contractual_base_salary,
        data.effective_commission_type,
        data.manager_context,
    )


# ===========================================
# SALARY SHEET ENDPOINTS
# ===========================================

async def _sheet_service(store: PayrollStore, config: RuleConfig) -> SalarySheetService:
    rates = await store.load_commission_rates()
    schedule = await store.load_book_schedule()
    return SalarySheetService(rates, schedule, config)


async def _require_sheet(store: PayrollStore, sheet_id: str) -> SalarySheet:
    sheet = await store.get_sheet(sheet_id)
    if sheet is None:
        raise SheetNotFoundException(sheet_id)
    return sheet


async def _require_entry(store: PayrollStore, sheet: SalarySheet, entry_id: str) -> SalaryEntry:
    entry = await store.get_entry(entry_id)
    if entry is None or entry.salary_sheet_id != sheet.id:
        raise EntryNotFoundException(entry_id)
    return entry


async def _sheet_rows(store: PayrollStore, service: SalarySheetService, sheet: SalarySheet) -> List[SalaryRow]:
    entries = await store.load_entries(sheet.id)
    employees = await store.load_employees(sheet.branch_ids)
    records = await store.load_collection_records(sheet.month)
    centers = await store.load_centers()
    return service.build_rows(sheet, entries, employees, records, centers)


@router.post(
    "/sheets",
    response_model=SheetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a salary sheet",
    description="Create a DRAFT sheet with one entry per employee of the selected branches.",
)
async def generate_sheet(
    data: GenerateSheetRequest,
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    store = PayrollStore(db)
    service = await _sheet_service(store, config)
    employees = await store.load_employees(data.branch_ids)

    sheet, entries = service.generate_sheet(data.month, data.branch_ids, employees)
    await store.save_sheet(sheet)
    await store.save_entries(entries)
    return SheetResponse(sheet=sheet, entries=entries)


@router.get(
    "/sheets/{sheet_id}/rows",
    response_model=List[SalaryRow],
    summary="Salary sheet grid",
    description="Entries refreshed from the month's collection records and recalculated.",
)
async def get_sheet_rows(
    sheet_id: str = Path(..., description="Salary sheet ID"),
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    store = PayrollStore(db)
    sheet = await _require_sheet(store, sheet_id)
    service = await _sheet_service(store, config)
    return await _sheet_rows(store, service, sheet)


@router.patch(
    "/sheets/{sheet_id}/entries/{entry_id}",
    response_model=SalaryEntry,
    summary="Edit one field of a salary entry",
)
async def update_entry(
    data: EntryFieldUpdate,
    sheet_id: str = Path(..., description="Salary sheet ID"),
    entry_id: str = Path(..., description="Salary entry ID"),
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    store = PayrollStore(db)
    sheet = await _require_sheet(store, sheet_id)
    entry = await _require_entry(store, sheet, entry_id)
    employee = await store.get_employee(entry.employee_id)
    if employee is None:
        raise EmployeeNotFoundException(entry.employee_id)

    service = await _sheet_service(store, config)
    updated = service.update_entry_field(entry, data.field, data.value, employee, sheet=sheet)
    await store.save_entries([updated])
    return updated


@router.post(
    "/sheets/{sheet_id}/entries/{entry_id}/scan",
    response_model=AccountScanResult,
    summary="Scan an opened account into a salary entry",
    description="Credits the account to the entry's book counters and stamps it as counted.",
)
async def scan_account(
    data: AccountScanRequest,
    sheet_id: str = Path(..., description="Salary sheet ID"),
    entry_id: str = Path(..., description="Salary entry ID"),
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    store = PayrollStore(db)
    sheet = await _require_sheet(store, sheet_id)
    entry = await _require_entry(store, sheet, entry_id)
    employee = await store.get_employee(entry.employee_id)
    if employee is None:
        raise EmployeeNotFoundException(entry.employee_id)

    service = await _sheet_service(store, config)
    accounts = await store.load_accounts()
    outcome = service.scan_account(entry, employee, sheet, data.code, accounts)
    if not outcome.accepted:
        raise AccountRejectedException(data.code, outcome.validation)

    stamped = await store.confirm_scan(outcome.account.account_code, sheet.month, outcome.entry)
    return outcome.model_copy(update={"account": stamped})


@router.post(
    "/sheets/{sheet_id}/finalize",
    response_model=SalarySheet,
    summary="Finalize a salary sheet",
)
async def finalize_sheet(
    sheet_id: str = Path(..., description="Salary sheet ID"),
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    store = PayrollStore(db)
    sheet = await _require_sheet(store, sheet_id)
    service = await _sheet_service(store, config)
    service.ensure_draft(sheet)

    # Persist the grid as shown at closing time
    rows = await _sheet_rows(store, service, sheet)
    finalized = service.finalize_sheet(sheet)
    await store.save_entries(row.entry for row in rows)
    await store.save_sheet(finalized)
    return finalized


@router.get(
    "/sheets/{sheet_id}/leaderboard",
    response_model=List[LeaderboardEntry],
    summary="Top collectors on a salary sheet",
)
async def sheet_leaderboard(
    sheet_id: str = Path(..., description="Salary sheet ID"),
    limit: int = Query(3, ge=1, le=50),
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    store = PayrollStore(db)
    sheet = await _require_sheet(store, sheet_id)
    service = await _sheet_service(store, config)
    rows = await _sheet_rows(store, service, sheet)
    return performance_service.leaderboard(rows, limit=limit)


# ===========================================
# REPORT ENDPOINTS
# ===========================================

@router.get(
    "/reports/centers",
    response_model=CenterReport,
    summary="Center collection report",
)
async def center_report(
    month: str = Query(..., min_length=6, description="Month, YYYY-MM"),
    branch_id: Optional[str] = Query(None, description="Branch filter"),
    employee_id: Optional[str] = Query(None, description="Collector filter"),
    db: AsyncSession = Depends(get_async_session),
):
    month = _report_month(month)
    store = PayrollStore(db)
    records = await store.load_collection_records(month)
    centers = await store.load_centers()
    return performance_service.center_report(records, centers, month, branch_id, employee_id)


@router.get(
    "/reports/targets",
    response_model=TargetReport,
    summary="Target progress report",
)
async def target_report(
    month: str = Query(..., min_length=6, description="Month, YYYY-MM"),
    branch_id: Optional[str] = Query(None, description="Branch filter"),
    db: AsyncSession = Depends(get_async_session),
    config: RuleConfig = Depends(get_rule_config),
):
    month = _report_month(month)
    store = PayrollStore(db)
    employees = await store.load_employees([branch_id] if branch_id else None)
    employee_ids = {employee.id for employee in employees}
    targets = await store.load_targets(month)
    records = await store.load_collection_records(month)
    accounts = [a for a in await store.load_accounts() if a.employee_id in employee_ids]

    progress = performance_service.target_progress(employees, targets, records, accounts, month)
    return TargetReport(
        month=month,
        employees=progress,
        branches=performance_service.branch_progress(progress),
        bonus_stats=performance_service.bonus_eligibility_stats(accounts, month, config.account_bonus_floor),
    )
