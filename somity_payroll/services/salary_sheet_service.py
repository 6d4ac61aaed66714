"""
Somity Payroll - Salary Sheet Service

Drives the monthly salary sheet through its lifecycle on top of the
payroll rules:

1. Generate a DRAFT sheet with one entry per employee of the selected branches
2. Apply field edits (each edit recalculates the entry)
3. Scan opened accounts into book counters
4. Build the sheet grid: refresh collections from records, compute
   branch totals and manager incentive
5. Finalize; a finalized sheet accepts no further edits or scans

The service works on snapshots and returns new values. Loading and
persisting them is the caller's job (see PayrollStore).
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from somity_payroll.schemas.payroll import (
    NO_BONUS_BUCKET,
    AccountOpening,
    AccountScanResult,
    BookTierSchedule,
    Center,
    CollectionRecord,
    CommissionStructure,
    Employee,
    ManagerContext,
    RuleConfig,
    SalaryEntry,
    SalaryRow,
    SalarySheet,
)
from somity_payroll.services.payroll_rules import (
    AccountEligibilityValidator,
    CenterMasterLookup,
    CollectionAggregator,
    EntryCalculator,
    branch_total_collection,
)
from somity_payroll.utils.error_handling import (
    ComputedFieldException,
    ConfigurationException,
    ErrorCode,
    SheetFinalizedException,
    UnknownFieldException,
    ValidationException,
)
from somity_payroll.utils.numbers import month_key, term_key, to_decimal, to_int


logger = logging.getLogger(__name__)


# ===========================================
# FIELD CLASSIFICATION
# ===========================================

# Replaced on every recalculation
DERIVED_FIELDS = frozenset({
    "total_books",
    "total_collection",
    "total_deductions",
    "commission",
    "bonus",
    "final_salary",
    "deduction_late",
    "deduction_abs",
    "manager_convenience",
})

# Refreshed from the month's collection records whenever the grid is built
RECORD_DERIVED_FIELDS = frozenset({
    "own_somity_collection",
    "own_somity_count",
    "office_somity_collection",
    "office_somity_count",
    "total_loan_collection",
})

EDITABLE_MONEY_FIELDS = frozenset({
    "basic_salary",
    "center_collection",
    "input_late_hours",
    "input_absent_days",
    "deduction_cash_advance",
    "deduction_misconduct",
    "deduction_unlawful",
    "deduction_tours",
    "deduction_others",
})

EDITABLE_COUNT_FIELDS = frozenset({
    "center_count",
    "book_no_bonus",
})

BOOK_FIELD_PREFIX = "book_"


def book_field_name(term: Any) -> str:
    """Form field name of a per-term book counter: 1.5 -> "book_1_5"."""
    return BOOK_FIELD_PREFIX + term_key(term).replace(".", "_")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SalarySheetService:
    """Salary sheet lifecycle over the payroll rule components."""

    def __init__(
        self,
        commission_rates: Mapping[str, CommissionStructure],
        book_schedule: BookTierSchedule,
        config: Optional[RuleConfig] = None,
    ):
        if not commission_rates:
            raise ConfigurationException("Commission rate table is empty")
        if not book_schedule.amounts:
            raise ConfigurationException("Book tier schedule is empty")

        self.config = config or RuleConfig()
        self.commission_rates = commission_rates
        self.book_schedule = book_schedule
        self.calculator = EntryCalculator(commission_rates, book_schedule, self.config)
        self.validator = AccountEligibilityValidator(book_schedule, self.config)

    # ===========================================
    # HELPERS
    # ===========================================

    @staticmethod
    def manager_context(
        employee: Employee,
        branch_total: Optional[Decimal] = None,
    ) -> Optional[ManagerContext]:
        """
        Incentive context for an employee.

        Non-managers always get a context so any stored incentive is
        cleared. Managers get one only when the branch total is known;
        otherwise the stored incentive is left alone.
        """
        if not employee.is_branch_manager:
            return ManagerContext(is_manager=False)
        if branch_total is None:
            return None
        return ManagerContext(is_manager=True, branch_total_collection=branch_total)

    def recalculate(
        self,
        entry: SalaryEntry,
        employee: Employee,
        branch_total: Optional[Decimal] = None,
    ) -> SalaryEntry:
        return self.calculator.recalculate(
            entry,
            contractual_base_salary=employee.base_salary,
            effective_commission_type=entry.commission_type or employee.commission_type,
            manager_context=self.manager_context(employee, branch_total),
        )

    @staticmethod
    def ensure_draft(sheet: SalarySheet) -> None:
        if sheet.is_finalized:
            raise SheetFinalizedException(sheet.id)

    # ===========================================
    # SHEET GENERATION
    # ===========================================

    def create_empty_entry(self, sheet_id: str, employee: Employee) -> SalaryEntry:
        entry = SalaryEntry(
            id=str(uuid.uuid4()),
            salary_sheet_id=sheet_id,
            employee_id=employee.id,
            basic_salary=employee.base_salary,
            commission_type=employee.commission_type,
            book_counts={term: 0 for term in self.book_schedule.terms},
            final_salary=employee.base_salary,
        )
        return self.recalculate(entry, employee)

    def generate_sheet(
        self,
        month: str,
        branch_ids: Iterable[str],
        employees: Iterable[Employee],
    ) -> Tuple[SalarySheet, List[SalaryEntry]]:
        """Create a DRAFT sheet with one fresh entry per employee of the selected branches."""
        sheet_month = month_key(month)
        if sheet_month is None:
            raise ValidationException(
                f"Invalid sheet month '{month}', expected YYYY-MM",
                field="month",
                code=ErrorCode.INVALID_MONTH,
            )

        selected = [branch_id for branch_id in dict.fromkeys(branch_ids) if branch_id]
        if not selected:
            raise ValidationException("Select at least one branch", field="branch_ids")

        sheet = SalarySheet(
            id=str(uuid.uuid4()),
            month=sheet_month,
            branch_ids=selected,
            created_at=_utc_now_iso(),
        )
        entries = [
            self.create_empty_entry(sheet.id, employee)
            for employee in employees
            if employee.branch_id in selected
        ]

        logger.info(
            f"Generated salary sheet {sheet.id} for {sheet.month} "
            f"({len(entries)} entries, branches: {', '.join(selected)})"
        )
        return sheet, entries

    # ===========================================
    # EDITS
    # ===========================================

    def _apply_book_field(self, entry: SalaryEntry, field: str, value: Any) -> SalaryEntry:
        term = term_key(field[len(BOOK_FIELD_PREFIX):].replace("_", "."))
        if term not in self.book_schedule.amounts:
            raise UnknownFieldException(field)
        book_counts = dict(entry.book_counts)
        book_counts[term] = to_int(value)
        return entry.model_copy(update={"book_counts": book_counts})

    def update_entry_field(
        self,
        entry: SalaryEntry,
        field: str,
        value: Any,
        employee: Employee,
        sheet: Optional[SalarySheet] = None,
        branch_total: Optional[Decimal] = None,
    ) -> SalaryEntry:
        """Apply a single field edit and recalculate the entry."""
        if sheet is not None:
            self.ensure_draft(sheet)

        if field in DERIVED_FIELDS or field in RECORD_DERIVED_FIELDS:
            raise ComputedFieldException(field)

        if field == "commission_type":
            text = str(value).strip() if value is not None else ""
            updated = entry.model_copy(update={"commission_type": text or None})
        elif field in EDITABLE_MONEY_FIELDS:
            updated = entry.model_copy(update={field: to_decimal(value)})
        elif field in EDITABLE_COUNT_FIELDS:
            updated = entry.model_copy(update={field: to_int(value)})
        elif field.startswith(BOOK_FIELD_PREFIX):
            updated = self._apply_book_field(entry, field, value)
        else:
            raise UnknownFieldException(field)

        return self.recalculate(updated, employee, branch_total)

    # ===========================================
    # ACCOUNT SCANS
    # ===========================================

    def scan_account(
        self,
        entry: SalaryEntry,
        employee: Employee,
        sheet: SalarySheet,
        code: str,
        accounts: Iterable[AccountOpening],
        branch_total: Optional[Decimal] = None,
    ) -> AccountScanResult:
        """
        Validate an account code for this entry and credit it on success.

        The returned account is stamped with the sheet month and id; the
        caller persists it together with the entry.
        """
        self.ensure_draft(sheet)

        result = self.validator.validate(code, employee.id, employee.branch_id, sheet.month, accounts)
        if not result.ok:
            return AccountScanResult(entry=entry, validation=result)

        if result.bucket == NO_BONUS_BUCKET:
            updated = entry.model_copy(update={"book_no_bonus": entry.book_no_bonus + 1})
        else:
            book_counts = dict(entry.book_counts)
            book_counts[result.bucket] = book_counts.get(result.bucket, 0) + 1
            updated = entry.model_copy(update={"book_counts": book_counts})

        stamped = result.account.mark_counted(sheet.month, sheet.id)
        logger.info(
            f"Account {stamped.account_code} credited to {employee.id} "
            f"on sheet {sheet.id} (bucket {result.bucket})"
        )
        return AccountScanResult(
            entry=self.recalculate(updated, employee, branch_total),
            validation=result,
            account=stamped,
        )

    # ===========================================
    # SHEET GRID
    # ===========================================

    def branch_totals(
        self,
        sheet: SalarySheet,
        entries: Iterable[SalaryEntry],
        employees_by_id: Mapping[str, Employee],
        records: Iterable[CollectionRecord],
    ) -> Dict[str, Decimal]:
        """Branch-wide collection per branch, including unsaved center collections."""
        records = list(records)
        pending: Dict[str, List[Decimal]] = {}
        for entry in entries:
            employee = employees_by_id.get(entry.employee_id)
            if employee is not None:
                pending.setdefault(employee.branch_id, []).append(entry.center_collection)

        branch_ids = list(dict.fromkeys(list(sheet.branch_ids) + list(pending)))
        return {
            branch_id: branch_total_collection(branch_id, sheet.month, records, pending.get(branch_id, ()))
            for branch_id in branch_ids
        }

    def build_rows(
        self,
        sheet: SalarySheet,
        entries: Iterable[SalaryEntry],
        employees: Iterable[Employee],
        records: Iterable[CollectionRecord],
        centers: Iterable[Center],
    ) -> List[SalaryRow]:
        """
        Refresh every entry from the month's collection records and
        recalculate it, returning one grid row per entry.

        Entries whose employee is no longer on file are skipped.
        """
        entries = list(entries)
        records = list(records)
        employees_by_id = {employee.id: employee for employee in employees}
        aggregator = CollectionAggregator(CenterMasterLookup(centers))
        totals = self.branch_totals(sheet, entries, employees_by_id, records)

        rows: List[SalaryRow] = []
        for entry in entries:
            employee = employees_by_id.get(entry.employee_id)
            if employee is None:
                logger.warning(f"Salary entry {entry.id} references unknown employee {entry.employee_id}")
                continue

            summary = aggregator.aggregate(employee.id, sheet.month, records)
            refreshed = entry.model_copy(update={
                "own_somity_collection": summary.own_collection,
                "own_somity_count": summary.own_center_count,
                "office_somity_collection": summary.office_collection,
                "office_somity_count": summary.office_center_count,
                "total_loan_collection": summary.total_loan_collection,
            })
            recalculated = self.recalculate(refreshed, employee, totals.get(employee.branch_id))
            rows.append(SalaryRow(entry=recalculated, employee=employee))

        return rows

    # ===========================================
    # FINALIZATION
    # ===========================================

    def finalize_sheet(self, sheet: SalarySheet) -> SalarySheet:
        self.ensure_draft(sheet)
        logger.info(f"Finalized salary sheet {sheet.id} for {sheet.month}")
        return sheet.model_copy(update={"status": "FINALIZED", "finalized_at": _utc_now_iso()})
