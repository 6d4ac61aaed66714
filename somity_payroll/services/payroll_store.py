"""
Somity Payroll - Payroll Store

Loads the snapshots the payroll rules consume and persists revised
sheets, entries and account stamps. Conversion between ORM rows and
domain schemas happens here and nowhere else.

Rate tables fall back to the shipped defaults when the configuration
tables are empty.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from somity_payroll.models import payroll as models
from somity_payroll.schemas.payroll import (
    ENTRY_COLUMNS,
    AccountOpening,
    BookTierSchedule,
    Center,
    CollectionRecord,
    CollectionTarget,
    CommissionStructure,
    Employee,
    SalaryEntry,
    SalarySheet,
)
from somity_payroll.services.payroll_rules import (
    CommissionRateTable,
    DEFAULT_BOOK_TIER_AMOUNTS,
    DEFAULT_COMMISSION_RATES,
    build_rate_table,
)
from somity_payroll.utils.error_handling import (
    AccountAlreadyCountedException,
    ErrorCode,
    NotFoundException,
    ValidationException,
)
from somity_payroll.utils.numbers import parse_month, term_key


logger = logging.getLogger(__name__)


def month_bounds(month: str) -> Tuple[datetime, datetime]:
    """[start, end) datetimes of a YYYY-MM month."""
    parsed = parse_month(month)
    if parsed is None:
        raise ValidationException(
            f"Invalid month '{month}', expected YYYY-MM",
            field="month",
            code=ErrorCode.INVALID_MONTH,
        )
    year, number = parsed
    start = datetime(year, number, 1)
    end = datetime(year + 1, 1, 1) if number == 12 else datetime(year, number + 1, 1)
    return start, end


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


# ===========================================
# ORM <-> SCHEMA CONVERSION
# ===========================================

def employee_from_row(row: models.Employee) -> Employee:
    return Employee(
        id=row.id,
        name=row.name,
        branch_id=row.branch_id,
        designation=row.designation,
        base_salary=row.base_salary,
        commission_type=row.commission_type,
        is_branch_manager=row.is_branch_manager,
    )


def center_from_row(row: models.Center) -> Center:
    return Center(
        id=row.id,
        center_code=row.center_code,
        center_name=row.center_name,
        branch_id=row.branch_id,
        assigned_employee_id=row.assigned_employee_id,
        type=row.type if row.type in ("OWN", "OFFICE") else None,
    )


def record_from_row(row: models.CollectionRecord) -> CollectionRecord:
    return CollectionRecord(
        id=row.id,
        employee_id=row.employee_id,
        branch_id=row.branch_id,
        center_code=row.center_code,
        amount=row.amount,
        loan_amount=row.loan_amount,
        created_at=row.collected_at,
        recorded_type=row.recorded_type if row.recorded_type in ("OWN", "OFFICE") else None,
    )


def account_from_row(row: models.AccountOpening) -> AccountOpening:
    return AccountOpening(
        id=row.id,
        account_code=row.account_code,
        employee_id=row.employee_id,
        branch_id=row.branch_id,
        term=row.term,
        collection_amount=row.collection_amount,
        opening_date=row.opening_date,
        is_counted=row.is_counted,
        counted_month=row.counted_month,
        salary_sheet_id=row.salary_sheet_id,
    )


def sheet_from_row(row: models.SalarySheet) -> SalarySheet:
    return SalarySheet(
        id=row.id,
        month=row.month,
        branch_ids=list(row.branch_ids or []),
        created_at=row.created_at,
        status=row.status,
        finalized_at=row.finalized_at,
    )


def entry_from_row(row: models.SalaryEntry) -> SalaryEntry:
    data = {column: getattr(row, column) for column in ENTRY_COLUMNS}
    return SalaryEntry(
        id=row.id,
        salary_sheet_id=row.salary_sheet_id,
        employee_id=row.employee_id,
        **data,
    )


def target_from_row(row: models.CollectionTarget) -> CollectionTarget:
    return CollectionTarget(
        employee_id=row.employee_id,
        month=row.month,
        collection_target=row.collection_target,
        account_target=row.account_target,
    )


class PayrollStore:
    """Snapshot reader and writer over the payroll tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # CONFIGURATION
    # ===========================================

    async def load_commission_rates(self) -> CommissionRateTable:
        result = await self.db.execute(select(models.CommissionRate))
        rows = result.scalars().all()
        if not rows:
            return dict(DEFAULT_COMMISSION_RATES)
        return build_rate_table(
            CommissionStructure(
                type_code=row.type_code,
                own_rate_percent=row.own_rate_percent,
                office_rate_percent=row.office_rate_percent,
            )
            for row in rows
        )

    async def load_book_schedule(self) -> BookTierSchedule:
        result = await self.db.execute(select(models.BookTier).order_by(models.BookTier.term))
        rows = result.scalars().all()
        if not rows:
            return BookTierSchedule(amounts=DEFAULT_BOOK_TIER_AMOUNTS)
        return BookTierSchedule(amounts={term_key(row.term): row.amount for row in rows})

    async def load_targets(self, month: str) -> List[CollectionTarget]:
        result = await self.db.execute(
            select(models.CollectionTarget).where(models.CollectionTarget.month == month)
        )
        return [target_from_row(row) for row in result.scalars().all()]

    # ===========================================
    # MASTER DATA & FACTS
    # ===========================================

    async def load_employees(self, branch_ids: Optional[Iterable[str]] = None) -> List[Employee]:
        query = select(models.Employee).order_by(models.Employee.branch_id, models.Employee.name)
        if branch_ids is not None:
            query = query.where(models.Employee.branch_id.in_(list(branch_ids)))
        result = await self.db.execute(query)
        return [employee_from_row(row) for row in result.scalars().all()]

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        row = await self.db.get(models.Employee, employee_id)
        return employee_from_row(row) if row else None

    async def load_centers(self) -> List[Center]:
        result = await self.db.execute(select(models.Center).order_by(models.Center.center_code))
        return [center_from_row(row) for row in result.scalars().all()]

    async def load_collection_records(self, month: str) -> List[CollectionRecord]:
        start, end = month_bounds(month)
        result = await self.db.execute(
            select(models.CollectionRecord)
            .where(
                models.CollectionRecord.collected_at >= start,
                models.CollectionRecord.collected_at < end,
            )
            .order_by(models.CollectionRecord.collected_at)
        )
        return [record_from_row(row) for row in result.scalars().all()]

    async def load_accounts(self, employee_id: Optional[str] = None) -> List[AccountOpening]:
        query = select(models.AccountOpening)
        if employee_id is not None:
            query = query.where(models.AccountOpening.employee_id == employee_id)
        result = await self.db.execute(query)
        return [account_from_row(row) for row in result.scalars().all()]

    # ===========================================
    # SALARY SHEETS
    # ===========================================

    async def get_sheet(self, sheet_id: str) -> Optional[SalarySheet]:
        row = await self.db.get(models.SalarySheet, sheet_id)
        return sheet_from_row(row) if row else None

    async def load_entries(self, sheet_id: str) -> List[SalaryEntry]:
        result = await self.db.execute(
            select(models.SalaryEntry).where(models.SalaryEntry.salary_sheet_id == sheet_id)
        )
        return [entry_from_row(row) for row in result.scalars().all()]

    async def get_entry(self, entry_id: str) -> Optional[SalaryEntry]:
        row = await self.db.get(models.SalaryEntry, entry_id)
        return entry_from_row(row) if row else None

    async def save_sheet(self, sheet: SalarySheet) -> SalarySheet:
        row = await self.db.get(models.SalarySheet, sheet.id)
        if row is None:
            row = models.SalarySheet(id=sheet.id, created_at=_parse_timestamp(sheet.created_at))
            self.db.add(row)
        row.month = sheet.month
        row.branch_ids = list(sheet.branch_ids)
        row.status = sheet.status
        row.finalized_at = _parse_timestamp(sheet.finalized_at)

        await self.db.commit()
        logger.info(f"Saved salary sheet {sheet.id} ({sheet.month}, {sheet.status})")
        return sheet

    async def _stage_entries(self, entries: Iterable[SalaryEntry]) -> int:
        staged = 0
        for entry in entries:
            row = await self.db.get(models.SalaryEntry, entry.id)
            if row is None:
                row = models.SalaryEntry(
                    id=entry.id,
                    salary_sheet_id=entry.salary_sheet_id,
                    employee_id=entry.employee_id,
                )
                self.db.add(row)
            for column in ENTRY_COLUMNS:
                value = getattr(entry, column)
                setattr(row, column, dict(value) if column == "book_counts" else value)
            staged += 1
        return staged

    async def _stage_account_stamp(
        self,
        account_code: str,
        sheet_month: str,
        salary_sheet_id: str,
    ) -> models.AccountOpening:
        result = await self.db.execute(
            select(models.AccountOpening).where(
                models.AccountOpening.normalized_code == account_code.strip().lower()
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundException(
                "AccountOpening",
                account_code,
                code=ErrorCode.ACCOUNT_NOT_FOUND,
            )
        if row.is_counted:
            raise AccountAlreadyCountedException(row.account_code, row.counted_month)

        row.is_counted = True
        row.counted_month = sheet_month
        row.salary_sheet_id = salary_sheet_id
        return row

    async def save_entries(self, entries: Iterable[SalaryEntry]) -> int:
        saved = await self._stage_entries(entries)
        await self.db.commit()
        logger.info(f"Saved {saved} salary entries")
        return saved

    async def mark_account_counted(
        self,
        account_code: str,
        sheet_month: str,
        salary_sheet_id: str,
    ) -> AccountOpening:
        """Stamp an account as credited to a sheet. An account is stamped at most once."""
        row = await self._stage_account_stamp(account_code, sheet_month, salary_sheet_id)
        await self.db.commit()

        logger.info(f"Account {row.account_code} marked counted for {sheet_month} on sheet {salary_sheet_id}")
        return account_from_row(row)

    async def confirm_scan(
        self,
        account_code: str,
        sheet_month: str,
        entry: SalaryEntry,
    ) -> AccountOpening:
        """
        Stamp the scanned account and save the credited entry in one commit.

        If either write fails, neither is kept: the account stays
        uncounted and can be scanned again.
        """
        try:
            row = await self._stage_account_stamp(account_code, sheet_month, entry.salary_sheet_id)
            await self._stage_entries([entry])
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.error(f"Account scan {account_code} on sheet {entry.salary_sheet_id} rolled back")
            raise

        logger.info(
            f"Account {row.account_code} credited to entry {entry.id} "
            f"for {sheet_month} on sheet {entry.salary_sheet_id}"
        )
        return account_from_row(row)
