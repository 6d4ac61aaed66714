"""
Somity Payroll - Payroll Store Tests

Snapshot loading and persistence against an in-memory database.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from somity_payroll.models import payroll as models
from somity_payroll.schemas.payroll import SalaryEntry, SalarySheet
from somity_payroll.services.payroll_store import PayrollStore, month_bounds
from somity_payroll.utils.error_handling import (
    AccountAlreadyCountedException,
    NotFoundException,
    ValidationException,
)


async def seed(db: AsyncSession, *rows):
    db.add_all(rows)
    await db.commit()


def account_row(code="SAV-1", **overrides):
    data = dict(
        account_code=code,
        normalized_code=code.lower(),
        employee_id="emp-1",
        branch_id="BR-1",
        term=Decimal("5"),
        collection_amount=Decimal("600"),
        opening_date=date(2024, 1, 15),
    )
    data.update(overrides)
    return models.AccountOpening(**data)


class TestConfiguration:
    """Rate tables with and without persisted configuration."""

    @pytest.mark.asyncio
    async def test_defaults_when_tables_empty(self, db_session: AsyncSession):
        store = PayrollStore(db_session)

        rates = await store.load_commission_rates()
        schedule = await store.load_book_schedule()

        assert set(rates) == {"A", "B", "C"}
        assert schedule.terms == ["1.5", "3", "5", "8", "10", "12"]

    @pytest.mark.asyncio
    async def test_persisted_configuration_replaces_defaults(self, db_session: AsyncSession):
        await seed(
            db_session,
            models.CommissionRate(type_code="X", own_rate_percent=Decimal("12"), office_rate_percent=Decimal("7")),
            models.BookTier(term=Decimal("1.5"), amount=Decimal("40")),
            models.BookTier(term=Decimal("10"), amount=Decimal("90")),
        )
        store = PayrollStore(db_session)

        rates = await store.load_commission_rates()
        schedule = await store.load_book_schedule()

        assert list(rates) == ["X"]
        assert rates["X"].own_rate_percent == Decimal("12")
        assert schedule.amount_for(Decimal("1.5")) == Decimal("40")
        assert schedule.amount_for(10) == Decimal("90")
        assert schedule.amount_for(5) == Decimal("0")


class TestSnapshots:
    """Master data and fact loaders."""

    @pytest.mark.asyncio
    async def test_collection_records_limited_to_month(self, db_session: AsyncSession):
        await seed(
            db_session,
            models.Employee(id="emp-1", name="Rahim", branch_id="BR-1"),
            models.CollectionRecord(
                employee_id="emp-1", branch_id="BR-1", center_code=3,
                amount=Decimal("100"), collected_at=datetime(2024, 3, 1, 8, 0),
            ),
            models.CollectionRecord(
                employee_id="emp-1", branch_id="BR-1", center_code=3,
                amount=Decimal("200"), collected_at=datetime(2024, 3, 31, 18, 0),
            ),
            models.CollectionRecord(
                employee_id="emp-1", branch_id="BR-1", center_code=3,
                amount=Decimal("300"), collected_at=datetime(2024, 4, 1, 0, 0),
            ),
        )

        records = await PayrollStore(db_session).load_collection_records("2024-03")

        assert [record.amount for record in records] == [Decimal("100"), Decimal("200")]
        assert all(record.in_month("2024-03") for record in records)

    @pytest.mark.asyncio
    async def test_employees_filtered_by_branch(self, db_session: AsyncSession):
        await seed(
            db_session,
            models.Employee(id="emp-1", name="Rahim", branch_id="BR-1", is_branch_manager=True),
            models.Employee(id="emp-2", name="Jamal", branch_id="BR-2"),
        )
        store = PayrollStore(db_session)

        employees = await store.load_employees(["BR-1"])

        assert [employee.id for employee in employees] == ["emp-1"]
        assert employees[0].is_branch_manager
        assert len(await store.load_employees()) == 2

    @pytest.mark.asyncio
    async def test_center_with_unknown_type_reads_as_untyped(self, db_session: AsyncSession):
        await seed(
            db_session,
            models.Center(center_code=4, branch_id="BR-1", type="office"),
            models.Center(center_code=5, branch_id="BR-1", type="OFFICE"),
        )

        centers = await PayrollStore(db_session).load_centers()

        assert [center.type for center in centers] == [None, "OFFICE"]

    def test_month_bounds(self):
        assert month_bounds("2024-12") == (datetime(2024, 12, 1), datetime(2025, 1, 1))

        with pytest.raises(ValidationException):
            month_bounds("2024")


class TestSheetPersistence:
    @pytest.mark.asyncio
    async def test_sheet_and_entries_are_saved_and_updated(self, db_session: AsyncSession):
        await seed(db_session, models.Employee(id="emp-1", name="Rahim", branch_id="BR-1"))
        store = PayrollStore(db_session)
        sheet = SalarySheet(id="sheet-1", month="2024-03", branch_ids=["BR-1"], created_at="2024-03-01T09:00:00")
        entry = SalaryEntry(
            id="entry-1",
            salary_sheet_id="sheet-1",
            employee_id="emp-1",
            basic_salary=Decimal("15000"),
            commission_type="B",
            book_counts={"1.5": 2, "5": 1},
            final_salary=Decimal("15250"),
        )

        await store.save_sheet(sheet)
        await store.save_entries([entry])
        await store.save_entries([entry.model_copy(update={"book_no_bonus": 3})])

        loaded_sheet = await store.get_sheet("sheet-1")
        loaded = await store.load_entries("sheet-1")

        assert loaded_sheet.month == "2024-03"
        assert loaded_sheet.branch_ids == ["BR-1"]
        assert loaded_sheet.status == "DRAFT"
        assert len(loaded) == 1
        assert loaded[0].book_counts == {"1.5": 2, "5": 1}
        assert loaded[0].book_no_bonus == 3
        assert loaded[0].final_salary == Decimal("15250")
        assert await store.get_sheet("missing") is None

    @pytest.mark.asyncio
    async def test_finalized_status_is_saved(self, db_session: AsyncSession):
        store = PayrollStore(db_session)
        sheet = SalarySheet(id="sheet-2", month="2024-03", created_at="2024-03-01T09:00:00")

        await store.save_sheet(sheet)
        await store.save_sheet(sheet.model_copy(update={
            "status": "FINALIZED",
            "finalized_at": "2024-04-02T10:30:00",
        }))

        loaded = await store.get_sheet("sheet-2")
        assert loaded.is_finalized
        assert loaded.finalized_at.startswith("2024-04-02")


class TestMarkAccountCounted:
    @pytest.mark.asyncio
    async def test_stamps_account_once(self, db_session: AsyncSession):
        await seed(
            db_session,
            models.Employee(id="emp-1", name="Rahim", branch_id="BR-1"),
            account_row("SAV-1"),
        )
        store = PayrollStore(db_session)

        stamped = await store.mark_account_counted("sav-1", "2024-03", "sheet-1")

        assert stamped.is_counted
        assert stamped.counted_month == "2024-03"
        assert stamped.salary_sheet_id == "sheet-1"
        assert stamped.opening_date == "2024-01-15"

        with pytest.raises(AccountAlreadyCountedException) as exc_info:
            await store.mark_account_counted("SAV-1", "2024-04", "sheet-2")
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_account(self, db_session: AsyncSession):
        with pytest.raises(NotFoundException):
            await PayrollStore(db_session).mark_account_counted("NOPE", "2024-03", "sheet-1")


class TestConfirmScan:
    """Account stamp and credited entry are written together."""

    async def seed_sheet(self, db: AsyncSession, store: PayrollStore):
        await seed(
            db,
            models.Employee(id="emp-1", name="Rahim", branch_id="BR-1"),
            account_row("SAV-1"),
        )
        await store.save_sheet(SalarySheet(id="sheet-1", month="2024-03", branch_ids=["BR-1"], created_at="2024-03-01T09:00:00"))
        await store.save_entries([SalaryEntry(id="entry-1", salary_sheet_id="sheet-1", employee_id="emp-1")])

    @pytest.mark.asyncio
    async def test_stamp_and_entry_saved_together(self, db_session: AsyncSession):
        store = PayrollStore(db_session)
        await self.seed_sheet(db_session, store)
        credited = SalaryEntry(id="entry-1", salary_sheet_id="sheet-1", employee_id="emp-1", book_counts={"5": 1})

        stamped = await store.confirm_scan("sav-1", "2024-03", credited)

        entry = await store.get_entry("entry-1")
        assert stamped.is_counted
        assert stamped.salary_sheet_id == "sheet-1"
        assert entry.book_counts == {"5": 1}

    @pytest.mark.asyncio
    async def test_failed_entry_write_leaves_account_uncounted(self, db_session: AsyncSession):
        store = PayrollStore(db_session)
        await self.seed_sheet(db_session, store)
        # Second entry for the same employee on the same sheet violates uniqueness
        clashing = SalaryEntry(id="entry-2", salary_sheet_id="sheet-1", employee_id="emp-1", book_counts={"5": 1})

        with pytest.raises(IntegrityError):
            await store.confirm_scan("SAV-1", "2024-03", clashing)

        accounts = await store.load_accounts()
        assert not accounts[0].is_counted
        assert accounts[0].counted_month is None
        assert await store.get_entry("entry-2") is None

    @pytest.mark.asyncio
    async def test_counted_account_is_refused_before_entry_write(self, db_session: AsyncSession):
        store = PayrollStore(db_session)
        await self.seed_sheet(db_session, store)
        await store.mark_account_counted("SAV-1", "2024-02", "sheet-0")
        credited = SalaryEntry(id="entry-1", salary_sheet_id="sheet-1", employee_id="emp-1", book_counts={"5": 1})

        with pytest.raises(AccountAlreadyCountedException):
            await store.confirm_scan("SAV-1", "2024-03", credited)

        entry = await store.get_entry("entry-1")
        assert entry.book_counts == {}
