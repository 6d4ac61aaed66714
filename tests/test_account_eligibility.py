"""
Somity Payroll - Account Eligibility Tests

Account scan validation order, boundaries and book bucketing.
"""

from decimal import Decimal

import pytest

from somity_payroll.schemas.payroll import (
    NO_BONUS_BUCKET,
    AccountOpening,
    BookTierSchedule,
    RejectionReason,
    RuleConfig,
)
from somity_payroll.services.payroll_rules import (
    AccountEligibilityValidator,
    find_account,
    month_difference,
    validate_account,
)


def make_account(**overrides):
    data = dict(
        account_code="ACC-001",
        employee_id="emp-1",
        branch_id="BR-1",
        term=Decimal("5"),
        collection_amount=Decimal("600"),
        opening_date="2024-01-15",
    )
    data.update(overrides)
    return AccountOpening(**data)


@pytest.fixture
def validator(book_schedule):
    return AccountEligibilityValidator(book_schedule, RuleConfig())


def scan(validator, account, code="ACC-001", sheet_month="2024-03", employee_id="emp-1", branch_id="BR-1"):
    return validator.validate(code, employee_id, branch_id, sheet_month, [account])


class TestAcceptance:
    """Accounts that may be credited."""

    def test_window_end_is_accepted(self, validator):
        """Opened 2024-01-15, sheet 2024-03: month difference 2 is accepted."""
        result = scan(validator, make_account())

        assert result.ok
        assert result.bucket == "5"
        assert result.account.account_code == "ACC-001"

    def test_same_month_is_accepted(self, validator):
        assert scan(validator, make_account(opening_date="2024-03-31")).ok

    def test_lookup_is_case_insensitive(self, validator):
        result = scan(validator, make_account(account_code="Acc-001"), code="  acc-001 ")

        assert result.ok

    def test_fractional_term_bucket(self, validator):
        result = scan(validator, make_account(term="1.50"))

        assert result.bucket == "1.5"

    def test_unknown_term_goes_to_no_bonus(self, validator):
        result = scan(validator, make_account(term=Decimal("7")))

        assert result.ok
        assert result.bucket == NO_BONUS_BUCKET

    def test_zero_amount_tier_goes_to_no_bonus(self):
        schedule = BookTierSchedule(amounts={"5": Decimal("0"), "3": Decimal("100")})
        result = validate_account("ACC-001", "emp-1", "BR-1", "2024-03", [make_account()], schedule)

        assert result.bucket == NO_BONUS_BUCKET

    def test_validation_does_not_stamp_account(self, validator):
        account = make_account()

        scan(validator, account)

        assert account.is_counted is False
        assert account.counted_month is None


class TestBoundaries:
    """Inclusive floor and two-month window."""

    def test_599_is_below_floor(self, validator):
        result = scan(validator, make_account(collection_amount=Decimal("599")))

        assert not result.ok
        assert result.reason == RejectionReason.BELOW_AMOUNT_FLOOR

    def test_600_is_accepted(self, validator):
        assert scan(validator, make_account(collection_amount=Decimal("600"))).ok

    def test_three_months_is_expired(self, validator):
        result = scan(validator, make_account(), sheet_month="2024-04")

        assert not result.ok
        assert result.reason == RejectionReason.WINDOW_EXPIRED

    def test_window_spans_year_end(self, validator):
        assert scan(validator, make_account(opening_date="2023-11-30"), sheet_month="2024-01").ok
        assert not scan(validator, make_account(opening_date="2023-10-01"), sheet_month="2024-01").ok

    def test_opened_after_sheet_month(self, validator):
        result = scan(validator, make_account(opening_date="2024-04-01"))

        assert result.reason == RejectionReason.ORDERING_ERROR

    def test_unreadable_opening_date(self, validator):
        result = scan(validator, make_account(opening_date="soon"))

        assert result.reason == RejectionReason.ORDERING_ERROR

    def test_configured_window(self, book_schedule):
        validator = AccountEligibilityValidator(book_schedule, RuleConfig(account_bonus_window_months=0))

        assert scan(validator, make_account(opening_date="2024-03-01")).ok
        assert scan(validator, make_account(opening_date="2024-02-28")).reason == RejectionReason.WINDOW_EXPIRED


class TestRejectionOrder:
    """First failing check wins."""

    def test_not_found(self, validator):
        result = scan(validator, make_account(), code="ACC-404")

        assert result.reason == RejectionReason.NOT_FOUND
        assert result.message == "Account not found"

    def test_ownership_before_branch(self, validator):
        account = make_account(employee_id="emp-2", branch_id="BR-2")

        assert scan(validator, account).reason == RejectionReason.OWNERSHIP_MISMATCH

    def test_branch_mismatch(self, validator):
        assert scan(validator, make_account(branch_id="BR-2")).reason == RejectionReason.BRANCH_MISMATCH

    def test_counted_before_floor(self, validator):
        account = make_account(is_counted=True, counted_month="2024-02", collection_amount=Decimal("10"))

        result = scan(validator, account)

        assert result.reason == RejectionReason.ALREADY_USED
        assert result.message == "Already used in 2024-02"

    def test_duplicate_in_same_sheet(self, validator):
        """Scanning again after being counted for the same month."""
        account = make_account().mark_counted("2024-03", "sheet-1")

        result = scan(validator, account)

        assert result.reason == RejectionReason.DUPLICATE_IN_SHEET

    def test_floor_before_window(self, validator):
        account = make_account(collection_amount=Decimal("100"), opening_date="2020-01-01")

        assert scan(validator, account).reason == RejectionReason.BELOW_AMOUNT_FLOOR

    def test_counted_account_is_never_selected_again(self, validator):
        account = make_account().mark_counted("2024-02", "sheet-0")

        for month in ("2024-01", "2024-02", "2024-03"):
            assert not scan(validator, account, sheet_month=month).ok


class TestHelpers:
    def test_month_difference(self):
        assert month_difference("2024-01-15", "2024-03") == 2
        assert month_difference("2023-12-31", "2024-01") == 1
        assert month_difference("2024-05-01", "2024-03") == -2
        assert month_difference("", "2024-03") is None
        assert month_difference("2024-13-01", "2024-03") is None

    def test_find_account(self):
        accounts = [make_account(account_code="X-1"), make_account(account_code="x-2")]

        assert find_account("X-2", accounts).account_code == "x-2"
        assert find_account("x-3", accounts) is None

    def test_mark_counted_returns_stamped_copy(self):
        account = make_account()

        stamped = account.mark_counted("2024-03", "sheet-9")

        assert stamped.is_counted
        assert stamped.counted_month == "2024-03"
        assert stamped.salary_sheet_id == "sheet-9"
        assert not account.is_counted
