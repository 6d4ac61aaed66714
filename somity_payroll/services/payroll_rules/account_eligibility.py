"""
Somity Payroll - Account Eligibility Validator

Decides whether a scanned account code may be credited to the salary
sheet being prepared and which book bucket it lands in.

Checks run in order and the first failure wins:
1. account exists (code match is case-insensitive)
2. opened by the scanning employee
3. opened in the scanning employee's branch
4. not already credited (same month: duplicate scan; else: used elsewhere)
5. collection amount at or above the bonus floor
6. sheet month within the bonus window: the opening month plus the
   following months up to the configured window (0, 1, 2 by default)

A successful validation does not stamp the account. Marking it counted
is a separate step taken when the scan is confirmed.
"""

import logging
from typing import Iterable, Optional

from somity_payroll.schemas.payroll import (
    NO_BONUS_BUCKET,
    AccountOpening,
    AccountValidationResult,
    BookTierSchedule,
    RejectionReason,
    RuleConfig,
)
from somity_payroll.utils.numbers import parse_month, to_decimal


logger = logging.getLogger(__name__)


def find_account(code: str, accounts: Iterable[AccountOpening]) -> Optional[AccountOpening]:
    normalized = (code or "").strip().lower()
    for account in accounts:
        if account.normalized_code == normalized:
            return account
    return None


def month_difference(opening_date: str, sheet_month: str) -> Optional[int]:
    """
    Calendar months from the opening month to the sheet month.

    Only year and month count; the day of opening is ignored.
    Returns None when either value has no readable year and month.
    """
    opened = parse_month(opening_date)
    sheet = parse_month(sheet_month)
    if opened is None or sheet is None:
        return None
    return (sheet[0] - opened[0]) * 12 + (sheet[1] - opened[1])


class AccountEligibilityValidator:
    """Validates account scans against a snapshot of account openings."""

    def __init__(self, book_schedule: BookTierSchedule, config: Optional[RuleConfig] = None):
        self.book_schedule = book_schedule
        self.config = config or RuleConfig()

    def classify(self, account: AccountOpening) -> str:
        """Book bucket for an accepted account: its term key, or the no-bonus bucket."""
        bucket = self.book_schedule.bucket_for(account.term)
        return bucket if bucket is not None else NO_BONUS_BUCKET

    def validate(
        self,
        code: str,
        employee_id: str,
        branch_id: str,
        sheet_month: str,
        accounts: Iterable[AccountOpening],
    ) -> AccountValidationResult:
        account = find_account(code, accounts)
        result = self._check(account, employee_id, branch_id, sheet_month)
        if not result.ok:
            logger.debug(f"Account scan '{code}' rejected: {result.reason.value} ({result.message})")
        return result

    def _check(
        self,
        account: Optional[AccountOpening],
        employee_id: str,
        branch_id: str,
        sheet_month: str,
    ) -> AccountValidationResult:
        if account is None:
            return AccountValidationResult.rejected(RejectionReason.NOT_FOUND, "Account not found")

        if account.employee_id != employee_id:
            return AccountValidationResult.rejected(
                RejectionReason.OWNERSHIP_MISMATCH, "Belongs to another employee"
            )

        if account.branch_id != branch_id:
            return AccountValidationResult.rejected(RejectionReason.BRANCH_MISMATCH, "Branch mismatch")

        if account.is_counted:
            if account.counted_month == sheet_month:
                return AccountValidationResult.rejected(
                    RejectionReason.DUPLICATE_IN_SHEET, "Already scanned in this sheet"
                )
            return AccountValidationResult.rejected(
                RejectionReason.ALREADY_USED, f"Already used in {account.counted_month or 'a past sheet'}"
            )

        floor = self.config.account_bonus_floor
        if to_decimal(account.collection_amount) < floor:
            return AccountValidationResult.rejected(
                RejectionReason.BELOW_AMOUNT_FLOOR, f"Not eligible: collection below {floor}"
            )

        difference = month_difference(account.opening_date, sheet_month)
        if difference is None:
            return AccountValidationResult.rejected(
                RejectionReason.ORDERING_ERROR, "Opening date or sheet month unreadable"
            )
        if difference < 0:
            return AccountValidationResult.rejected(
                RejectionReason.ORDERING_ERROR, "Account opened after sheet month"
            )

        window = self.config.account_bonus_window_months
        if difference > window:
            return AccountValidationResult.rejected(
                RejectionReason.WINDOW_EXPIRED, f"Expired: {window}-month bonus window passed"
            )

        return AccountValidationResult.accepted(account, self.classify(account))


def validate_account(
    code: str,
    employee_id: str,
    branch_id: str,
    sheet_month: str,
    accounts: Iterable[AccountOpening],
    book_schedule: BookTierSchedule,
    config: Optional[RuleConfig] = None,
) -> AccountValidationResult:
    return AccountEligibilityValidator(book_schedule, config).validate(
        code, employee_id, branch_id, sheet_month, accounts
    )
