"""
Somity Payroll - Salary Entry Calculator

Turns a salary entry's accumulated counters into commission, target
bonus, deductions, manager incentive and final salary.

Formulas:
- total_books = books in every configured term + no-bonus books
- total_collection = own somity + office somity + center collection
- commission = own somity * own rate + office somity * office rate
  + sum(book count * flat tier amount); center collection pays nothing
- bonus = flat amount once total_books reaches the threshold
- daily rate = contractual salary / divisor days; hourly = daily / divisor hours
- late = late hours * hourly rate; absent = absent days * daily rate
- manager incentive = max(0, (branch total - manager's own collection) * rate)
- final salary = entry basic salary + commission + bonus + incentive - deductions

Deduction rates use the employee's contractual salary, while the final
sum uses the entry's basic salary, which a manager may have edited.
"""

import logging
from decimal import Decimal
from typing import Mapping, Optional, Tuple

from somity_payroll.schemas.payroll import (
    BookTierSchedule,
    CommissionStructure,
    ManagerContext,
    RuleConfig,
    SalaryEntry,
)
from somity_payroll.services.payroll_rules.rate_tables import lookup_rates
from somity_payroll.utils.numbers import ZERO, to_decimal, to_int


logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class EntryCalculator:
    """
    Salary entry rule engine.

    Pure: the same entry, salary, rates and context always give the
    same result, and the input entry is never modified.
    """

    def __init__(
        self,
        commission_rates: Mapping[str, CommissionStructure],
        book_schedule: BookTierSchedule,
        config: Optional[RuleConfig] = None,
    ):
        self.commission_rates = commission_rates
        self.book_schedule = book_schedule
        self.config = config or RuleConfig()

    def total_books(self, entry: SalaryEntry) -> int:
        return sum(entry.book_count(term) for term in self.book_schedule.terms) + to_int(entry.book_no_bonus)

    def book_commission(self, entry: SalaryEntry) -> Decimal:
        return sum(
            (entry.book_count(term) * amount for term, amount in self.book_schedule.amounts.items()),
            ZERO,
        )

    def collection_commission(self, entry: SalaryEntry, rates: CommissionStructure) -> Decimal:
        own_rate = to_decimal(rates.own_rate_percent) / HUNDRED
        office_rate = to_decimal(rates.office_rate_percent) / HUNDRED
        return (
            to_decimal(entry.own_somity_collection) * own_rate
            + to_decimal(entry.office_somity_collection) * office_rate
        )

    def target_bonus(self, total_books: int) -> Decimal:
        if total_books >= self.config.bonus_book_threshold:
            return self.config.bonus_flat_amount
        return ZERO

    def deduction_rates(self, contractual_base_salary: Decimal) -> Tuple[Decimal, Decimal]:
        """(daily rate, hourly rate) derived from the contractual salary."""
        daily_rate = to_decimal(contractual_base_salary) / self.config.deduction_divisor_days
        hourly_rate = daily_rate / self.config.deduction_divisor_hours
        return daily_rate, hourly_rate

    def manager_convenience(self, entry: SalaryEntry, context: Optional[ManagerContext]) -> Decimal:
        # Without a context the stored figure is kept as-is
        if context is None:
            return to_decimal(entry.manager_convenience)
        if not context.is_manager:
            return ZERO

        manager_own_collection = (
            to_decimal(entry.own_somity_collection)
            + to_decimal(entry.office_somity_collection)
            + to_decimal(entry.total_loan_collection)
            + to_decimal(entry.center_collection)
        )
        rate = self.config.manager_incentive_rate_percent / HUNDRED
        staff_collection = to_decimal(context.branch_total_collection) - manager_own_collection
        return max(ZERO, staff_collection * rate)

    def recalculate(
        self,
        entry: SalaryEntry,
        contractual_base_salary: Decimal,
        effective_commission_type: Optional[str] = None,
        manager_context: Optional[ManagerContext] = None,
    ) -> SalaryEntry:
        commission_type = (
            effective_commission_type
            or entry.commission_type
            or self.config.default_commission_type
        )

        total_books = self.total_books(entry)
        total_collection = (
            to_decimal(entry.own_somity_collection)
            + to_decimal(entry.office_somity_collection)
            + to_decimal(entry.center_collection)
        )

        if commission_type not in self.commission_rates:
            logger.debug(f"Unknown commission type '{commission_type}' on entry {entry.id}; using zero rates")
        rates = lookup_rates(self.commission_rates, commission_type)
        commission = self.collection_commission(entry, rates) + self.book_commission(entry)
        bonus = self.target_bonus(total_books)

        daily_rate, hourly_rate = self.deduction_rates(contractual_base_salary)
        deduction_late = to_decimal(entry.input_late_hours) * hourly_rate
        deduction_abs = to_decimal(entry.input_absent_days) * daily_rate
        total_deductions = (
            to_decimal(entry.deduction_cash_advance)
            + deduction_late
            + deduction_abs
            + to_decimal(entry.deduction_misconduct)
            + to_decimal(entry.deduction_unlawful)
            + to_decimal(entry.deduction_tours)
            + to_decimal(entry.deduction_others)
        )

        manager_convenience = self.manager_convenience(entry, manager_context)

        final_salary = (
            to_decimal(entry.basic_salary)
            + commission
            + bonus
            + manager_convenience
            - total_deductions
        )

        return entry.model_copy(update={
            "commission_type": commission_type,
            "total_books": total_books,
            "total_collection": total_collection,
            "commission": commission,
            "bonus": bonus,
            "deduction_late": deduction_late,
            "deduction_abs": deduction_abs,
            "total_deductions": total_deductions,
            "manager_convenience": manager_convenience,
            "final_salary": final_salary,
        })


def recalculate_entry(
    entry: SalaryEntry,
    contractual_base_salary: Decimal,
    commission_rates: Mapping[str, CommissionStructure],
    effective_commission_type: Optional[str] = None,
    manager_context: Optional[ManagerContext] = None,
    *,
    book_schedule: BookTierSchedule,
    config: Optional[RuleConfig] = None,
) -> SalaryEntry:
    """Recalculate every derived field of a salary entry."""
    calculator = EntryCalculator(commission_rates, book_schedule, config)
    return calculator.recalculate(entry, contractual_base_salary, effective_commission_type, manager_context)
