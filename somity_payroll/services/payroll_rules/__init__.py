"""
Somity Payroll - Payroll Rules Package

Pure rule components that turn collection records, account openings and
salary entry inputs into an itemized salary.

Modules:
- center_ownership: OWN/OFFICE classification of collection records
- collection_aggregator: own/office sums, center counts, branch totals
- account_eligibility: account scan validation and book bucketing
- entry_calculator: commission, bonus, deductions, incentive, final salary
- rate_tables: default commission rates and book tier amounts
"""

from somity_payroll.services.payroll_rules.account_eligibility import (
    AccountEligibilityValidator,
    find_account,
    month_difference,
    validate_account,
)
from somity_payroll.services.payroll_rules.center_ownership import (
    OFFICE,
    OWN,
    CenterMasterLookup,
    CenterOwnershipResolver,
    resolve_ownership,
)
from somity_payroll.services.payroll_rules.collection_aggregator import (
    CollectionAggregator,
    aggregate_collections,
    branch_total_collection,
    records_in_month,
)
from somity_payroll.services.payroll_rules.entry_calculator import EntryCalculator, recalculate_entry
from somity_payroll.services.payroll_rules.rate_tables import (
    DEFAULT_BOOK_TIER_AMOUNTS,
    DEFAULT_COMMISSION_RATES,
    CommissionRateTable,
    build_rate_table,
    default_book_schedule,
    lookup_rates,
)


__all__ = [
    # Ownership
    "OWN",
    "OFFICE",
    "CenterMasterLookup",
    "CenterOwnershipResolver",
    "resolve_ownership",
    # Aggregation
    "CollectionAggregator",
    "aggregate_collections",
    "branch_total_collection",
    "records_in_month",
    # Accounts
    "AccountEligibilityValidator",
    "find_account",
    "month_difference",
    "validate_account",
    # Entry calculation
    "EntryCalculator",
    "recalculate_entry",
    # Rate tables
    "CommissionRateTable",
    "DEFAULT_COMMISSION_RATES",
    "DEFAULT_BOOK_TIER_AMOUNTS",
    "build_rate_table",
    "default_book_schedule",
    "lookup_rates",
]
