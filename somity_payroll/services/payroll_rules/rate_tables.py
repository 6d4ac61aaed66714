"""
Somity Payroll - Default Rate Tables

Commission rates per commission type and flat commission per book term,
used when the backing store carries no configuration of its own.
"""

from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional, Union

from somity_payroll.schemas.payroll import BookTierSchedule, CommissionStructure


CommissionRateTable = Dict[str, CommissionStructure]


DEFAULT_COMMISSION_RATES: CommissionRateTable = {
    "A": CommissionStructure(type_code="A", own_rate_percent=Decimal("8"), office_rate_percent=Decimal("4")),
    "B": CommissionStructure(type_code="B", own_rate_percent=Decimal("10"), office_rate_percent=Decimal("6")),
    "C": CommissionStructure(type_code="C", own_rate_percent=Decimal("8"), office_rate_percent=Decimal("6")),
}

# Term in years -> flat amount per qualifying account
DEFAULT_BOOK_TIER_AMOUNTS: Dict[str, Decimal] = {
    "1.5": Decimal("50"),
    "3": Decimal("100"),
    "5": Decimal("150"),
    "8": Decimal("200"),
    "10": Decimal("250"),
    "12": Decimal("300"),
}


def default_book_schedule() -> BookTierSchedule:
    return BookTierSchedule(amounts=DEFAULT_BOOK_TIER_AMOUNTS)


def build_rate_table(
    structures: Union[Iterable[CommissionStructure], Mapping[str, CommissionStructure], None],
) -> CommissionRateTable:
    """Index commission structures by type code."""
    if not structures:
        return {}
    if isinstance(structures, Mapping):
        structures = structures.values()
    return {structure.type_code: structure for structure in structures}


def lookup_rates(
    rates: Mapping[str, CommissionStructure],
    type_code: Optional[str],
) -> CommissionStructure:
    """
    Rate structure for a commission type.

    Unknown or deleted types pay nothing rather than failing, since
    historical entries may still reference them.
    """
    structure = rates.get(type_code or "")
    if structure is None:
        return CommissionStructure(type_code=type_code or "")
    return structure
