"""
Somity Payroll - Collection Aggregator

Folds collection records into the figures a salary entry needs:
own/office collection sums, distinct center counts per side, and total
loan collection. Also computes the branch-wide total used for the
manager incentive.
"""

from decimal import Decimal
from typing import Iterable, List, Set

from somity_payroll.schemas.payroll import CollectionRecord, CollectionSummary
from somity_payroll.services.payroll_rules.center_ownership import (
    OWN,
    CenterOwnershipResolver,
    CenterSource,
)
from somity_payroll.utils.numbers import ZERO, to_decimal


def records_in_month(records: Iterable[CollectionRecord], month: str) -> List[CollectionRecord]:
    return [record for record in records if record.in_month(month)]


class CollectionAggregator:
    """Aggregates collection records against a center master snapshot."""

    def __init__(self, centers: CenterSource):
        self.resolver = CenterOwnershipResolver(centers)

    def aggregate(
        self,
        employee_id: str,
        month: str,
        records: Iterable[CollectionRecord],
    ) -> CollectionSummary:
        """
        Own/office split of one employee's collections in a month.

        Center counts are distinct center codes per side, not record
        counts. Loan collection is summed regardless of side.
        """
        own_collection = ZERO
        office_collection = ZERO
        loan_collection = ZERO
        own_centers: Set[int] = set()
        office_centers: Set[int] = set()

        for record in records:
            if record.employee_id != employee_id or not record.in_month(month):
                continue

            amount = to_decimal(record.amount)
            if self.resolver.resolve(record) == OWN:
                own_collection += amount
                own_centers.add(record.center_code)
            else:
                office_collection += amount
                office_centers.add(record.center_code)
            loan_collection += to_decimal(record.loan_amount)

        return CollectionSummary(
            own_collection=own_collection,
            own_center_count=len(own_centers),
            office_collection=office_collection,
            office_center_count=len(office_centers),
            total_loan_collection=loan_collection,
        )


def branch_total_collection(
    branch_id: str,
    month: str,
    records: Iterable[CollectionRecord],
    pending_center_collections: Iterable[Decimal] = (),
) -> Decimal:
    """
    Everything collected in a branch for a month, by all employees.

    Sums amount plus loan amount of every record made in the branch,
    plus center collections still held on unsaved salary entries of the
    branch's employees.
    """
    total = ZERO
    for record in records:
        if record.branch_id == branch_id and record.in_month(month):
            total += to_decimal(record.amount) + to_decimal(record.loan_amount)
    for pending in pending_center_collections:
        total += to_decimal(pending)
    return total


def aggregate_collections(
    employee_id: str,
    month: str,
    records: Iterable[CollectionRecord],
    centers: CenterSource,
) -> CollectionSummary:
    return CollectionAggregator(centers).aggregate(employee_id, month, records)
