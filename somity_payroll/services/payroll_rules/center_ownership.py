"""
Somity Payroll - Center Ownership Resolver

Decides whether a collection belongs to the collecting employee's own
book of business (OWN) or was made while covering someone else's center
(OFFICE).

Resolution order:
1. Center registered for the record's (branch, code):
   - explicit OFFICE type on the center wins
   - otherwise OWN when the center is assigned to the collector
2. No center at that branch, but the code is registered exactly once
   across all branches: the center was moved, so step 1 is applied to
   its current registration.
3. No registration at all: odd codes are OWN, even codes OFFICE.

The stored recorded_type on a record is never consulted. Master data
edits reclassify historical records on the next pass.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

from somity_payroll.schemas.payroll import Center, CollectionRecord, OwnershipEnum


logger = logging.getLogger(__name__)

OWN: OwnershipEnum = "OWN"
OFFICE: OwnershipEnum = "OFFICE"


class CenterMasterLookup:
    """Index over a snapshot of Center master records."""

    def __init__(self, centers: Iterable[Center] = ()):
        self._by_branch: Dict[Tuple[str, int], Center] = {}
        self._by_code: Dict[int, List[Center]] = {}
        for center in centers:
            self._by_branch.setdefault((center.branch_id, center.center_code), center)
            self._by_code.setdefault(center.center_code, []).append(center)

    def get(self, branch_id: str, center_code: int) -> Optional[Center]:
        return self._by_branch.get((branch_id, center_code))

    def unique_by_code(self, center_code: int) -> Optional[Center]:
        """The only center registered under this code in any branch, if exactly one exists."""
        matches = self._by_code.get(center_code, [])
        if len(matches) == 1:
            return matches[0]
        return None

    def locate(self, record: CollectionRecord) -> Optional[Center]:
        center = self.get(record.branch_id, record.center_code)
        if center is not None:
            return center
        return self.unique_by_code(record.center_code)


CenterSource = Union[CenterMasterLookup, Iterable[Center]]


def as_lookup(centers: CenterSource) -> CenterMasterLookup:
    if isinstance(centers, CenterMasterLookup):
        return centers
    return CenterMasterLookup(centers)


def classify_against_center(center: Center, employee_id: str) -> OwnershipEnum:
    if center.type == OFFICE:
        return OFFICE
    if center.assigned_employee_id == employee_id:
        return OWN
    return OFFICE


def parity_ownership(center_code: int) -> OwnershipEnum:
    return OWN if center_code % 2 != 0 else OFFICE


class CenterOwnershipResolver:
    """Classifies collection records against current center master data."""

    def __init__(self, centers: CenterSource):
        self.lookup = as_lookup(centers)

    def resolve(self, record: CollectionRecord) -> OwnershipEnum:
        center = self.lookup.locate(record)
        if center is None:
            ownership = parity_ownership(record.center_code)
            logger.debug(
                f"Center {record.center_code} not registered; parity fallback gives {ownership}"
            )
            return ownership
        return classify_against_center(center, record.employee_id)

    def effective_branch_id(self, record: CollectionRecord) -> str:
        """Branch the record belongs to under the current registration of its center."""
        center = self.lookup.locate(record)
        if center is None:
            return record.branch_id
        return center.branch_id

    def rehome(self, record: CollectionRecord) -> CollectionRecord:
        """Copy of the record moved to its center's current branch, if the center moved."""
        branch_id = self.effective_branch_id(record)
        if branch_id == record.branch_id:
            return record
        return record.model_copy(update={"branch_id": branch_id})


def resolve_ownership(record: CollectionRecord, centers: CenterSource) -> OwnershipEnum:
    """Classify a single record as OWN or OFFICE."""
    return CenterOwnershipResolver(centers).resolve(record)
