"""
Somity Payroll - Center Ownership Tests

OWN/OFFICE classification against center master data.
"""

from decimal import Decimal

from somity_payroll.schemas.payroll import Center, CollectionRecord
from somity_payroll.services.payroll_rules import (
    OFFICE,
    OWN,
    CenterMasterLookup,
    CenterOwnershipResolver,
    resolve_ownership,
)


def make_record(center_code=7, employee_id="emp-1", branch_id="BR-1", **extra):
    data = dict(
        employee_id=employee_id,
        branch_id=branch_id,
        center_code=center_code,
        amount=Decimal("100"),
        created_at="2024-03-05T10:00:00",
    )
    data.update(extra)
    return CollectionRecord(**data)


class TestRegisteredCenter:
    """Records at a center registered in the record's branch."""

    def test_assigned_collector_is_own(self):
        """Collecting at your own assigned center is OWN."""
        centers = [Center(center_code=7, branch_id="BR-1", assigned_employee_id="emp-1")]

        assert resolve_ownership(make_record(), centers) == OWN

    def test_covering_collector_is_office(self):
        """Collecting at a colleague's center is OFFICE."""
        centers = [Center(center_code=7, branch_id="BR-1", assigned_employee_id="emp-2")]

        assert resolve_ownership(make_record(), centers) == OFFICE

    def test_explicit_office_type_overrides_assignment(self):
        """A center marked OFFICE stays OFFICE even for its assigned employee."""
        centers = [Center(center_code=7, branch_id="BR-1", assigned_employee_id="emp-1", type="OFFICE")]

        assert resolve_ownership(make_record(), centers) == OFFICE

    def test_unassigned_center_is_office(self):
        centers = [Center(center_code=7, branch_id="BR-1")]

        assert resolve_ownership(make_record(), centers) == OFFICE

    def test_recorded_type_is_ignored(self):
        """The type stored on the record never decides the result."""
        centers = [Center(center_code=8, branch_id="BR-1", assigned_employee_id="emp-1")]
        record = make_record(center_code=8, recorded_type="OFFICE")

        assert resolve_ownership(record, centers) == OWN

    def test_same_code_in_two_branches_uses_record_branch(self):
        centers = [
            Center(center_code=7, branch_id="BR-1", assigned_employee_id="emp-1"),
            Center(center_code=7, branch_id="BR-2", assigned_employee_id="emp-9"),
        ]

        assert resolve_ownership(make_record(branch_id="BR-1"), centers) == OWN
        assert resolve_ownership(make_record(branch_id="BR-2"), centers) == OFFICE


class TestMovedCenter:
    """Records whose center now lives in another branch."""

    def test_globally_unique_code_follows_current_registration(self):
        """A code registered once elsewhere is treated as that center."""
        centers = [Center(center_code=12, branch_id="BR-2", assigned_employee_id="emp-1")]
        record = make_record(center_code=12, branch_id="BR-1")

        assert resolve_ownership(record, centers) == OWN

    def test_moved_center_assigned_to_someone_else(self):
        centers = [Center(center_code=12, branch_id="BR-2", assigned_employee_id="emp-5")]
        record = make_record(center_code=12, branch_id="BR-1")

        assert resolve_ownership(record, centers) == OFFICE

    def test_ambiguous_code_falls_back_to_parity(self):
        """A code registered in several other branches is not guessed."""
        centers = [
            Center(center_code=11, branch_id="BR-2", assigned_employee_id="emp-5"),
            Center(center_code=11, branch_id="BR-3", assigned_employee_id="emp-6"),
        ]
        record = make_record(center_code=11, branch_id="BR-1")

        # 11 is odd
        assert resolve_ownership(record, centers) == OWN

    def test_rehome_moves_record_to_current_branch(self):
        resolver = CenterOwnershipResolver([Center(center_code=12, branch_id="BR-2")])
        record = make_record(center_code=12, branch_id="BR-1")

        moved = resolver.rehome(record)

        assert moved.branch_id == "BR-2"
        assert record.branch_id == "BR-1"

    def test_rehome_keeps_record_when_not_moved(self):
        resolver = CenterOwnershipResolver([Center(center_code=7, branch_id="BR-1")])
        record = make_record()

        assert resolver.rehome(record) is record


class TestParityFallback:
    """Records at codes with no registration at all."""

    def test_odd_code_is_own(self):
        assert resolve_ownership(make_record(center_code=3), []) == OWN

    def test_even_code_is_office(self):
        assert resolve_ownership(make_record(center_code=4), []) == OFFICE

    def test_malformed_code_counts_as_zero(self):
        """A non-numeric center code reads as 0, which is even."""
        assert resolve_ownership(make_record(center_code="abc"), []) == OFFICE


class TestCenterMasterLookup:
    """Index behaviour."""

    def test_unique_by_code(self):
        lookup = CenterMasterLookup([
            Center(center_code=1, branch_id="BR-1"),
            Center(center_code=2, branch_id="BR-1"),
            Center(center_code=2, branch_id="BR-2"),
        ])

        assert lookup.unique_by_code(1).branch_id == "BR-1"
        assert lookup.unique_by_code(2) is None
        assert lookup.unique_by_code(3) is None

    def test_resolver_accepts_prebuilt_lookup(self):
        lookup = CenterMasterLookup([Center(center_code=7, branch_id="BR-1", assigned_employee_id="emp-1")])

        assert CenterOwnershipResolver(lookup).lookup is lookup
        assert resolve_ownership(make_record(), lookup) == OWN
