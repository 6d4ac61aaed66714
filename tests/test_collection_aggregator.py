"""
Somity Payroll - Collection Aggregator Tests
"""

from decimal import Decimal

from somity_payroll.schemas.payroll import Center, CollectionRecord
from somity_payroll.services.payroll_rules import (
    CollectionAggregator,
    aggregate_collections,
    branch_total_collection,
    records_in_month,
)


def make_record(center_code, amount, employee_id="emp-1", branch_id="BR-1", created_at="2024-03-05", loan="0"):
    return CollectionRecord(
        employee_id=employee_id,
        branch_id=branch_id,
        center_code=center_code,
        amount=amount,
        loan_amount=loan,
        created_at=created_at,
    )


CENTERS = [
    Center(center_code=10, branch_id="BR-1", assigned_employee_id="emp-1"),
    Center(center_code=20, branch_id="BR-1", assigned_employee_id="emp-1"),
    Center(center_code=30, branch_id="BR-1", assigned_employee_id="emp-2"),
]


class TestAggregate:
    """Own/office split for one employee and month."""

    def test_own_and_office_sums(self):
        records = [
            make_record(10, "1000"),
            make_record(20, "500"),
            make_record(30, "250"),
        ]

        summary = aggregate_collections("emp-1", "2024-03", records, CENTERS)

        assert summary.own_collection == Decimal("1500")
        assert summary.office_collection == Decimal("250")

    def test_center_counts_are_distinct_codes(self):
        """Three records at one center count as one center."""
        records = [
            make_record(10, "100"),
            make_record(10, "100"),
            make_record(10, "100"),
            make_record(30, "50"),
            make_record(30, "50"),
        ]

        summary = aggregate_collections("emp-1", "2024-03", records, CENTERS)

        assert summary.own_center_count == 1
        assert summary.office_center_count == 1
        assert summary.own_collection == Decimal("300")

    def test_loan_collection_summed_on_both_sides(self):
        records = [
            make_record(10, "100", loan="40"),
            make_record(30, "100", loan="60"),
        ]

        summary = aggregate_collections("emp-1", "2024-03", records, CENTERS)

        assert summary.total_loan_collection == Decimal("100")

    def test_filters_other_employees_and_months(self):
        records = [
            make_record(10, "100"),
            make_record(10, "900", employee_id="emp-2"),
            make_record(10, "700", created_at="2024-02-28"),
            make_record(10, "800", created_at="2024-04-01T00:00:00"),
        ]

        summary = aggregate_collections("emp-1", "2024-03", records, CENTERS)

        assert summary.own_collection == Decimal("100")
        assert summary.office_collection == Decimal("0")

    def test_malformed_amounts_count_as_zero(self):
        records = [make_record(10, "not-a-number", loan="NaN"), make_record(10, "200")]

        summary = aggregate_collections("emp-1", "2024-03", records, CENTERS)

        assert summary.own_collection == Decimal("200")
        assert summary.total_loan_collection == Decimal("0")

    def test_no_records(self):
        summary = aggregate_collections("emp-1", "2024-03", [], CENTERS)

        assert summary.own_collection == Decimal("0")
        assert summary.own_center_count == 0
        assert summary.office_center_count == 0


class TestRetroactiveReclassification:
    """Master data edits reclassify historical records."""

    def test_reassigning_center_changes_split(self):
        """Same records, different assignment, different split; records untouched."""
        records = [make_record(30, "400"), make_record(10, "100")]
        before = [
            Center(center_code=10, branch_id="BR-1", assigned_employee_id="emp-1"),
            Center(center_code=30, branch_id="BR-1", assigned_employee_id="emp-2"),
        ]
        after = [
            Center(center_code=10, branch_id="BR-1", assigned_employee_id="emp-1"),
            Center(center_code=30, branch_id="BR-1", assigned_employee_id="emp-1"),
        ]
        snapshot = [record.model_dump() for record in records]

        first = aggregate_collections("emp-1", "2024-03", records, before)
        second = aggregate_collections("emp-1", "2024-03", records, after)

        assert first.own_collection == Decimal("100")
        assert first.office_collection == Decimal("400")
        assert second.own_collection == Decimal("500")
        assert second.office_collection == Decimal("0")
        assert [record.model_dump() for record in records] == snapshot

    def test_marking_center_office_moves_collection(self):
        records = [make_record(10, "300")]
        office = [Center(center_code=10, branch_id="BR-1", assigned_employee_id="emp-1", type="OFFICE")]

        summary = CollectionAggregator(office).aggregate("emp-1", "2024-03", records)

        assert summary.own_collection == Decimal("0")
        assert summary.office_collection == Decimal("300")


class TestBranchTotal:
    """Branch-wide collection used for the manager incentive."""

    def test_sums_amount_and_loan_for_all_employees(self):
        records = [
            make_record(10, "1000", loan="200"),
            make_record(30, "500", employee_id="emp-2", loan="100"),
            make_record(40, "999", branch_id="BR-2"),
        ]

        total = branch_total_collection("BR-1", "2024-03", records)

        assert total == Decimal("1800")

    def test_adds_pending_center_collections(self):
        records = [make_record(10, "1000")]

        total = branch_total_collection("BR-1", "2024-03", records, [Decimal("250"), "50", None])

        assert total == Decimal("1300")

    def test_ignores_other_months(self):
        records = [make_record(10, "1000", created_at="2024-02-10")]

        assert branch_total_collection("BR-1", "2024-03", records) == Decimal("0")


def test_records_in_month():
    records = [make_record(10, "1", created_at="2024-03-31"), make_record(10, "1", created_at="2024-04-01")]

    assert len(records_in_month(records, "2024-03")) == 1
