"""
Unit tests for the report aggregator.
"""
from datetime import date

import pytest

from coach_feedback.services.report_aggregator import AggregationError, ReportAggregator
from tests.factories import make_record


@pytest.fixture
def aggregator():
    return ReportAggregator()


def test_totals_for_three_records(aggregator, mixed_psi_records):
    """PSI 8, 9 and 10 give a total of 27, "9.00" percentage and "27.00" average."""
    totals = aggregator.compute_totals(mixed_psi_records)

    assert totals.count == 3
    assert totals.psi_total == 27
    assert totals.percentage_at_psi == "9.00"
    assert totals.average_psi == "27.00"


def test_two_records_psi_80_and_100(aggregator):
    """PSI 80 and 100 give "90.00" percentage and the literal sum "180.00" as average."""
    records = [make_record(psi=80), make_record(feedback_no=2, psi=100)]

    totals = aggregator.compute_totals(records)

    assert totals.count == 2
    assert totals.psi_total == 180
    assert totals.percentage_at_psi == "90.00"
    assert totals.average_psi == "180.00"


def test_ns_totals(aggregator):
    records = [make_record(ns1=1, ns2=2, ns3=3), make_record(feedback_no=2, ns1=4, ns2=0, ns3=1)]
    totals = aggregator.compute_totals(records)
    assert (totals.ns1_total, totals.ns2_total, totals.ns3_total) == (5, 2, 4)


def test_empty_totals_are_zero_strings(aggregator):
    totals = aggregator.compute_totals([])
    assert totals.count == 0
    assert totals.percentage_at_psi == "0"
    assert totals.average_psi == "0"


def test_totals_to_dict(aggregator, mixed_psi_records):
    payload = aggregator.compute_totals(mixed_psi_records).to_dict()
    assert payload == {
        "count": 3,
        "ns1": 3,
        "ns2": 0,
        "ns3": 6,
        "psi": 27,
        "percentageAtPSI": "9.00",
        "averagePSI": "27.00",
    }


def test_build_sheet_keeps_order_and_first_train_name(aggregator):
    records = [
        make_record(feedback_no=3, train_name=""),
        make_record(feedback_no=1, train_name="Rajdhani Express"),
    ]
    sheet = aggregator.build_sheet(records)

    assert sheet.train_name == "Rajdhani Express"
    assert [r.feedback_no for r in sheet.records] == [3, 1]


def test_build_sheet_rejects_empty_and_mixed(aggregator):
    with pytest.raises(AggregationError):
        aggregator.build_sheet([])
    with pytest.raises(AggregationError):
        aggregator.build_sheet([make_record(), make_record(train_no="12302")])


def test_group_into_sheets_by_train_and_report_date(aggregator):
    records = [
        make_record(feedback_no=1),
        make_record(feedback_no=1, train_no="12302"),
        make_record(feedback_no=2),
        make_record(feedback_no=1, report_date=date(2024, 1, 16)),
    ]
    sheets = aggregator.group_into_sheets(records)

    assert [(s.train_no, s.report_date) for s in sheets] == [
        ("12301", date(2024, 1, 15)),
        ("12302", date(2024, 1, 15)),
        ("12301", date(2024, 1, 16)),
    ]
    assert [r.feedback_no for r in sheets[0].records] == [1, 2]


def test_aggregate_and_summarize(aggregator, mixed_psi_records):
    sheet, totals = aggregator.aggregate(mixed_psi_records)
    assert totals.count == len(sheet.records) == 3

    summary = aggregator.summarize([sheet])[0]
    assert summary["trainNo"] == "12301"
    assert summary["reportDate"] == "2024-01-15"
    assert summary["totals"]["averagePSI"] == "27.00"
