"""
Unit tests for the feedback data models.
"""
from datetime import date, datetime

import pytest

from coach_feedback.models.feedback_data import (
    ExtractionError,
    FeedbackRating,
    FeedbackRecord,
    RatedFeedback,
    RecordFormatError,
    StagedRecord,
    TextFeedback,
    ValidationResult,
    as_text,
    parse_count,
    parse_date,
)
from tests.factories import make_record


@pytest.mark.parametrize("raw,expected", [
    ("good", FeedbackRating.GOOD),
    ("Very Good", FeedbackRating.VERY_GOOD),
    ("VERY_GOOD", FeedbackRating.VERY_GOOD),
    ("  excellent ", FeedbackRating.EXCELLENT),
    ("AVERAGE", FeedbackRating.AVERAGE),
])
def test_rating_parse_ignores_case_and_spacing(raw, expected):
    """Test that ratings match regardless of case, spaces or underscores."""
    assert FeedbackRating.parse(raw) is expected


def test_rating_parse_blank_and_unknown():
    """Test that blank ratings are None and unknown ones raise."""
    assert FeedbackRating.parse(None) is None
    assert FeedbackRating.parse("   ") is None
    with pytest.raises(RecordFormatError) as exc_info:
        FeedbackRating.parse("superb")
    assert exc_info.value.field_name == "feedbackRating"


def test_rating_label_is_upper_case():
    assert FeedbackRating.VERY_GOOD.label == "VERY GOOD"


def test_parse_date_formats():
    """Test the accepted date inputs."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)
    assert parse_date("15/01/2024") == date(2024, 1, 15)
    assert parse_date("2024-01-15T00:00:00.000Z") == date(2024, 1, 15)
    assert parse_date(datetime(2024, 1, 15, 10, 30)) == date(2024, 1, 15)
    assert parse_date("") is None
    with pytest.raises(RecordFormatError):
        parse_date("yesterday", "reportDate")


def test_parse_count_rejects_negative_and_fractional():
    assert parse_count("3", "ns1") == 3
    assert parse_count(4.0, "ns1") == 4
    assert parse_count(None, "ns1") == 0
    with pytest.raises(RecordFormatError):
        parse_count(-1, "ns1")
    with pytest.raises(RecordFormatError):
        parse_count(2.5, "psi")
    with pytest.raises(RecordFormatError):
        parse_count("many", "ns2")


def test_as_text_drops_excel_float_suffix():
    assert as_text(1234567890.0) == "1234567890"
    assert as_text(None) == ""
    assert as_text(" B1 ") == "B1"


def test_feedback_variant():
    """Test that the tagged variant reflects exactly one populated field."""
    rated = make_record()
    assert rated.feedback == RatedFeedback(FeedbackRating.GOOD)

    text = make_record(feedback_rating=None, feedback_text="  Good service ")
    assert text.feedback == TextFeedback("Good service")

    assert make_record(feedback_rating=None).feedback is None
    assert make_record(feedback_text="Nice").feedback is None


def test_with_feedback_replaces_the_other_variant():
    record = make_record().with_feedback(TextFeedback("Clean toilets"))
    assert record.feedback_rating is None
    assert record.feedback_text == "Clean toilets"
    assert record.status_label == "TEXT"

    record = record.with_feedback(RatedFeedback(FeedbackRating.POOR))
    assert record.feedback_text == ""
    assert record.status_label == "POOR"


def test_to_dict_uses_wire_names():
    payload = make_record(record_id="abc123").to_dict()

    assert payload["feedbackNo"] == 1
    assert payload["trainNo"] == "12301"
    assert payload["coachNo"] == "B1"
    assert payload["date"] == "2024-01-15"
    assert payload["reportDate"] == "2024-01-15"
    assert payload["feedbackRating"] == "good"
    assert payload["_id"] == "abc123"
    assert "_id" not in make_record().to_dict()


def test_from_dict_coerces_service_payload():
    """Test building a record from the persistence service's JSON."""
    record = FeedbackRecord.from_dict({
        "_id": "65a1",
        "feedbackNo": "7",
        "trainNo": 12301,
        "trainName": "Rajdhani Express",
        "coachNo": "A1",
        "pnr": 1234567890,
        "mobile": "9876543210",
        "ns1": "2",
        "psi": 9,
        "date": "2024-01-15T00:00:00.000Z",
        "reportDate": "2024-01-15",
        "feedbackRating": "Very Good",
        "totalPercentageAtPSI": "85.5%",
    })

    assert record.record_id == "65a1"
    assert record.feedback_no == 7
    assert record.train_no == "12301"
    assert record.pnr == "1234567890"
    assert record.ns1 == 2
    assert record.ns2 == 0
    assert record.feedback_date == date(2024, 1, 15)
    assert record.feedback_rating is FeedbackRating.VERY_GOOD
    assert record.total_percentage_at_psi == 85.5


def test_from_dict_rejects_bad_numbers():
    with pytest.raises(RecordFormatError) as exc_info:
        FeedbackRecord.from_dict({"ns3": "-2"})
    assert exc_info.value.field_name == "ns3"


def test_apply_changes_only_touches_editable_fields():
    record = make_record(record_id="r1", total_feedbacks=40, average_psi_round_trip=8.5)
    changed = record.apply_changes({
        "coachNo": "B4",
        "psi": "10",
        "totalFeedbacks": 99,
        "_id": "other",
    })

    assert changed.coach_no == "B4"
    assert changed.psi == 10
    assert changed.total_feedbacks == 40
    assert changed.record_id == "r1"
    assert record.coach_no == "B1"


def test_staged_record_to_dict_includes_verdict():
    staged = StagedRecord(make_record(), ValidationResult(False, ["PNR must contain only numbers"]))
    payload = staged.to_dict()
    assert payload["valid"] is False
    assert payload["validationErrors"] == ["PNR must contain only numbers"]


def test_extraction_error_describe():
    assert ExtractionError(0, "12301", "Duplicate feedback number 2", row_index=6).describe() == \
        "Sheet '12301', row 6: Duplicate feedback number 2"
    assert ExtractionError(1, "12302", "Missing train number in sheet header").to_dict()["rowIndex"] is None
