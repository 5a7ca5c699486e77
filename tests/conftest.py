"""
Shared fixtures: feedback workbooks built in memory and sample records.
"""
import os

import pytest

# Keep the web UI and CLI away from any developer .env values
os.environ.setdefault("FEEDBACK_API_URL", "http://feedback.test/api")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from coach_feedback.config.config_manager import Letterhead
from coach_feedback.models.feedback_data import FeedbackRating

from tests.factories import make_record, sheet_rows, workbook_bytes


@pytest.fixture
def single_sheet_workbook():
    return workbook_bytes([("12301", sheet_rows())])


@pytest.fixture
def three_sheet_workbook():
    """Two good sheets and one whose report date cannot be parsed."""
    return workbook_bytes([
        ("12301", sheet_rows()),
        ("12302", sheet_rows(train_no="12302", train_name="Shatabdi", report_date="not a date")),
        ("12303", sheet_rows(train_no="12303", train_name="Duronto", report_date="2024-01-16")),
    ])


@pytest.fixture
def letterhead():
    return Letterhead(
        name="Young Bengal Co-Operative Labour Contract Society Ltd.",
        address="Regd. Off: 14/1, Nirode Behari Mullick Road, Kolkata - 700 006",
        phone="033-6535 8154",
        email="ybcolcs@yahoo.in",
    )


@pytest.fixture
def valid_record():
    return make_record()


@pytest.fixture
def mixed_psi_records():
    """Three records with PSI 8, 9 and 10."""
    return [
        make_record(feedback_no=1, psi=8),
        make_record(feedback_no=2, psi=9, feedback_rating=None, feedback_text="Very clean"),
        make_record(feedback_no=3, psi=10, feedback_rating=FeedbackRating.EXCELLENT),
    ]
