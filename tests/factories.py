"""
Builders for test workbooks and records.
"""
import io
from datetime import date

from openpyxl import Workbook

from coach_feedback.models.feedback_data import FeedbackRating, FeedbackRecord


TABLE_HEADING = [
    "Sr. No.", "Feedback No.", "Coach", "PNR", "Mobile No.",
    "NS-1", "NS-2", "NS-3", "PSI", "Feedback Status", "Feedback Text",
]


def sheet_rows(train_no="12301", train_name="Rajdhani Express", report_date="15/01/2024", rows=None):
    """Rows of one report worksheet: header block, table heading, data, TOTAL."""
    if rows is None:
        rows = [
            [1, 1, "B1", "1234567890", "9876543210", 1, 0, 2, 8, "GOOD", None],
            [2, 2, "B2", "2345678901", "9876543211", 0, 1, 0, 9, "TEXT", "Clean coach, staff were polite"],
        ]
    block = [
        ["Train No", train_no, None, "Train Name", train_name],
        ["Report Date", report_date],
        [],
        list(TABLE_HEADING),
    ]
    block.extend(rows)
    block.append(["TOTAL", None, None, None, None, 1, 1, 2, 17, None, None])
    block.append([])
    block.append(["Total feedbacks", None, None, None, None, len(rows)])
    return block


def workbook_bytes(sheets):
    """
    Build an .xlsx in memory.

    Args:
        sheets: list of (title, rows)
    """
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets:
        worksheet = workbook.create_sheet(title)
        for row in rows:
            worksheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def make_record(**overrides):
    """A valid rated record; override any field."""
    values = dict(
        feedback_no=1,
        train_no="12301",
        train_name="Rajdhani Express",
        coach_no="B1",
        pnr="1234567890",
        mobile="9876543210",
        ns1=1,
        ns2=0,
        ns3=2,
        psi=8,
        feedback_date=date(2024, 1, 15),
        report_date=date(2024, 1, 15),
        feedback_rating=FeedbackRating.GOOD,
    )
    values.update(overrides)
    return FeedbackRecord(**values)


