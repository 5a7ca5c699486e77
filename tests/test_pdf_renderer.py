"""
Tests for PDF rendering. Output is inspected with PyMuPDF.
"""
from datetime import date

import fitz
import pytest

from coach_feedback.models.feedback_data import FeedbackRating, ReportSheet
from coach_feedback.services.pdf_renderer import LayoutMode, PdfRenderer, RenderError, format_report_date
from tests.factories import make_record


def pdf_pages(data):
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text() for page in doc]


@pytest.fixture
def renderer(letterhead):
    return PdfRenderer(letterhead)


@pytest.fixture
def sheet(mixed_psi_records):
    return ReportSheet("12301", "Rajdhani Express", date(2024, 1, 15), list(mixed_psi_records))


def test_single_sheet_report(renderer, sheet):
    data = renderer.render(LayoutMode.SINGLE, sheet)

    assert data.startswith(b"%PDF")
    pages = pdf_pages(data)
    assert len(pages) == 1
    text = pages[0]
    assert "Young Bengal Co-Operative Labour Contract Society Ltd." in text
    assert "Train No: 12301" in text
    assert "Train Name: Rajdhani Express" in text
    assert "Report Date: 15/01/2024" in text
    assert "FEEDBACK STATUS" in text
    assert "GOOD" in text
    assert "TEXT" in text
    assert "EXCELLENT" in text
    assert "TOTAL" in text
    assert "Total feedbacks" in text
    assert "9.00%" in text
    assert "27.00" in text
    assert "Page 1 of 1" in text


def test_consolidated_report_starts_each_sheet_on_new_page(renderer, sheet):
    second = ReportSheet("12302", "Shatabdi", date(2024, 1, 16),
                         [make_record(train_no="12302", report_date=date(2024, 1, 16))])

    pages = pdf_pages(renderer.render_consolidated([sheet, second]))

    assert len(pages) == 2
    assert "Train No: 12301" in pages[0]
    assert "Train No: 12302" in pages[1]
    assert "Page 2 of 2" in pages[1]


def test_long_sheet_spills_onto_more_pages(renderer):
    records = [make_record(feedback_no=n) for n in range(1, 81)]
    sheet = ReportSheet("12301", "Rajdhani Express", date(2024, 1, 15), records)

    pages = pdf_pages(renderer.render_single(sheet))

    assert len(pages) > 1
    assert f"Page 1 of {len(pages)}" in pages[0]
    assert "Total feedbacks" in pages[-1]


def test_empty_sheet_list_raises(renderer):
    with pytest.raises(RenderError, match="No sheet data to generate PDF"):
        renderer.render(LayoutMode.CONSOLIDATED, [])


def test_sheet_without_records_shows_zero_summary(renderer):
    text = pdf_pages(renderer.render_single(ReportSheet("12301", "", date(2024, 1, 15), [])))[0]
    assert "0%" in text


def test_detail_layout(renderer):
    record = make_record(
        feedback_no=7,
        feedback_rating=FeedbackRating.VERY_GOOD,
        total_feedbacks=40,
        total_percentage_at_psi=85.0,
    )

    pages = pdf_pages(renderer.render_detail(record))

    assert len(pages) == 1
    text = pages[0]
    assert "Feedback Details" in text
    assert "Feedback #7" in text
    assert "Train Information" in text
    assert "Contact Information" in text
    assert "PNR: 1234567890" in text
    assert "Technical Data" in text
    assert "Additional Metrics" in text
    assert "Total Feedbacks: 40" in text
    assert "Total % at PSI: 85%" in text
    assert "Avg PSI Round Trip" not in text
    assert "VERY GOOD" in text
    assert "Page 1 of 1" in text


def test_detail_without_metrics_and_with_text(renderer):
    record = make_record(feedback_rating=None, feedback_text="AC & lights <not> working")
    text = pdf_pages(renderer.render_detail(record))[0]

    assert "Additional Metrics" not in text
    assert "AC & lights <not> working" in text


def test_filenames(sheet, valid_record):
    assert PdfRenderer.filename_for(LayoutMode.CONSOLIDATED, [sheet]) == "feedbacks_12301_2024-01-15.pdf"
    assert PdfRenderer.filename_for(LayoutMode.SINGLE, sheet) == "feedbacks_12301_2024-01-15.pdf"
    assert PdfRenderer.filename_for(LayoutMode.DETAIL, valid_record) == "feedback_1_12301.pdf"


def test_format_report_date():
    assert format_report_date(date(2024, 1, 5)) == "05/01/2024"
    assert format_report_date(None) == ""


def test_column_widths_fit_printable_width():
    assert sum(PdfRenderer.COLUMN_WIDTHS) <= 190
    assert len(PdfRenderer.COLUMN_WIDTHS) == len(PdfRenderer.COLUMN_HEADERS)
