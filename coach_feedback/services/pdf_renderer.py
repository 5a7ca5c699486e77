"""
PDF rendering for feedback reports.

One renderer covers all three layouts: a consolidated report (one page per
train sheet), a single-train report, and a one-record detail sheet. Every
page carries the organization letterhead footer and a "Page X of Y" counter.
"""
import io
import logging
from datetime import date
from enum import Enum
from typing import List, Optional, Sequence, Union
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..config.config_manager import Letterhead
from ..models.feedback_data import FeedbackRecord, ReportSheet
from .report_aggregator import ReportAggregator


BRAND_BLUE = colors.Color(30 / 255, 64 / 255, 175 / 255)
STRIPE_GREY = colors.Color(245 / 255, 245 / 255, 245 / 255)
TOTAL_GREY = colors.Color(220 / 255, 220 / 255, 220 / 255)
RULE_GREY = colors.Color(200 / 255, 200 / 255, 200 / 255)
FOOTER_GREY = colors.Color(100 / 255, 100 / 255, 100 / 255)


class RenderError(Exception):
    """Raised when a report cannot be rendered from the given data."""
    pass


class LayoutMode(Enum):
    CONSOLIDATED = "consolidated"
    SINGLE = "single"
    DETAIL = "detail"


def format_report_date(value: Optional[date]) -> str:
    """dd/mm/yyyy, blank for a missing date."""
    return value.strftime('%d/%m/%Y') if value else ''


def _format_metric(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _numbered_canvas(letterhead: Letterhead):
    """
    Build a canvas class that stamps the footer once the page count is known.
    """

    class NumberedCanvas(canvas.Canvas):

        def __init__(self, *args, **kwargs):
            canvas.Canvas.__init__(self, *args, **kwargs)
            self._saved_page_states = []

        def showPage(self):
            self._saved_page_states.append(dict(self.__dict__))
            self._startPage()

        def save(self):
            page_count = len(self._saved_page_states)
            for state in self._saved_page_states:
                self.__dict__.update(state)
                self._draw_footer(page_count)
                canvas.Canvas.showPage(self)
            canvas.Canvas.save(self)

        def _draw_footer(self, page_count: int) -> None:
            width, _ = self._pagesize
            center = width / 2
            self.saveState()
            self.setStrokeColor(RULE_GREY)
            self.line(20 * mm, 20 * mm, width - 20 * mm, 20 * mm)
            self.setFont('Helvetica', 8)
            self.setFillColor(FOOTER_GREY)
            self.drawCentredString(center, 16 * mm, letterhead.name)
            self.drawCentredString(center, 12 * mm, letterhead.address)
            self.drawCentredString(center, 8 * mm, letterhead.contact_line)
            self.drawCentredString(center, 4 * mm, f"Page {self._pageNumber} of {page_count}")
            self.restoreState()

    return NumberedCanvas


class PdfRenderer:
    """
    Renders report sheets and feedback records to PDF bytes.
    """

    COLUMN_HEADERS = [
        'Sr. No.', 'Feedback No.', 'Coach', 'PNR', 'Mobile No.',
        'NS-1', 'NS-2', 'NS-3', 'PSI', 'FEEDBACK STATUS',
    ]

    # millimetres, summing to the 190mm printable width of A4 with 10mm margins
    COLUMN_WIDTHS = (13, 25, 15, 25, 25, 12, 12, 12, 10, 40)

    SUMMARY_LABELS = (
        'Total feedbacks',
        'Total No percentage of PSI for the Rake',
        'Average PSI of Rake for the round trip',
    )

    def __init__(self, letterhead: Letterhead, aggregator: Optional[ReportAggregator] = None):
        """
        Initialize PDF renderer.

        Args:
            letterhead: Organization strings for the header and footer
            aggregator: Report aggregator used for totals (optional)
        """
        self.letterhead = letterhead
        self.aggregator = aggregator or ReportAggregator()
        self.logger = logging.getLogger(__name__)
        self._styles = self._build_styles()

    def render(self, mode: LayoutMode, payload: Union[Sequence[ReportSheet], ReportSheet, FeedbackRecord]) -> bytes:
        """
        Render a document in the given layout.

        Args:
            mode: Layout to use
            payload: Sheets (consolidated), one sheet (single) or one record (detail)

        Returns:
            bytes: The PDF document

        Raises:
            RenderError: If there is nothing to render
        """
        if mode is LayoutMode.CONSOLIDATED:
            sheets = list(payload or [])
            if not sheets:
                raise RenderError("No sheet data to generate PDF")
            story = []
            for index, sheet in enumerate(sheets):
                if index > 0:
                    story.append(PageBreak())
                story.extend(self._sheet_story(sheet))
            title = f"Feedback report {sheets[0].train_no}"
        elif mode is LayoutMode.SINGLE:
            if payload is None:
                raise RenderError("No sheet data to generate PDF")
            story = self._sheet_story(payload)
            title = f"Feedback report {payload.train_no}"
        elif mode is LayoutMode.DETAIL:
            if payload is None:
                raise RenderError("No feedback to generate PDF")
            story = self._detail_story(payload)
            title = f"Feedback #{payload.feedback_no}"
        else:
            raise RenderError(f"Unknown layout mode: {mode}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=10 * mm,
            rightMargin=10 * mm,
            topMargin=10 * mm,
            bottomMargin=25 * mm,
            title=title,
            author=self.letterhead.name,
        )
        doc.build(story, canvasmaker=_numbered_canvas(self.letterhead))
        data = buffer.getvalue()
        self.logger.info(f"Rendered {mode.value} PDF ({len(data)} bytes)")
        return data

    def render_consolidated(self, sheets: Sequence[ReportSheet]) -> bytes:
        return self.render(LayoutMode.CONSOLIDATED, sheets)

    def render_single(self, sheet: ReportSheet) -> bytes:
        return self.render(LayoutMode.SINGLE, sheet)

    def render_detail(self, record: FeedbackRecord) -> bytes:
        return self.render(LayoutMode.DETAIL, record)

    @staticmethod
    def filename_for(mode: LayoutMode, payload) -> str:
        """
        Deterministic download name for a rendered document.

        Consolidated and single reports are named after the (first) sheet's
        train number and report date; detail sheets after the feedback number
        and train number.
        """
        if mode is LayoutMode.DETAIL:
            return f"feedback_{payload.feedback_no}_{payload.train_no}.pdf"

        sheet = payload[0] if mode is LayoutMode.CONSOLIDATED else payload
        day = sheet.report_date.isoformat() if sheet.report_date else 'undated'
        return f"feedbacks_{sheet.train_no}_{day}.pdf"

    def _build_styles(self) -> dict:
        base = getSampleStyleSheet()
        return {
            'org': ParagraphStyle('Org', parent=base['Normal'], fontName='Helvetica-Bold',
                                  fontSize=14, leading=17, textColor=BRAND_BLUE),
            'org_centered': ParagraphStyle('OrgCentered', parent=base['Normal'], fontName='Helvetica',
                                           fontSize=14, leading=17, textColor=BRAND_BLUE, alignment=TA_CENTER),
            'letterhead': ParagraphStyle('Letterhead', parent=base['Normal'], fontSize=10, leading=13),
            'title': ParagraphStyle('DetailTitle', parent=base['Normal'], fontSize=20, leading=24,
                                    textColor=BRAND_BLUE, alignment=TA_CENTER),
            'subtitle': ParagraphStyle('DetailSubtitle', parent=base['Normal'], fontSize=14, leading=18,
                                       alignment=TA_CENTER),
            'section': ParagraphStyle('Section', parent=base['Normal'], fontName='Helvetica-Bold',
                                      fontSize=12, leading=15, spaceBefore=6, spaceAfter=4),
            'body': ParagraphStyle('Body', parent=base['Normal'], fontSize=10, leading=14),
        }

    def _letterhead_block(self) -> List:
        return [
            Paragraph(escape(self.letterhead.name), self._styles['org']),
            Paragraph(escape(self.letterhead.address), self._styles['letterhead']),
            Paragraph(escape(self.letterhead.contact_line), self._styles['letterhead']),
            Spacer(1, 4 * mm),
        ]

    def _context_line(self, sheet: ReportSheet) -> Table:
        """Train number left, train name centered, report date right."""
        width = sum(self.COLUMN_WIDTHS) * mm
        table = Table(
            [[f"Train No: {sheet.train_no}",
              f"Train Name: {sheet.train_name}",
              f"Report Date: {format_report_date(sheet.report_date)}"]],
            colWidths=[width / 3] * 3,
        )
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('ALIGN', (0, 0), (0, 0), 'LEFT'),
            ('ALIGN', (1, 0), (1, 0), 'CENTER'),
            ('ALIGN', (2, 0), (2, 0), 'RIGHT'),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
            ('RIGHTPADDING', (0, 0), (-1, -1), 0),
        ]))
        return table

    def _records_table(self, sheet: ReportSheet, totals) -> Table:
        rows = [list(self.COLUMN_HEADERS)]
        for index, record in enumerate(sheet.records, start=1):
            rows.append([
                index,
                record.feedback_no if record.feedback_no is not None else '',
                record.coach_no,
                record.pnr,
                record.mobile,
                record.ns1,
                record.ns2,
                record.ns3,
                record.psi if record.psi is not None else '',
                record.status_label,
            ])
        rows.append(['TOTAL', '', '', '', '',
                     totals.ns1_total, totals.ns2_total, totals.ns3_total, totals.psi_total, ''])

        total_row = len(rows) - 1
        table = Table(rows, colWidths=[w * mm for w in self.COLUMN_WIDTHS], repeatRows=1)
        commands = [
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, 0), 7),
            ('BACKGROUND', (0, 0), (-1, 0), BRAND_BLUE),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 1), (-1, -1), 8),
            ('FONTNAME', (0, total_row), (-1, total_row), 'Helvetica-Bold'),
            ('BACKGROUND', (0, total_row), (-1, total_row), TOTAL_GREY),
            ('GRID', (0, 0), (-1, -1), 0.25, RULE_GREY),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]
        if sheet.records:
            commands.append(('ROWBACKGROUNDS', (0, 1), (-1, total_row - 1), [colors.white, STRIPE_GREY]))
        table.setStyle(TableStyle(commands))
        return table

    def _summary_block(self, totals) -> Table:
        values = [str(totals.count), f"{totals.percentage_at_psi}%", totals.average_psi]
        table = Table(list(zip(self.SUMMARY_LABELS, values)), colWidths=[110 * mm, 60 * mm], hAlign='LEFT')
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]))
        return table

    def _sheet_story(self, sheet: ReportSheet) -> List:
        totals = self.aggregator.compute_totals(sheet.records)
        story = self._letterhead_block()
        story.append(self._context_line(sheet))
        story.append(Spacer(1, 4 * mm))
        story.append(self._records_table(sheet, totals))
        story.append(Spacer(1, 8 * mm))
        story.append(self._summary_block(totals))
        return story

    def _detail_story(self, record: FeedbackRecord) -> List:
        body = self._styles['body']
        section = self._styles['section']

        def line(*parts: str) -> Paragraph:
            return Paragraph('&nbsp;&nbsp;&nbsp;&nbsp;'.join(escape(p) for p in parts), body)

        story = [
            Paragraph(escape(self.letterhead.name), self._styles['org_centered']),
            Spacer(1, 4 * mm),
            Paragraph('Feedback Details', self._styles['title']),
            Spacer(1, 2 * mm),
            Paragraph(f"Feedback #{escape(str(record.feedback_no))}", self._styles['subtitle']),
            Spacer(1, 4 * mm),

            Paragraph('Train Information', section),
            line(f"Train No: {record.train_no}", f"Date: {format_report_date(record.feedback_date)}"),
            line(f"Train Name: {record.train_name}"),
            line(f"Coach: {record.coach_no}"),

            Paragraph('Contact Information', section),
            line(f"PNR: {record.pnr}", f"Mobile: {record.mobile}"),

            Paragraph('Technical Data', section),
            line(f"NS-1: {record.ns1 or 0}", f"NS-2: {record.ns2 or 0}", f"NS-3: {record.ns3 or 0}"),
            line(f"PSI: {record.psi if record.psi is not None else 'N/A'}"),
            line(f"Report Date: {format_report_date(record.report_date)}"),
        ]

        metrics = []
        if record.total_feedbacks is not None:
            metrics.append(line(f"Total Feedbacks: {record.total_feedbacks}"))
        if record.total_percentage_at_psi is not None:
            metrics.append(line(f"Total % at PSI: {_format_metric(record.total_percentage_at_psi)}%"))
        if record.average_psi_round_trip is not None:
            metrics.append(line(f"Avg PSI Round Trip: {_format_metric(record.average_psi_round_trip)}"))
        if metrics:
            story.append(Paragraph('Additional Metrics', section))
            story.extend(metrics)

        story.append(Paragraph('Feedback', section))
        if record.feedback_text and record.feedback_text.strip():
            story.append(Paragraph(escape(record.feedback_text.strip()), body))
        elif record.feedback_rating is not None:
            story.append(Paragraph(record.feedback_rating.label, body))

        return story
