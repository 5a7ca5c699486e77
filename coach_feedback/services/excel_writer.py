"""
Excel export for report sheets.
Writes workbooks in the same layout the sheet extractor reads back, so an
export can be edited and re-uploaded, and an empty export doubles as the
upload template.
"""
import io
import re
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from ..models.feedback_data import FeedbackRating, ReportSheet
from .report_aggregator import ReportAggregator


class ReportWorkbookWriter:
    """
    Writes ReportSheets to an .xlsx workbook, one worksheet per sheet.

    Layout of each worksheet:
    - rows 1-2: header block ("Train No", "Train Name", "Report Date", "Date")
    - row 4: table heading
    - one row per feedback, then a TOTAL row
    - summary rows below the TOTAL row
    """

    TABLE_COLUMNS = [
        "Sr. No.",
        "Feedback No.",
        "Coach",
        "PNR",
        "Mobile No.",
        "NS-1",
        "NS-2",
        "NS-3",
        "PSI",
        "Feedback Status",
        "Feedback Text",
    ]

    COLUMN_WIDTHS = [8, 13, 9, 14, 14, 8, 8, 8, 8, 18, 60]

    TABLE_HEADER_ROW = 4
    DATE_FORMAT = 'DD/MM/YYYY'
    MAX_TITLE_LENGTH = 31

    HEADER_FILL = PatternFill(start_color="1E40AF", end_color="1E40AF", fill_type="solid")
    TOTAL_FILL = PatternFill(start_color="DCDCDC", end_color="DCDCDC", fill_type="solid")

    def __init__(self, aggregator: Optional[ReportAggregator] = None):
        """
        Initialize workbook writer.

        Args:
            aggregator: Report aggregator used for TOTAL and summary rows (optional)
        """
        self.aggregator = aggregator or ReportAggregator()
        self.logger = logging.getLogger(__name__)

    def build_workbook(self, sheets: Sequence[ReportSheet]) -> Workbook:
        """
        Build a workbook for the given sheets.

        An empty sequence yields a single blank template worksheet.
        """
        workbook = Workbook()
        workbook.remove(workbook.active)

        if not sheets:
            worksheet = workbook.create_sheet("Template")
            self._write_header_block(worksheet, None)
            self._write_table_heading(worksheet)
            self._apply_formatting(worksheet, self.TABLE_HEADER_ROW + 1)
            return workbook

        used_titles = set()
        for sheet in sheets:
            worksheet = workbook.create_sheet(self._sheet_title(sheet, used_titles))
            self._write_sheet(worksheet, sheet)

        self.logger.debug(f"Built workbook with {len(sheets)} sheets")
        return workbook

    def save(self, sheets: Sequence[ReportSheet], file_path: Union[str, Path]) -> Path:
        """
        Write sheets to a file, creating parent directories.

        Returns:
            Path: The written file
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        self.build_workbook(sheets).save(file_path)
        self.logger.info(f"Wrote {len(sheets)} sheets to {file_path}")
        return file_path

    def to_bytes(self, sheets: Sequence[ReportSheet]) -> bytes:
        """Serialize sheets to .xlsx bytes."""
        buffer = io.BytesIO()
        self.build_workbook(sheets).save(buffer)
        return buffer.getvalue()

    @staticmethod
    def filename_for(sheets: Sequence[ReportSheet]) -> str:
        if not sheets:
            return "feedback_upload_template.xlsx"
        first = sheets[0]
        day = first.report_date.isoformat() if first.report_date else 'undated'
        return f"feedbacks_{first.train_no}_{day}.xlsx"

    def _sheet_title(self, sheet: ReportSheet, used_titles: set) -> str:
        day = sheet.report_date.isoformat() if sheet.report_date else 'undated'
        base = re.sub(r'[\[\]:*?/\\]', '-', f"{sheet.train_no} {day}")[:self.MAX_TITLE_LENGTH]
        title, suffix = base, 2
        while title.lower() in used_titles:
            tag = f" ({suffix})"
            title = base[:self.MAX_TITLE_LENGTH - len(tag)] + tag
            suffix += 1
        used_titles.add(title.lower())
        return title

    def _write_header_block(self, worksheet: Worksheet, sheet: Optional[ReportSheet]) -> None:
        feedback_date = None
        if sheet is not None and sheet.records:
            feedback_date = sheet.records[0].feedback_date
        if sheet is not None and feedback_date is None:
            feedback_date = sheet.report_date

        rows = [
            [("Train No", sheet.train_no if sheet else None),
             ("Train Name", (sheet.train_name or None) if sheet else None)],
            [("Report Date", sheet.report_date if sheet else None),
             ("Date", feedback_date)],
        ]
        # label in A/D, value beside it in B/E
        for row_idx, pairs in enumerate(rows, 1):
            for pair_idx, (label, value) in enumerate(pairs):
                label_col = 1 + pair_idx * 3
                worksheet.cell(row=row_idx, column=label_col, value=label).font = Font(bold=True)
                cell = worksheet.cell(row=row_idx, column=label_col + 1, value=value)
                if row_idx == 2:
                    cell.number_format = self.DATE_FORMAT

    def _write_table_heading(self, worksheet: Worksheet) -> None:
        for col_idx, header in enumerate(self.TABLE_COLUMNS, 1):
            cell = worksheet.cell(row=self.TABLE_HEADER_ROW, column=col_idx, value=header)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.alignment = Alignment(horizontal='center')
            cell.fill = self.HEADER_FILL

    def _write_sheet(self, worksheet: Worksheet, sheet: ReportSheet) -> None:
        self._write_header_block(worksheet, sheet)
        self._write_table_heading(worksheet)

        row_idx = self.TABLE_HEADER_ROW
        for position, record in enumerate(sheet.records, 1):
            row_idx += 1
            values = [
                position,
                record.feedback_no,
                record.coach_no,
                record.pnr,  # text, so leading zeros survive
                record.mobile,
                record.ns1,
                record.ns2,
                record.ns3,
                record.psi,
                record.status_label,
                record.feedback_text or None,
            ]
            for col_idx, value in enumerate(values, 1):
                worksheet.cell(row=row_idx, column=col_idx, value=value)

        totals = self.aggregator.compute_totals(sheet.records)
        row_idx += 1
        total_values = ["TOTAL", None, None, None, None,
                        totals.ns1_total, totals.ns2_total, totals.ns3_total, totals.psi_total]
        for col_idx in range(1, len(self.TABLE_COLUMNS) + 1):
            cell = worksheet.cell(row=row_idx, column=col_idx,
                                  value=total_values[col_idx - 1] if col_idx <= len(total_values) else None)
            cell.font = Font(bold=True)
            cell.fill = self.TOTAL_FILL

        summary = [
            ("Total feedbacks", totals.count),
            ("Total No percentage of PSI for the Rake", f"{totals.percentage_at_psi}%"),
            ("Average PSI of Rake for the round trip", totals.average_psi),
        ]
        row_idx += 1
        for label, value in summary:
            row_idx += 1
            worksheet.cell(row=row_idx, column=1, value=label).font = Font(bold=True)
            worksheet.cell(row=row_idx, column=6, value=value)

        self._apply_formatting(worksheet, self.TABLE_HEADER_ROW + len(sheet.records))

    def _apply_formatting(self, worksheet: Worksheet, last_data_row: int) -> None:
        """Column widths, input validation on the data rows, frozen heading."""
        for col_idx, width in enumerate(self.COLUMN_WIDTHS, 1):
            worksheet.column_dimensions[get_column_letter(col_idx)].width = width

        # leave room below the data so the template can be filled in
        last_row = max(last_data_row, self.TABLE_HEADER_ROW + 200)
        first_row = self.TABLE_HEADER_ROW + 1

        count_validation = DataValidation(
            type="whole",
            operator="greaterThanOrEqual",
            formula1=0,
            showErrorMessage=True,
            errorTitle="Invalid Number",
            error="NS-1, NS-2, NS-3 and PSI must be whole numbers of 0 or more"
        )
        count_validation.add(f"F{first_row}:I{last_row}")
        worksheet.add_data_validation(count_validation)

        statuses = [rating.label for rating in FeedbackRating] + ['TEXT']
        status_validation = DataValidation(
            type="list",
            formula1='"' + ','.join(statuses) + '"',
            allow_blank=True,
            showErrorMessage=True,
            errorTitle="Invalid Status",
            error=f"Status must be one of: {', '.join(statuses)}"
        )
        status_validation.add(f"J{first_row}:J{last_row}")
        worksheet.add_data_validation(status_validation)

        worksheet.freeze_panes = f"A{first_row}"
