"""
Row extraction for uploaded feedback workbooks.
Maps spreadsheet cells to candidate FeedbackRecord objects, one report sheet
per worksheet.
"""
import io
import re
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..models.feedback_data import (
    ExtractionError,
    FeedbackRating,
    FeedbackRecord,
    RecordFormatError,
    ReportSheet,
    as_text,
    parse_count,
    parse_date,
)


class WorkbookReadError(Exception):
    """Raised when an uploaded file cannot be opened as a workbook at all."""
    pass


class SheetFormatError(Exception):
    """Raised inside the extractor when a whole sheet has to be skipped."""
    pass


@dataclass
class ExtractionResult:
    """Records, per-train sheets and errors produced from one workbook."""
    records: List[FeedbackRecord] = field(default_factory=list)
    sheets: List[ReportSheet] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)


def normalize_heading(value: Any) -> str:
    """Lowercase a heading and strip punctuation: "Mobile No." -> "mobile no", "NS-1" -> "ns 1"."""
    if value is None:
        return ''
    text = str(value).lower()
    text = re.sub(r'[.:#]', ' ', text)
    text = re.sub(r'[-_/]', ' ', text)
    return re.sub(r'\s+', ' ', text).strip()


class SheetExtractor:
    """
    Extracts candidate feedback records from tabular input.

    Each worksheet is one report sheet: a header block carrying the train
    number, train name and report date, then a table with one row per
    feedback, optionally followed by a TOTAL row and summary lines which are
    ignored.
    """

    # normalized header-block label -> context key
    HEADER_LABELS = {
        'train no': 'train_no',
        'train number': 'train_no',
        'train name': 'train_name',
        'report date': 'report_date',
        'date': 'feedback_date',
        'feedback date': 'feedback_date',
    }

    # normalized table heading -> record attribute
    COLUMN_ALIASES = {
        'sr no': 'serial',
        's no': 'serial',
        'serial no': 'serial',
        'feedback no': 'feedback_no',
        'feedback number': 'feedback_no',
        'coach': 'coach_no',
        'coach no': 'coach_no',
        'pnr': 'pnr',
        'pnr no': 'pnr',
        'mobile': 'mobile',
        'mobile no': 'mobile',
        'mobile number': 'mobile',
        'ns 1': 'ns1',
        'ns1': 'ns1',
        'ns 2': 'ns2',
        'ns2': 'ns2',
        'ns 3': 'ns3',
        'ns3': 'ns3',
        'psi': 'psi',
        'feedback status': 'feedback_rating',
        'feedback rating': 'feedback_rating',
        'rating': 'feedback_rating',
        'feedback text': 'feedback_text',
        'feedback': 'feedback_text',
        'comments': 'feedback_text',
    }

    MANDATORY_COLUMNS = {
        'pnr': 'PNR',
        'mobile': 'Mobile',
        'psi': 'PSI',
    }

    TOTAL_MARKER = 'total'
    TEXT_MARKER = 'text'

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def extract_workbook(self, source: Union[str, Path, bytes, BinaryIO]) -> ExtractionResult:
        """
        Open an .xlsx workbook and extract every worksheet.

        Args:
            source: File path, raw bytes or binary stream

        Returns:
            ExtractionResult

        Raises:
            WorkbookReadError: If the file is not a readable workbook
        """
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)

        try:
            workbook = openpyxl.load_workbook(source, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise WorkbookReadError(f"Unable to read workbook: {e}") from e

        try:
            sheets = [(ws.title, ws.iter_rows(values_only=True)) for ws in workbook.worksheets]
            return self.extract_sheets(sheets)
        finally:
            workbook.close()

    def extract_sheets(self, sheets: Iterable[Tuple[str, Iterable[Sequence[Any]]]]) -> ExtractionResult:
        """
        Extract records from a sequence of (sheet name, rows) pairs.

        A sheet-level problem (unreadable header, missing mandatory columns)
        skips only that sheet; a row-level problem skips only that row.

        Args:
            sheets: Iterable of (sheet_name, rows); each row is a sequence of cell values

        Returns:
            ExtractionResult
        """
        result = ExtractionResult()

        for sheet_index, (sheet_name, rows) in enumerate(sheets):
            try:
                rows = [tuple(row) for row in rows]
                sheet, row_errors = self._extract_sheet(sheet_index, sheet_name, rows)
            except SheetFormatError as e:
                self.logger.warning(f"Skipping sheet '{sheet_name}': {e}")
                result.errors.append(ExtractionError(sheet_index, sheet_name, str(e)))
                continue
            except Exception as e:
                self.logger.error(f"Unreadable sheet '{sheet_name}': {e}", exc_info=True)
                result.errors.append(ExtractionError(sheet_index, sheet_name, f"Unreadable sheet: {e}"))
                continue

            result.errors.extend(row_errors)
            if sheet is None:
                continue
            if sheet.records:
                result.sheets.append(sheet)
                result.records.extend(sheet.records)

        self.logger.info(f"Extracted {len(result.records)} feedbacks from {len(result.sheets)} sheets "
                         f"with {len(result.errors)} extraction errors")
        return result

    def _extract_sheet(self,
                       sheet_index: int,
                       sheet_name: str,
                       rows: List[Tuple[Any, ...]]) -> Tuple[Optional[ReportSheet], List[ExtractionError]]:
        """Extract one sheet. Returns (None, []) for a blank worksheet."""
        if not any(self._row_has_values(row) for row in rows):
            self.logger.debug(f"Sheet '{sheet_name}' is empty, skipping")
            return None, []

        header_row_idx, columns = self._find_table_header(rows)
        context = self._read_header_block(rows[:header_row_idx])

        train_no = as_text(context.get('train_no'))
        if not train_no:
            raise SheetFormatError("Missing train number in sheet header")

        if context.get('report_date') in (None, ''):
            raise SheetFormatError("Missing report date in sheet header")
        try:
            report_date = parse_date(context['report_date'], 'reportDate')
        except RecordFormatError as e:
            raise SheetFormatError(str(e)) from e

        try:
            feedback_date = parse_date(context.get('feedback_date'), 'date') or report_date
        except RecordFormatError as e:
            raise SheetFormatError(str(e)) from e

        sheet = ReportSheet(
            train_no=train_no,
            train_name=as_text(context.get('train_name')),
            report_date=report_date,
        )
        errors: List[ExtractionError] = []
        seen_numbers = set()
        position = 0

        for offset, row in enumerate(rows[header_row_idx + 1:], start=header_row_idx + 2):
            if not self._row_has_values(row):
                continue
            first_value = next(v for v in row if not self._is_blank(v))
            if normalize_heading(first_value) == self.TOTAL_MARKER:
                break

            position += 1
            cells = {attr: row[col] if col < len(row) else None for attr, col in columns.items()}
            try:
                record = self._build_record(cells, position, sheet, feedback_date)
            except RecordFormatError as e:
                errors.append(ExtractionError(sheet_index, sheet_name, str(e), row_index=offset))
                continue

            if record.feedback_no in seen_numbers:
                errors.append(ExtractionError(
                    sheet_index, sheet_name,
                    f"Duplicate feedback number {record.feedback_no}", row_index=offset))
                continue
            seen_numbers.add(record.feedback_no)
            sheet.records.append(record)

        if position == 0:
            raise SheetFormatError("No feedback rows found under the table header")

        self.logger.debug(f"Sheet '{sheet_name}': {len(sheet.records)} records, {len(errors)} row errors")
        return sheet, errors

    def _find_table_header(self, rows: List[Tuple[Any, ...]]) -> Tuple[int, Dict[str, int]]:
        """
        Locate the table heading row and map attributes to column indexes.

        Raises:
            SheetFormatError: If no heading row exists or mandatory columns are missing
        """
        for row_idx, row in enumerate(rows):
            columns: Dict[str, int] = {}
            for col_idx, cell in enumerate(row):
                attr = self.COLUMN_ALIASES.get(normalize_heading(cell))
                if attr and attr not in columns:
                    columns[attr] = col_idx
            if 'pnr' in columns and 'mobile' in columns:
                missing = [label for attr, label in self.MANDATORY_COLUMNS.items() if attr not in columns]
                if missing:
                    raise SheetFormatError(f"Missing mandatory columns: {', '.join(missing)}")
                columns.pop('serial', None)
                return row_idx, columns

        raise SheetFormatError(
            f"Missing mandatory columns: {', '.join(self.MANDATORY_COLUMNS.values())}")

    def _header_label(self, cell: Any) -> Tuple[Optional[str], Optional[str]]:
        """Return (context key, inline value) when ``cell`` is a header-block label."""
        if not isinstance(cell, str) or not cell.strip():
            return None, None

        label_text, inline_value = cell, None
        if ':' in cell:
            label_text, inline_value = cell.split(':', 1)
            inline_value = inline_value.strip() or None
        return self.HEADER_LABELS.get(normalize_heading(label_text)), inline_value

    def _read_header_block(self, rows: List[Tuple[Any, ...]]) -> Dict[str, Any]:
        """
        Read label/value pairs above the table.

        A label is either followed by its value in the next non-empty cell
        ("Train No" | 12301) or carries it inline ("Train No: 12301"). When
        the next non-empty cell is itself a label, the value is blank.
        """
        context: Dict[str, Any] = {}
        for row in rows:
            cells = list(row)
            for col_idx, cell in enumerate(cells):
                key, inline_value = self._header_label(cell)
                if key is None or key in context:
                    continue

                if inline_value is not None:
                    context[key] = inline_value
                    continue

                value = next((v for v in cells[col_idx + 1:] if not self._is_blank(v)), None)
                if value is not None and self._header_label(value)[0] is None:
                    context[key] = value
        return context

    def _build_record(self,
                      cells: Dict[str, Any],
                      position: int,
                      sheet: ReportSheet,
                      feedback_date) -> FeedbackRecord:
        """Map one table row to a candidate record."""
        feedback_no = parse_count(cells.get('feedback_no'), 'feedbackNo', default=None)
        if feedback_no is None:
            feedback_no = position
        elif feedback_no == 0:
            raise RecordFormatError('feedbackNo', "feedbackNo must be a positive integer")

        rating_cell = cells.get('feedback_rating')
        if isinstance(rating_cell, str) and normalize_heading(rating_cell) == self.TEXT_MARKER:
            rating_cell = None

        text_cell = cells.get('feedback_text')
        feedback_text = '' if text_cell is None else str(text_cell).strip()

        return FeedbackRecord(
            feedback_no=feedback_no,
            train_no=sheet.train_no,
            train_name=sheet.train_name,
            coach_no=as_text(cells.get('coach_no')),
            pnr=as_text(cells.get('pnr')),
            mobile=as_text(cells.get('mobile')),
            ns1=parse_count(cells.get('ns1'), 'ns1'),
            ns2=parse_count(cells.get('ns2'), 'ns2'),
            ns3=parse_count(cells.get('ns3'), 'ns3'),
            psi=parse_count(cells.get('psi'), 'psi'),
            feedback_date=feedback_date,
            report_date=sheet.report_date,
            feedback_text=feedback_text,
            feedback_rating=FeedbackRating.parse(rating_cell),
        )

    @staticmethod
    def _is_blank(value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    def _row_has_values(self, row: Sequence[Any]) -> bool:
        return any(not self._is_blank(v) for v in row)
