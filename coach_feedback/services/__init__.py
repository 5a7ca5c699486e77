# Services module

from .sheet_extractor import SheetExtractor, ExtractionResult, WorkbookReadError
from .record_validator import RecordValidator, validate_password_change
from .report_aggregator import ReportAggregator, AggregationError
from .pdf_renderer import PdfRenderer, LayoutMode, RenderError
from .api_client import FeedbackAPIClient, FeedbackAPIError, RecordNotFoundError
from .bulk_submitter import BulkSubmitter, SubmissionResult
from .excel_writer import ReportWorkbookWriter

__all__ = [
    'SheetExtractor', 'ExtractionResult', 'WorkbookReadError',
    'RecordValidator', 'validate_password_change',
    'ReportAggregator', 'AggregationError',
    'PdfRenderer', 'LayoutMode', 'RenderError',
    'FeedbackAPIClient', 'FeedbackAPIError', 'RecordNotFoundError',
    'BulkSubmitter', 'SubmissionResult',
    'ReportWorkbookWriter'
]
