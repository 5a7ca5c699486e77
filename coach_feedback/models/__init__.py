"""
Data models for coach feedback system.
"""
from .feedback_data import (
    ExtractionError,
    FeedbackRating,
    FeedbackRecord,
    RatedFeedback,
    RecordFormatError,
    ReportSheet,
    SheetTotals,
    StagedRecord,
    TextFeedback,
    ValidationResult,
)

__all__ = [
    'ExtractionError', 'FeedbackRating', 'FeedbackRecord', 'RatedFeedback',
    'RecordFormatError', 'ReportSheet', 'SheetTotals', 'StagedRecord',
    'TextFeedback', 'ValidationResult',
]
