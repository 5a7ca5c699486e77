"""
Data models for the coach feedback system.
"""
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class RecordFormatError(ValueError):
    """Raised when a raw value cannot be coerced into a record field."""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        super().__init__(message)


class FeedbackRating(Enum):
    """Categorical passenger rating, stored lowercase on the wire."""
    POOR = "poor"
    AVERAGE = "average"
    GOOD = "good"
    VERY_GOOD = "very good"
    EXCELLENT = "excellent"

    @classmethod
    def parse(cls, value: Any) -> Optional["FeedbackRating"]:
        """
        Parse a rating from user or spreadsheet input.

        Matching ignores case, surrounding whitespace and underscores, so
        "Very Good", "VERY_GOOD" and "very  good" all map to VERY_GOOD.

        Args:
            value: Raw rating value (str, FeedbackRating or None)

        Returns:
            FeedbackRating or None when the value is blank

        Raises:
            RecordFormatError: If the value is not a known rating
        """
        if value is None or isinstance(value, cls):
            return value
        text = re.sub(r'[\s_]+', ' ', str(value)).strip().lower()
        if not text:
            return None
        for rating in cls:
            if rating.value == text:
                return rating
        allowed = ', '.join(r.value for r in cls)
        raise RecordFormatError('feedbackRating', f"Invalid feedback rating '{value}' (expected one of: {allowed})")

    @property
    def label(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class TextFeedback:
    """Free-text feedback variant."""
    text: str


@dataclass(frozen=True)
class RatedFeedback:
    """Categorical rating feedback variant."""
    rating: FeedbackRating


Feedback = Union[TextFeedback, RatedFeedback]


DATE_INPUT_FORMATS = ('%Y-%m-%d', '%d/%m/%Y', '%d-%m-%Y', '%Y/%m/%d')


def parse_date(value: Any, field_name: str = 'date') -> Optional[date]:
    """
    Normalize a date-like value to ``datetime.date``.

    Accepts date/datetime objects, ISO strings (with or without a time part)
    and dd/mm/yyyy strings. Blank values return None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # ISO timestamps from the persistence service, e.g. 2024-05-01T00:00:00.000Z
    if 'T' in text:
        text = text.split('T', 1)[0]
    for fmt in DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise RecordFormatError(field_name, f"Unparseable date for {field_name}: '{value}'")


def parse_count(value: Any, field_name: str, default: Optional[int] = 0) -> Optional[int]:
    """
    Coerce a numeric cell/form value to a non-negative int.

    Blank values return ``default``. Floats are accepted only when integral,
    which is how Excel hands back whole numbers.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise RecordFormatError(field_name, f"{field_name} must be a whole number, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise RecordFormatError(field_name, f"{field_name} must be a whole number, got {value!r}")
        number = int(value)
    else:
        try:
            number = int(str(value).strip())
        except ValueError:
            raise RecordFormatError(field_name, f"{field_name} must be a whole number, got '{value}'") from None
    if number < 0:
        raise RecordFormatError(field_name, f"{field_name} cannot be negative, got {number}")
    return number


def parse_optional_number(value: Any, field_name: str) -> Optional[float]:
    """Coerce an informational metric to float; blank stays None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return float(str(value).strip().rstrip('%'))
    except ValueError:
        raise RecordFormatError(field_name, f"{field_name} must be numeric, got '{value}'") from None


def as_text(value: Any) -> str:
    """
    Render an identifier cell as text.

    Whole-number floats lose their ``.0`` so an Excel PNR of 1234567890.0
    becomes "1234567890".
    """
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


@dataclass
class FeedbackRecord:
    """
    One passenger feedback entry.

    ``feedback_text`` and ``feedback_rating`` are kept as two raw fields so that
    a candidate record can carry an invalid both/neither state to the
    validator. Use ``feedback`` for the tagged variant.
    """
    feedback_no: Optional[int] = None
    train_no: str = ''
    train_name: str = ''
    coach_no: str = ''
    pnr: str = ''
    mobile: str = ''
    ns1: int = 0
    ns2: int = 0
    ns3: int = 0
    psi: Optional[int] = None
    feedback_date: Optional[date] = None
    report_date: Optional[date] = None
    feedback_text: str = ''
    feedback_rating: Optional[FeedbackRating] = None
    total_feedbacks: Optional[int] = None
    total_percentage_at_psi: Optional[float] = None
    average_psi_round_trip: Optional[float] = None
    record_id: Optional[str] = None

    # camelCase wire names used by the persistence service
    WIRE_NAMES = {
        'feedback_no': 'feedbackNo',
        'train_no': 'trainNo',
        'train_name': 'trainName',
        'coach_no': 'coachNo',
        'pnr': 'pnr',
        'mobile': 'mobile',
        'ns1': 'ns1',
        'ns2': 'ns2',
        'ns3': 'ns3',
        'psi': 'psi',
        'feedback_date': 'date',
        'report_date': 'reportDate',
        'feedback_text': 'feedbackText',
        'feedback_rating': 'feedbackRating',
        'total_feedbacks': 'totalFeedbacks',
        'total_percentage_at_psi': 'totalPercentageAtPSI',
        'average_psi_round_trip': 'averagePSIRoundTrip',
        'record_id': '_id',
    }

    # Fields replaced by an edit; the aggregate snapshots and id are not editable
    EDITABLE_FIELDS = (
        'feedback_no', 'train_no', 'train_name', 'coach_no', 'pnr', 'mobile',
        'ns1', 'ns2', 'ns3', 'psi', 'feedback_date', 'report_date',
        'feedback_text', 'feedback_rating',
    )

    @property
    def feedback(self) -> Optional[Feedback]:
        """
        Tagged feedback variant.

        Returns:
            TextFeedback or RatedFeedback, or None when neither or both are set
        """
        has_text = bool(self.feedback_text and self.feedback_text.strip())
        has_rating = self.feedback_rating is not None
        if has_text and not has_rating:
            return TextFeedback(self.feedback_text.strip())
        if has_rating and not has_text:
            return RatedFeedback(self.feedback_rating)
        return None

    def with_feedback(self, variant: Feedback) -> 'FeedbackRecord':
        """Return a copy holding exactly the given feedback variant."""
        if isinstance(variant, TextFeedback):
            return replace(self, feedback_text=variant.text, feedback_rating=None)
        return replace(self, feedback_text='', feedback_rating=variant.rating)

    @property
    def status_label(self) -> str:
        """Rating upper-cased, "TEXT" for text feedback, blank otherwise."""
        if self.feedback_rating is not None:
            return self.feedback_rating.label
        if self.feedback_text and self.feedback_text.strip():
            return 'TEXT'
        return ''

    @property
    def sheet_key(self) -> tuple:
        return (self.train_no, self.report_date)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persistence service's JSON shape."""
        payload: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, FeedbackRating):
                value = value.value
            if f.name == 'record_id' and value is None:
                continue
            payload[self.WIRE_NAMES[f.name]] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> 'FeedbackRecord':
        """
        Build a record from wire/form JSON, coercing every field.

        Args:
            payload: Dict keyed by camelCase wire names (snake_case also accepted)

        Returns:
            FeedbackRecord

        Raises:
            RecordFormatError: If a numeric, date or rating value is malformed
        """
        values = {}
        for attr, wire in cls.WIRE_NAMES.items():
            if wire in payload:
                values[attr] = payload[wire]
            elif attr in payload:
                values[attr] = payload[attr]
        if 'record_id' not in values and 'id' in payload:
            values['record_id'] = payload['id']
        return cls(**cls._coerce(values))

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        coerced = dict(values)
        if 'feedback_no' in coerced:
            coerced['feedback_no'] = parse_count(coerced['feedback_no'], 'feedbackNo', default=None)
        for name in ('ns1', 'ns2', 'ns3'):
            if name in coerced:
                coerced[name] = parse_count(coerced[name], name, default=0)
        if 'psi' in coerced:
            coerced['psi'] = parse_count(coerced['psi'], 'psi', default=None)
        for name in ('feedback_date', 'report_date'):
            if name in coerced:
                coerced[name] = parse_date(coerced[name], cls.WIRE_NAMES[name])
        if 'feedback_rating' in coerced:
            coerced['feedback_rating'] = FeedbackRating.parse(coerced['feedback_rating'])
        if 'total_feedbacks' in coerced:
            coerced['total_feedbacks'] = parse_count(coerced['total_feedbacks'], 'totalFeedbacks', default=None)
        for name in ('total_percentage_at_psi', 'average_psi_round_trip'):
            if name in coerced:
                coerced[name] = parse_optional_number(coerced[name], cls.WIRE_NAMES[name])
        for name in ('train_no', 'train_name', 'coach_no', 'pnr', 'mobile'):
            if name in coerced:
                coerced[name] = as_text(coerced[name])
        if 'feedback_text' in coerced:
            coerced['feedback_text'] = '' if coerced['feedback_text'] is None else str(coerced['feedback_text'])
        if coerced.get('record_id') is not None:
            coerced['record_id'] = str(coerced['record_id'])
        return coerced

    def apply_changes(self, changes: Dict[str, Any]) -> 'FeedbackRecord':
        """
        Return a copy with editable fields replaced from ``changes``.

        Keys may be wire or attribute names. Non-editable keys are ignored.

        Raises:
            RecordFormatError: If a changed value is malformed
        """
        values = {}
        for attr in self.EDITABLE_FIELDS:
            wire = self.WIRE_NAMES[attr]
            if wire in changes:
                values[attr] = changes[wire]
            elif attr in changes:
                values[attr] = changes[attr]
        return replace(self, **self._coerce(values))


@dataclass
class ValidationResult:
    """Verdict returned by the record validator."""
    valid: bool
    validation_errors: List[str] = field(default_factory=list)


@dataclass
class StagedRecord:
    """A candidate record paired with its latest validation verdict."""
    record: FeedbackRecord
    result: ValidationResult

    @property
    def valid(self) -> bool:
        return self.result.valid

    def to_dict(self) -> Dict[str, Any]:
        payload = self.record.to_dict()
        payload['valid'] = self.result.valid
        payload['validationErrors'] = list(self.result.validation_errors)
        return payload


@dataclass
class ExtractionError:
    """A sheet or row that could not be mapped to a record."""
    sheet_index: int
    sheet_name: str
    message: str
    row_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sheetIndex': self.sheet_index,
            'sheetName': self.sheet_name,
            'rowIndex': self.row_index,
            'message': self.message,
        }

    def describe(self) -> str:
        location = f"Sheet '{self.sheet_name}'"
        if self.row_index is not None:
            location += f", row {self.row_index}"
        return f"{location}: {self.message}"


@dataclass
class ReportSheet:
    """Records for one train and report date, in their given order."""
    train_no: str
    train_name: str
    report_date: Optional[date]
    records: List[FeedbackRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trainNo': self.train_no,
            'trainName': self.train_name,
            'reportDate': self.report_date.isoformat() if self.report_date else None,
            'feedbacks': [r.to_dict() for r in self.records],
        }


@dataclass
class SheetTotals:
    """Derived totals for a report sheet."""
    count: int
    ns1_total: int
    ns2_total: int
    ns3_total: int
    psi_total: int
    percentage_at_psi: str
    average_psi: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'ns1': self.ns1_total,
            'ns2': self.ns2_total,
            'ns3': self.ns3_total,
            'psi': self.psi_total,
            'percentageAtPSI': self.percentage_at_psi,
            'averagePSI': self.average_psi,
        }
