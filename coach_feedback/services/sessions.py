"""
Interactive workflows over explicit session state.

Each state object belongs to one user session. The functions here never
mutate the state they are given; they return a new object instead.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

from ..models.feedback_data import (
    ExtractionError,
    FeedbackRecord,
    ReportSheet,
    StagedRecord,
    ValidationResult,
    parse_date,
)
from .api_client import FeedbackAPIClient
from .bulk_submitter import BulkSubmitter, SubmissionResult
from .record_validator import RecordValidator
from .report_aggregator import ReportAggregator
from .sheet_extractor import SheetExtractor


logger = logging.getLogger(__name__)


@dataclass
class UploadSession:
    """A staged spreadsheet upload awaiting review and submission."""
    file_name: str = ''
    staged: List[StagedRecord] = field(default_factory=list)
    extraction_errors: List[ExtractionError] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    invalid_records: List[Dict[str, Any]] = field(default_factory=list)
    submitted: bool = False

    @property
    def records(self) -> List[FeedbackRecord]:
        return [s.record for s in self.staged]

    @property
    def invalid_count(self) -> int:
        return sum(1 for s in self.staged if not s.valid)

    @property
    def is_submittable(self) -> bool:
        """
        True when something is staged and every staged record is valid.

        Extraction errors do not block submission: sheets or rows that failed
        to extract were never staged.
        """
        return not self.submitted and RecordValidator.is_batch_submittable(self.staged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fileName': self.file_name,
            'feedbacks': [s.to_dict() for s in self.staged],
            'extractionErrors': [e.to_dict() for e in self.extraction_errors],
            'messages': list(self.messages),
            'invalidFeedbacks': list(self.invalid_records),
            'invalidCount': self.invalid_count,
            'submittable': self.is_submittable,
            'submitted': self.submitted,
        }


@dataclass
class SearchSession:
    """The finder's current query and its results."""
    train_no: str = ''
    search_date: Optional[date] = None
    results: List[FeedbackRecord] = field(default_factory=list)
    searched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trainNo': self.train_no,
            'date': self.search_date.isoformat() if self.search_date else None,
            'feedbacks': [r.to_dict() for r in self.results],
            'count': len(self.results),
            'searched': self.searched,
        }


@dataclass
class EditSession:
    """An edit in progress on one stored record."""
    record_id: str
    original: FeedbackRecord
    draft: FeedbackRecord


def stage_upload(source: Union[bytes, BinaryIO, str],
                 file_name: str,
                 extractor: SheetExtractor,
                 validator: RecordValidator) -> UploadSession:
    """
    Extract and validate an uploaded workbook into a fresh upload session.

    Raises:
        WorkbookReadError: If the file is not a readable workbook
    """
    result = extractor.extract_workbook(source)
    staged = validator.validate_batch(result.records)

    messages = [f"Extracted {len(staged)} feedbacks from {len(result.sheets)} sheets"]
    invalid = sum(1 for s in staged if not s.valid)
    if invalid:
        messages.append(f"{invalid} feedback(s) need correction before submitting")
    if result.errors:
        messages.append(f"{len(result.errors)} sheet or row(s) could not be read")

    logger.info(f"Staged upload {file_name}: {len(staged)} feedbacks, {invalid} invalid, "
                f"{len(result.errors)} extraction errors")
    return UploadSession(
        file_name=file_name,
        staged=staged,
        extraction_errors=list(result.errors),
        messages=messages,
    )


def revise_staged_record(session: UploadSession,
                         index: int,
                         changes: Dict[str, Any],
                         validator: RecordValidator) -> UploadSession:
    """
    Apply user corrections to one staged record and re-validate it.

    Raises:
        IndexError: If index is out of range
        RecordFormatError: If a changed value is malformed
    """
    if index < 0 or index >= len(session.staged):
        raise IndexError(f"No staged feedback at position {index}")

    record = session.staged[index].record.apply_changes(changes)
    staged = list(session.staged)
    staged[index] = StagedRecord(record=record, result=validator.validate(record))
    return replace(session, staged=staged, invalid_records=[])


def reset_upload() -> UploadSession:
    return UploadSession()


def upload_sheets(session: UploadSession, aggregator: Optional[ReportAggregator] = None) -> List[ReportSheet]:
    """Group the staged records into report sheets, in upload order."""
    aggregator = aggregator or ReportAggregator()
    return aggregator.group_into_sheets(session.records)


def submit_upload(session: UploadSession, submitter: BulkSubmitter) -> Tuple[UploadSession, SubmissionResult]:
    """
    Submit the staged batch.

    On success the staged state is discarded; on failure it is kept so the
    user can correct and retry.
    """
    result = submitter.submit(session.records)
    if result.success:
        return UploadSession(file_name=session.file_name, messages=[result.message], submitted=True), result

    return replace(session, messages=[result.message], invalid_records=list(result.invalid_records)), result


def run_search(session: SearchSession,
               client: FeedbackAPIClient,
               train_no: str,
               day: Union[date, str]) -> SearchSession:
    """
    Fetch records for a train and date.

    Raises:
        ValueError: If train number or date is missing
        FeedbackAPIError: If the service call fails
    """
    train_no = (train_no or '').strip()
    search_date = parse_date(day)
    if not train_no or search_date is None:
        raise ValueError("Please enter train number and date")

    results = client.search(train_no, search_date)
    logger.info(f"Search {train_no} @ {search_date}: {len(results)} feedbacks")
    return replace(session, train_no=train_no, search_date=search_date, results=results, searched=True)


def remove_record(session: SearchSession, client: FeedbackAPIClient, record_id: str) -> SearchSession:
    """Delete a stored record and drop it from the current results."""
    client.delete_record(record_id)
    return replace(session, results=[r for r in session.results if r.record_id != record_id])


def replace_result(session: SearchSession, record: FeedbackRecord) -> SearchSession:
    """Swap an edited record into the current results, keeping its position."""
    return replace(session, results=[record if r.record_id == record.record_id else r for r in session.results])


def begin_edit(client: FeedbackAPIClient, record_id: str) -> EditSession:
    """
    Load a stored record for editing.

    Raises:
        RecordNotFoundError: If the id does not exist
    """
    record = client.get_record(record_id)
    return EditSession(record_id=record_id, original=record, draft=record)


def save_edit(edit: EditSession,
              changes: Dict[str, Any],
              client: FeedbackAPIClient,
              validator: RecordValidator) -> Tuple[EditSession, ValidationResult]:
    """
    Validate the edited draft and store it in full.

    Snapshot fields (totals and averages) are carried over unchanged.
    Nothing is sent when validation fails.
    """
    draft = edit.original.apply_changes(changes)
    result = validator.validate(draft)
    if not result.valid:
        return replace(edit, draft=draft), result

    saved = client.update_record(edit.record_id, draft)
    if saved.record_id is None:
        saved = replace(saved, record_id=edit.record_id)
    logger.info(f"Updated feedback {edit.record_id}")
    return EditSession(record_id=edit.record_id, original=saved, draft=saved), result


def submit_single(record: FeedbackRecord,
                  client: FeedbackAPIClient,
                  validator: RecordValidator) -> Tuple[ValidationResult, Optional[FeedbackRecord]]:
    """
    Operator single-entry submission.

    Returns:
        (ValidationResult, stored record or None when validation failed)
    """
    result = validator.validate(record)
    if not result.valid:
        return result, None
    return result, client.create_record(record)


def next_feedback_no(client: FeedbackAPIClient, train_no: str, day: Union[date, str]) -> int:
    """Feedback number to suggest for the next entry on a train and date."""
    return client.count(train_no, day) + 1
