"""
All-or-nothing submission of a staged feedback batch.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..models.feedback_data import FeedbackRecord
from ..utils.logging_config import ErrorHandler
from .api_client import FeedbackAPIClient, FeedbackAPIError
from .record_validator import RecordValidator


@dataclass
class SubmissionResult:
    """Outcome of one batch submission."""
    success: bool
    message: str = ''
    submitted_count: int = 0
    invalid_records: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'success': self.success,
            'message': self.message,
            'submittedCount': self.submitted_count,
        }
        if self.invalid_records:
            payload['invalidFeedbacks'] = list(self.invalid_records)
        return payload


class BulkSubmitter:
    """
    Submits a batch to the persistence service as one unit.

    The batch is re-validated first; a single invalid record refuses the
    whole batch and nothing is sent. Failures are never retried.
    """

    def __init__(self,
                 api_client: FeedbackAPIClient,
                 validator: Optional[RecordValidator] = None,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Initialize bulk submitter.

        Args:
            api_client: Client for the persistence service
            validator: Record validator (optional, creates default if not provided)
            error_handler: Error handler for logging failures (optional)
        """
        self.api_client = api_client
        self.validator = validator or RecordValidator()
        self.logger = logging.getLogger(__name__)
        self.error_handler = error_handler or ErrorHandler(self.logger)

    def submit(self, records: Sequence[FeedbackRecord]) -> SubmissionResult:
        """
        Validate and submit a batch.

        Args:
            records: The staged batch

        Returns:
            SubmissionResult; ``success`` is True only if the service accepted
            every record
        """
        records = list(records)
        if not records:
            return SubmissionResult(success=False, message='No feedbacks to submit')

        staged = self.validator.validate_batch(records)
        invalid_count = self.error_handler.handle_validation_failures(staged)
        if invalid_count:
            invalid_records = [
                {'feedbackNo': s.record.feedback_no, 'validationErrors': list(s.result.validation_errors)}
                for s in staged if not s.valid
            ]
            self.logger.warning(f"Refusing batch of {len(records)}: {invalid_count} invalid feedbacks")
            return SubmissionResult(
                success=False,
                message=f"{invalid_count} feedback(s) failed validation. Fix them before submitting.",
                invalid_records=invalid_records,
            )

        try:
            body = self.api_client.submit_bulk(records)
        except FeedbackAPIError as e:
            self.error_handler.handle_api_error(e, "Bulk submission")
            return SubmissionResult(
                success=False,
                message=str(e) or 'Error submitting feedbacks',
                invalid_records=list(e.payload.get('invalidFeedbacks') or []),
            )

        server_invalid = list(body.get('invalidFeedbacks') or [])
        if server_invalid:
            self.logger.warning(f"Service rejected {len(server_invalid)} feedbacks in batch")
            return SubmissionResult(
                success=False,
                message=body.get('message') or 'Error submitting feedbacks',
                invalid_records=server_invalid,
            )

        submitted = body.get('count')
        if submitted is None:
            data = body.get('data')
            submitted = len(data) if isinstance(data, list) else len(records)

        self.logger.info(f"Submitted batch of {submitted} feedbacks")
        return SubmissionResult(
            success=True,
            message=body.get('message') or f"Successfully submitted {submitted} feedbacks",
            submitted_count=submitted,
        )
