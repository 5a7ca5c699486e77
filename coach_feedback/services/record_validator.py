"""
Field validation for candidate feedback records.
"""
import re
import logging
from typing import Any, Dict, Iterable, List

from ..models.feedback_data import FeedbackRecord, StagedRecord, ValidationResult


MAX_FEEDBACK_WORDS = 100
MIN_PASSWORD_LENGTH = 5


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())


class RecordValidator:
    """
    Checks a candidate FeedbackRecord against the field rules.

    Validation never raises: every failure is collected into the returned
    ValidationResult so the user sees all problems with a record at once.
    """

    PNR_PATTERN = re.compile(r'^\d+$')
    MOBILE_PATTERN = re.compile(r'^\d{10}$')

    # attribute -> label used in "Missing required field" messages
    REQUIRED_FIELDS = {
        'feedback_no': 'feedback number',
        'train_no': 'train number',
        'train_name': 'train name',
        'coach_no': 'coach',
        'pnr': 'PNR',
        'mobile': 'mobile',
        'psi': 'PSI',
        'feedback_date': 'date',
        'report_date': 'report date',
    }

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def validate(self, record: FeedbackRecord) -> ValidationResult:
        """
        Validate one record.

        Checks run in a fixed order and all failures are accumulated:
        required fields, feedback number, PNR shape, mobile shape,
        text/rating exclusivity, text length.

        Args:
            record: Candidate record

        Returns:
            ValidationResult with every failure message
        """
        errors: List[str] = []

        for attr, label in self.REQUIRED_FIELDS.items():
            if self._is_blank(getattr(record, attr, None)):
                errors.append(f"Missing required field: {label}")

        feedback_no = getattr(record, 'feedback_no', None)
        if isinstance(feedback_no, int) and feedback_no < 1:
            errors.append("Feedback number must be a positive integer")

        pnr = self._as_str(getattr(record, 'pnr', ''))
        if pnr and not self.PNR_PATTERN.match(pnr):
            errors.append("PNR must contain only numbers")

        mobile = self._as_str(getattr(record, 'mobile', ''))
        if mobile and not self.MOBILE_PATTERN.match(mobile):
            errors.append("Mobile must be a valid 10-digit number")

        text = self._as_str(getattr(record, 'feedback_text', ''))
        rating = getattr(record, 'feedback_rating', None)
        has_text = bool(text.strip())
        has_rating = not self._is_blank(rating)
        if not has_text and not has_rating:
            errors.append("Please provide either feedback text or rating")
        elif has_text and has_rating:
            errors.append("Provide either feedback text or rating, not both")

        if has_text and count_words(text) > MAX_FEEDBACK_WORDS:
            errors.append(f"Feedback text cannot exceed {MAX_FEEDBACK_WORDS} words")

        if errors:
            self.logger.debug(f"Feedback #{getattr(record, 'feedback_no', None)} invalid: {errors}")

        return ValidationResult(valid=not errors, validation_errors=errors)

    def validate_batch(self, records: Iterable[FeedbackRecord]) -> List[StagedRecord]:
        """Validate each record and pair it with its verdict."""
        return [StagedRecord(record=record, result=self.validate(record)) for record in records]

    @staticmethod
    def is_batch_submittable(staged_records: List[StagedRecord]) -> bool:
        """A batch is submittable only when it is non-empty and every record is valid."""
        return bool(staged_records) and all(staged.valid for staged in staged_records)

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        return False

    @staticmethod
    def _as_str(value: Any) -> str:
        if value is None:
            return ''
        return value if isinstance(value, str) else str(value)


def validate_password_change(old_password: str, new_password: str, confirm_password: str) -> Dict[str, str]:
    """
    Check a password-change form before it is sent to the auth service.

    Returns:
        Dict mapping field name to error message; empty when the form is valid
    """
    errors = {}
    old_password = old_password or ''
    new_password = new_password or ''
    confirm_password = confirm_password or ''

    if not old_password.strip():
        errors['oldPassword'] = 'Old password is required'

    if not new_password.strip():
        errors['newPassword'] = 'New password is required'
    elif len(new_password) < MIN_PASSWORD_LENGTH:
        errors['newPassword'] = f'New password must be at least {MIN_PASSWORD_LENGTH} characters'

    if not confirm_password.strip():
        errors['confirmPassword'] = 'Confirm password is required'
    elif new_password and new_password != confirm_password:
        errors['confirmPassword'] = 'New password and confirm password do not match'

    return errors
