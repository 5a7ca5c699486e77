"""
Unit tests for logging setup and error tracking.
"""
import logging

from coach_feedback.models.feedback_data import ExtractionError, StagedRecord, ValidationResult
from coach_feedback.services.api_client import FeedbackAPIError, RecordNotFoundError
from coach_feedback.utils.logging_config import ErrorHandler, setup_logging
from tests.factories import make_record


def test_setup_logging_writes_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logging_config, error_handler = setup_logging(log_level="DEBUG", log_file=str(log_file), enable_console=False)

    logging.getLogger("coach_feedback.test").info("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert isinstance(error_handler, ErrorHandler)
    assert logging_config.log_file == log_file
    assert "hello from test" in log_file.read_text(encoding="utf-8")

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def test_error_categories_are_counted():
    handler = ErrorHandler()

    handler.handle_extraction_errors([
        ExtractionError(0, "12301", "Missing train number in sheet header"),
        ExtractionError(1, "12302", "Duplicate feedback number 2", row_index=7),
    ])
    invalid = handler.handle_validation_failures([
        StagedRecord(make_record(), ValidationResult(True)),
        StagedRecord(make_record(pnr="x"), ValidationResult(False, ["PNR must contain only numbers"])),
    ])
    handler.handle_api_error(FeedbackAPIError("Service down", status_code=503), "Bulk submission")
    handler.handle_file_error("bad.xlsx", ValueError("not a zip"))

    summary = handler.get_error_summary()
    assert invalid == 1
    assert summary["total_errors"] == 5
    assert summary["error_counts_by_type"]["extraction_sheet"] == 1
    assert summary["error_counts_by_type"]["extraction_row"] == 1
    assert summary["error_counts_by_type"]["validation"] == 1
    assert summary["error_counts_by_type"]["api_feedbackapierror"] == 1
    assert summary["error_counts_by_type"]["file_valueerror"] == 1

    handler.clear_error_history()
    assert handler.get_error_summary()["total_errors"] == 0


def test_not_found_is_logged_as_warning(caplog):
    handler = ErrorHandler(logging.getLogger("coach_feedback.test"))
    with caplog.at_level(logging.WARNING, logger="coach_feedback.test"):
        details = handler.handle_api_error(RecordNotFoundError("Feedback not found", status_code=404), "Load")

    assert details["status_code"] == 404
    assert caplog.records[-1].levelno == logging.WARNING
