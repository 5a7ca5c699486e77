"""
Logging configuration for coach feedback system.
Provides console and rotating file logging plus structured tracking of
extraction, validation, submission and file errors.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict, Any, Iterable
from datetime import datetime


class LoggingConfig:
    """
    Configures logging for the coach feedback system.
    Supports multiple log levels, file rotation, and structured logging.
    """

    def __init__(self,
                 log_level: str = "INFO",
                 log_file: Optional[str] = None,
                 enable_console: bool = True,
                 enable_file: bool = True,
                 max_file_size_mb: int = 10,
                 backup_count: int = 5):
        """
        Initialize logging configuration.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Path to log file (optional, defaults to logs/coach_feedback.log)
            enable_console: Whether to enable console logging
            enable_file: Whether to enable file logging
            max_file_size_mb: Maximum log file size in MB before rotation
            backup_count: Number of backup log files to keep
        """
        self.log_level = getattr(logging, log_level.upper(), logging.INFO)
        self.enable_console = enable_console
        self.enable_file = enable_file
        self.max_file_size_mb = max_file_size_mb
        self.backup_count = backup_count

        if log_file is None:
            self.log_file = Path("logs") / "coach_feedback.log"
        else:
            self.log_file = Path(log_file)
        if self.enable_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

        self._setup_logging()

    def _setup_logging(self) -> None:
        """Configure logging with appropriate handlers and formatters."""
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)

        # Clear existing handlers to avoid duplicates
        root_logger.handlers.clear()

        detailed_formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        simple_formatter = logging.Formatter(
            fmt='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )

        if self.enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)
            console_handler.setFormatter(simple_formatter)
            root_logger.addHandler(console_handler)

        if self.enable_file:
            file_handler = logging.handlers.RotatingFileHandler(
                filename=self.log_file,
                maxBytes=self.max_file_size_mb * 1024 * 1024,
                backupCount=self.backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(detailed_formatter)
            root_logger.addHandler(file_handler)

        logger = logging.getLogger(__name__)
        logger.info(f"Logging configured - Level: {logging.getLevelName(self.log_level)}, "
                    f"Console: {self.enable_console}, File: {self.enable_file}")
        if self.enable_file:
            logger.info(f"Log file: {self.log_file}")

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger instance with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Configured logger instance
        """
        return logging.getLogger(name)

    def log_system_info(self) -> None:
        """Log system information for debugging purposes."""
        logger = logging.getLogger(__name__)
        logger.info("=== System Information ===")
        logger.info(f"Python version: {sys.version}")
        logger.info(f"Platform: {sys.platform}")
        logger.info(f"Current working directory: {Path.cwd()}")
        logger.info("=== End System Information ===")


class ErrorHandler:
    """
    Error tracking for the feedback pipeline.

    Each category of the error taxonomy (extraction, validation, submission,
    file) is logged at a fixed level and counted, so a run can end with a
    summary of what went wrong and where.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize error handler.

        Args:
            logger: Logger instance (optional, creates default if not provided)
        """
        self.logger = logger or logging.getLogger(__name__)
        self.error_counts: Dict[str, int] = {}
        self.error_history: list = []

    def handle_extraction_errors(self, errors: Iterable) -> None:
        """
        Log extraction errors reported by the sheet extractor.

        Args:
            errors: ExtractionError objects
        """
        for error in errors:
            kind = 'sheet' if error.row_index is None else 'row'
            self.logger.warning(f"Extraction error: {error.describe()}")
            self._track_error(f"extraction_{kind}")
            self.error_history.append({
                'category': 'extraction',
                'sheet_index': error.sheet_index,
                'sheet_name': error.sheet_name,
                'row_index': error.row_index,
                'message': error.message,
                'timestamp': datetime.now().isoformat(),
            })

    def handle_validation_failures(self, staged_records: Iterable) -> int:
        """
        Log every staged record whose validation failed.

        Args:
            staged_records: StagedRecord objects

        Returns:
            int: Number of invalid records
        """
        invalid = 0
        for staged in staged_records:
            if staged.valid:
                continue
            invalid += 1
            feedback_no = staged.record.feedback_no
            errors = staged.result.validation_errors
            self.logger.warning(f"Feedback #{feedback_no} failed validation: {'; '.join(errors)}")
            self._track_error('validation')
            self.error_history.append({
                'category': 'validation',
                'feedback_no': feedback_no,
                'validation_errors': list(errors),
                'timestamp': datetime.now().isoformat(),
            })
        return invalid

    def handle_api_error(self, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed call to the feedback service.

        Args:
            error: The exception raised by the API client
            operation: Description of the operation being performed

        Returns:
            Dict containing error details
        """
        error_type = type(error).__name__
        error_message = str(error)
        status_code = getattr(error, 'status_code', None)

        if status_code == 404:
            self.logger.warning(f"{operation} failed: {error_message}")
        else:
            self.logger.error(f"{operation} failed: {error_type} - {error_message}")

        self._track_error(f"api_{error_type.lower()}")

        error_details = {
            'category': 'submission',
            'error_type': error_type,
            'error_message': error_message,
            'operation': operation,
            'status_code': status_code,
            'timestamp': datetime.now().isoformat(),
        }
        self.error_history.append(error_details)
        return error_details

    def handle_file_error(self, file_path: str, error: Exception, operation: str = "reading") -> Dict[str, Any]:
        """
        Log a file-related error.

        Args:
            file_path: Path to the file that caused the error
            error: The exception that occurred
            operation: Description of the operation being performed

        Returns:
            Dict containing error details
        """
        error_type = type(error).__name__
        error_message = str(error)

        self.logger.error(f"File {operation} error for {file_path}: {error_type} - {error_message}")
        self._track_error(f"file_{error_type.lower()}")

        error_details = {
            'category': 'file',
            'file_path': file_path,
            'error_type': error_type,
            'error_message': error_message,
            'operation': operation,
            'timestamp': datetime.now().isoformat(),
        }
        self.error_history.append(error_details)
        return error_details

    def _track_error(self, error_type: str) -> None:
        """Track error statistics for monitoring."""
        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

    def get_error_summary(self) -> Dict[str, Any]:
        """
        Get summary of all errors encountered.

        Returns:
            Dict containing error statistics and recent errors
        """
        total_errors = sum(self.error_counts.values())
        recent_errors = self.error_history[-10:]

        return {
            'total_errors': total_errors,
            'error_counts_by_type': self.error_counts.copy(),
            'recent_errors': recent_errors,
            'most_common_error': max(self.error_counts.items(), key=lambda x: x[1])[0] if self.error_counts else None
        }

    def clear_error_history(self) -> None:
        """Clear error history and statistics."""
        self.error_counts.clear()
        self.error_history.clear()

    def log_error_summary(self) -> None:
        """Log a summary of errors for monitoring."""
        summary = self.get_error_summary()

        if summary['total_errors'] == 0:
            self.logger.info("No errors encountered during processing")
            return

        self.logger.warning(f"Error Summary: {summary['total_errors']} total errors")

        for error_type, count in summary['error_counts_by_type'].items():
            self.logger.warning(f"  {error_type}: {count} occurrences")


def setup_logging(log_level: str = "INFO",
                  log_file: Optional[str] = None,
                  enable_console: bool = True,
                  enable_file: bool = True) -> tuple:
    """
    Convenience function to set up logging and error handling.

    Args:
        log_level: Logging level
        log_file: Path to log file (optional)
        enable_console: Whether to enable console logging
        enable_file: Whether to enable rotating file logging

    Returns:
        Tuple of (LoggingConfig, ErrorHandler)
    """
    logging_config = LoggingConfig(
        log_level=log_level,
        log_file=log_file,
        enable_console=enable_console,
        enable_file=enable_file
    )

    error_handler = ErrorHandler(logging_config.get_logger(__name__))

    logging_config.log_system_info()

    return logging_config, error_handler
