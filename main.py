#!/usr/bin/env python3
"""
Command-line entry point for the Coach Feedback Manager.

Reads a feedback workbook (.xlsx, one worksheet per train and report date),
validates every row, and optionally renders PDF reports, exports a cleaned
workbook, or submits the batch to the feedback service.

Usage:
    python main.py input_file.xlsx [options]

Examples:
    # Check a workbook without producing anything
    python main.py ./uploads/12301.xlsx --validate-only

    # One consolidated PDF for every sheet in the workbook
    python main.py ./uploads/12301.xlsx --pdf-file ./reports/12301.pdf

    # One PDF per sheet, named feedbacks_<trainNo>_<date>.pdf
    python main.py ./uploads/12301.xlsx --pdf-dir ./reports

    # Submit the batch to the feedback service
    python main.py ./uploads/12301.xlsx --submit

Optional Environment Variables:
    FEEDBACK_API_URL: Feedback service URL (default: http://localhost:5000/api)
    FEEDBACK_API_TOKEN: Bearer token used for --submit
    REQUEST_TIMEOUT: Request timeout in seconds (default: 30)
    MAX_FILE_SIZE_MB: Maximum workbook size in MB (default: 10)
    LOG_LEVEL: Logging level (default: INFO)
    ORG_NAME, ORG_ADDRESS, ORG_PHONE, ORG_EMAIL: Report letterhead
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from coach_feedback import __version__
from coach_feedback.config.config_manager import ConfigManager, ConfigurationError


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="coach-feedback",
        description="Validate, report on and submit coach passenger feedback workbooks",
        epilog="""
Examples:
  %(prog)s ./uploads/12301.xlsx --validate-only
  %(prog)s ./uploads/12301.xlsx --pdf-file ./reports/12301.pdf
  %(prog)s ./uploads/12301.xlsx --pdf-dir ./reports --submit
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "input_file",
        help="Path to the feedback workbook (.xlsx)"
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--pdf-dir",
        metavar="DIR",
        help="Write one PDF report per sheet into DIR"
    )
    output.add_argument(
        "--pdf-file",
        metavar="PATH",
        help="Write one consolidated PDF report for all sheets"
    )

    parser.add_argument(
        "--export-xlsx",
        metavar="PATH",
        help="Write the extracted sheets back out as a clean workbook"
    )

    parser.add_argument(
        "--submit",
        action="store_true",
        help="Submit the batch to the feedback service (all or nothing)"
    )

    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only extract and validate; exit 1 if anything is wrong"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress console output except errors"
    )

    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Save logs to specified file (default: logs/coach_feedback.log)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Coach Feedback Manager {__version__}"
    )

    return parser


def validate_arguments(args: argparse.Namespace) -> Optional[str]:
    """
    Check argument combinations the parser cannot express.

    Returns:
        Error message, or None if the arguments are usable
    """
    if args.verbose and args.quiet:
        return "Cannot use both --verbose and --quiet options"

    if args.validate_only and (args.submit or args.pdf_dir or args.pdf_file or args.export_xlsx):
        return "--validate-only cannot be combined with output or --submit options"

    if not args.input_file.lower().endswith('.xlsx'):
        return f"Input file '{args.input_file}' must be an .xlsx workbook"

    return None


def print_upload_summary(session, quiet: bool = False) -> None:
    """Print extraction and validation results for a staged upload."""
    if quiet:
        return

    print(f"\nWorkbook: {session.file_name}")
    for message in session.messages:
        print(f"  {message}")

    if session.extraction_errors:
        print("\nExtraction errors:")
        for error in session.extraction_errors:
            print(f"  ✗ {error.describe()}")

    invalid = [s for s in session.staged if not s.valid]
    if invalid:
        print("\nInvalid feedbacks:")
        for staged in invalid:
            print(f"  ✗ Feedback #{staged.record.feedback_no} ({staged.record.train_no}):")
            for reason in staged.result.validation_errors:
                print(f"      - {reason}")


def write_reports(args: argparse.Namespace, session, config_manager: ConfigManager) -> List[Path]:
    """
    Render the PDF and workbook outputs requested on the command line.

    Returns:
        List of written files
    """
    from coach_feedback.services.excel_writer import ReportWorkbookWriter
    from coach_feedback.services.pdf_renderer import LayoutMode, PdfRenderer
    from coach_feedback.services.sessions import upload_sheets

    sheets = upload_sheets(session)
    written: List[Path] = []

    if args.pdf_file or args.pdf_dir:
        renderer = PdfRenderer(config_manager.get_letterhead())

        if args.pdf_file:
            path = Path(args.pdf_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(renderer.render(LayoutMode.CONSOLIDATED, sheets))
            written.append(path)
        else:
            out_dir = Path(args.pdf_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            for sheet in sheets:
                path = out_dir / PdfRenderer.filename_for(LayoutMode.SINGLE, sheet)
                path.write_bytes(renderer.render(LayoutMode.SINGLE, sheet))
                written.append(path)

    if args.export_xlsx:
        written.append(ReportWorkbookWriter().save(sheets, args.export_xlsx))

    return written


def submit_batch(session, config_manager: ConfigManager, error_handler, quiet: bool = False) -> bool:
    """
    Submit the staged batch to the feedback service.

    Returns:
        bool: True if the service accepted the whole batch
    """
    from coach_feedback.services.api_client import FeedbackAPIClient
    from coach_feedback.services.bulk_submitter import BulkSubmitter
    from coach_feedback.services.sessions import submit_upload

    if not session.is_submittable:
        print("✗ Batch not submitted: fix the invalid feedbacks above first")
        return False

    client = FeedbackAPIClient(config_manager)
    try:
        submitter = BulkSubmitter(client, error_handler=error_handler)
        _, result = submit_upload(session, submitter)
    finally:
        client.close()

    if result.success:
        if not quiet:
            print(f"✓ {result.message}")
        return True

    print(f"✗ {result.message}")
    for item in result.invalid_records:
        reasons = '; '.join(item.get('validationErrors') or [])
        print(f"  - Feedback #{item.get('feedbackNo')}: {reasons}")
    return False


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main application entry point.

    Returns:
        Process exit code: 0 on success, 1 on validation, extraction,
        submission or configuration failure, 130 when interrupted
    """
    parser = create_argument_parser()

    if argv is None and len(sys.argv) == 1:
        parser.print_help()
        return EXIT_OK

    args = parser.parse_args(argv)

    problem = validate_arguments(args)
    if problem:
        print(f"Error: {problem}")
        return EXIT_FAILURE

    if args.verbose:
        log_level = "DEBUG"
    elif args.quiet:
        log_level = "ERROR"
    else:
        log_level = None

    try:
        config_manager = ConfigManager()

        from coach_feedback.utils.logging_config import setup_logging
        _, error_handler = setup_logging(
            log_level=log_level or config_manager.get_log_level(),
            log_file=args.log_file,
            enable_console=not args.quiet
        )
        logger = logging.getLogger("coach_feedback.cli")

        from coach_feedback.utils.file_validator import UploadFileValidator
        file_error = UploadFileValidator(config_manager.get_max_file_size_mb()).check_path(Path(args.input_file))
        if file_error:
            print(f"✗ {file_error.error_message}")
            return EXIT_FAILURE

        from coach_feedback.services.record_validator import RecordValidator
        from coach_feedback.services.sheet_extractor import SheetExtractor, WorkbookReadError
        from coach_feedback.services.sessions import stage_upload

        input_path = Path(args.input_file)
        try:
            session = stage_upload(input_path, input_path.name, SheetExtractor(), RecordValidator())
        except WorkbookReadError as e:
            error_handler.handle_file_error(str(input_path), e)
            print(f"✗ {e}")
            return EXIT_FAILURE

        error_handler.handle_extraction_errors(session.extraction_errors)
        error_handler.handle_validation_failures(session.staged)
        print_upload_summary(session, quiet=args.quiet)

        has_problems = bool(session.extraction_errors) or session.invalid_count > 0

        if args.validate_only:
            error_handler.log_error_summary()
            if has_problems:
                return EXIT_FAILURE
            if not args.quiet:
                print("\n✓ All feedbacks are valid")
            return EXIT_OK

        for path in write_reports(args, session, config_manager):
            logger.info(f"Wrote {path}")
            if not args.quiet:
                print(f"✓ Written: {path}")

        exit_code = EXIT_OK
        if args.submit and not submit_batch(session, config_manager, error_handler, quiet=args.quiet):
            exit_code = EXIT_FAILURE

        error_handler.log_error_summary()
        return exit_code

    except ConfigurationError as e:
        print(f"\n✗ Configuration Error: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\n⚠ Processing interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"\n✗ Processing failed: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_FAILURE
    finally:
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
