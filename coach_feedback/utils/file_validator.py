"""
Upload file checks for the feedback spreadsheet importer.

Rejects files that cannot possibly be a feedback workbook before they reach
openpyxl: wrong extension, empty, too large, or not a zip container.
"""

import os
import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass


@dataclass
class FileCheckError:
    """Represents a rejected upload with details."""
    file_name: str
    error_type: str
    error_message: str

    def to_dict(self) -> dict:
        return {'fileName': self.file_name, 'errorType': self.error_type, 'message': self.error_message}


class UploadFileValidator:
    """
    Validates uploaded spreadsheets by name, size and container signature.
    """

    SUPPORTED_EXTENSIONS = {'.xlsx'}

    # xlsx files are zip archives
    ZIP_SIGNATURE = b'PK\x03\x04'

    def __init__(self, max_file_size_mb: int = 10):
        self.max_file_size_bytes = max_file_size_mb * 1024 * 1024
        self.logger = logging.getLogger(__name__)

    def check_upload(self, file_name: str, data: bytes) -> Optional[FileCheckError]:
        """
        Check an in-memory upload.

        Args:
            file_name: Client-supplied file name
            data: Raw file bytes

        Returns:
            FileCheckError if the upload is rejected, None if it passes
        """
        if not file_name:
            return FileCheckError('', 'missing_file', 'Please select a file to upload')

        extension = Path(file_name).suffix.lower()
        if extension not in self.SUPPORTED_EXTENSIONS:
            return FileCheckError(file_name, 'unsupported_format',
                                  f"Unsupported file type '{extension or file_name}'. Please upload an .xlsx file")

        if not data:
            return FileCheckError(file_name, 'empty_file', f"File {file_name} is empty")

        if len(data) > self.max_file_size_bytes:
            size_mb = len(data) / (1024 * 1024)
            return FileCheckError(file_name, 'file_too_large',
                                  f"File {file_name} is too large ({size_mb:.1f}MB > "
                                  f"{self.max_file_size_bytes // (1024 * 1024)}MB)")

        if not data.startswith(self.ZIP_SIGNATURE):
            return FileCheckError(file_name, 'corrupted_file',
                                  f"File {file_name} is not a valid .xlsx workbook")

        self.logger.debug(f"Upload passed checks: {file_name} ({len(data)} bytes)")
        return None

    def check_path(self, file_path: Path) -> Optional[FileCheckError]:
        """
        Check a workbook on disk.

        Args:
            file_path: Path to the workbook

        Returns:
            FileCheckError if the file is rejected, None if it passes
        """
        file_path = Path(file_path)
        if not file_path.exists():
            return FileCheckError(file_path.name, 'not_found', f"File not found: {file_path}")

        if not file_path.is_file():
            return FileCheckError(file_path.name, 'not_a_file', f"Path is not a file: {file_path}")

        if not os.access(file_path, os.R_OK):
            return FileCheckError(file_path.name, 'permission_error', f"No read permission for file: {file_path}")

        try:
            with open(file_path, 'rb') as f:
                data = f.read(self.max_file_size_bytes + 1)
        except OSError as e:
            self.logger.warning(f"File readability test failed for {file_path}: {e}")
            return FileCheckError(file_path.name, 'os_error', f"OS error: {e}")

        return self.check_upload(file_path.name, data)
