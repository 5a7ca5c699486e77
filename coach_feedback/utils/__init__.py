# Utilities module

from .logging_config import LoggingConfig, ErrorHandler, setup_logging
from .file_validator import UploadFileValidator, FileCheckError

__all__ = ['LoggingConfig', 'ErrorHandler', 'setup_logging', 'UploadFileValidator', 'FileCheckError']
