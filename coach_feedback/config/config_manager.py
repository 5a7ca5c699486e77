"""
Configuration manager for coach feedback system.
"""
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""
    pass


@dataclass(frozen=True)
class Letterhead:
    """Static organization strings printed on every report page."""
    name: str
    address: str
    phone: str
    email: str

    @property
    def contact_line(self) -> str:
        return f"Phone: {self.phone} | E-mail: {self.email}"


class ConfigManager:
    """
    Manages environment variables and system configuration for the coach feedback system.
    """

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            env_file: Optional path to .env file to load
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()  # Load from default .env file if present

        self._config = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate all configuration values."""
        # Optional environment variables with defaults
        optional_vars = {
            'FEEDBACK_API_URL': 'http://localhost:5000/api',
            'FEEDBACK_API_TOKEN': '',
            'REQUEST_TIMEOUT': '30',
            'MAX_FILE_SIZE_MB': '10',
            'LOG_LEVEL': 'INFO',
            'SECRET_KEY': 'coach-feedback-dev-secret',
            'ORG_NAME': 'Young Bengal Co-Operative Labour Contract Society Ltd.',
            'ORG_ADDRESS': 'Regd. Off: 14/1, Nirode Behari Mullick Road, Kolkata - 700 006',
            'ORG_PHONE': '033-6535 8154',
            'ORG_EMAIL': 'ybcolcs@yahoo.in',
        }

        for var_name, default_value in optional_vars.items():
            self._config[var_name] = os.getenv(var_name, default_value)

        # Validate and convert numeric values
        self._validate_numeric_configs()

    def _validate_numeric_configs(self) -> None:
        """Validate and convert numeric configuration values."""
        numeric_configs = {
            'REQUEST_TIMEOUT': int,
            'MAX_FILE_SIZE_MB': int
        }

        for config_name, config_type in numeric_configs.items():
            try:
                self._config[config_name] = config_type(self._config[config_name])
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {config_name}: {self._config[config_name]}. "
                    f"Expected {config_type.__name__}."
                ) from e

    def get_api_url(self) -> str:
        """
        Get the feedback service base URL.

        Returns:
            str: Base URL without trailing slash
        """
        return self._config['FEEDBACK_API_URL'].rstrip('/')

    def get_api_token(self) -> Optional[str]:
        """Get the static bearer token for the feedback service, if configured."""
        return self._config['FEEDBACK_API_TOKEN'] or None

    def get_request_timeout(self) -> int:
        """
        Get the API request timeout in seconds.

        Returns:
            int: Request timeout in seconds
        """
        return self._config['REQUEST_TIMEOUT']

    def get_max_file_size_mb(self) -> int:
        """
        Get the maximum allowed upload size in megabytes.

        Returns:
            int: Maximum file size in MB
        """
        return self._config['MAX_FILE_SIZE_MB']

    def get_log_level(self) -> str:
        """
        Get the logging level.

        Returns:
            str: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        return self._config['LOG_LEVEL'].upper()

    def get_secret_key(self) -> str:
        """Get the Flask session signing key."""
        return self._config['SECRET_KEY']

    def get_letterhead(self) -> Letterhead:
        """
        Get the organization letterhead used on PDF reports.

        Returns:
            Letterhead: Name, address, phone and e-mail strings
        """
        return Letterhead(
            name=self._config['ORG_NAME'],
            address=self._config['ORG_ADDRESS'],
            phone=self._config['ORG_PHONE'],
            email=self._config['ORG_EMAIL'],
        )

    def validate_api_url(self) -> bool:
        """
        Validate that the feedback service URL is usable.

        Returns:
            bool: True if the URL has an http(s) scheme, False otherwise
        """
        return self.get_api_url().startswith(('http://', 'https://'))

    def get_all_config(self) -> dict:
        """
        Get all configuration values (excluding sensitive data).

        Returns:
            dict: All configuration values with secrets masked
        """
        config_copy = self._config.copy()
        for secret_name in ('FEEDBACK_API_TOKEN', 'SECRET_KEY'):
            secret = config_copy.get(secret_name)
            if secret:
                config_copy[secret_name] = f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else "***"

        return config_copy
