"""
HTTP client for the feedback persistence and auth services.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

import requests
from requests.adapters import HTTPAdapter

from ..config.config_manager import ConfigManager, ConfigurationError
from ..models.feedback_data import FeedbackRecord, parse_date


class FeedbackAPIError(Exception):
    """Exception raised for feedback service errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)


class RecordNotFoundError(FeedbackAPIError):
    """Raised when the service answers 404 for a record id."""
    pass


@dataclass
class AuthResult:
    """Outcome of a login attempt."""
    success: bool
    role: Optional[str] = None
    name: Optional[str] = None
    message: str = ''
    token: Optional[str] = None


class FeedbackAPIClient:
    """
    Client for the feedback persistence service.

    Every response body is expected as ``{success, data, message, count}``.
    Non-2xx answers (or ``success: false``) raise FeedbackAPIError carrying the
    server's message; 404 raises RecordNotFoundError. Requests are never
    retried.
    """

    REFERENCE_KINDS = ('trains', 'stations', 'coaches')

    def __init__(self, config_manager: ConfigManager, session: Optional[requests.Session] = None):
        """
        Initialize feedback API client.

        Args:
            config_manager: Configuration manager instance
            session: Pre-built requests session (optional)

        Raises:
            ConfigurationError: If the API URL is invalid
        """
        self.config = config_manager
        self.logger = logging.getLogger(__name__)

        if not self.config.validate_api_url():
            raise ConfigurationError(f"Invalid FEEDBACK_API_URL: {self.config.get_api_url()}")

        self.base_url = self.config.get_api_url()
        self.timeout = self.config.get_request_timeout()

        self.session = session or requests.Session()
        self._setup_session()

        self.logger.debug(f"Feedback API client initialized for {self.base_url}")

    def _setup_session(self) -> None:
        """Mount adapters without retries and set default headers."""
        adapter = HTTPAdapter(max_retries=0)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'CoachFeedbackManager/1.0'
        })
        token = self.config.get_api_token()
        if token:
            self.set_token(token)

    def close(self) -> None:
        """Release pooled connections held by the HTTP session."""
        self.session.close()

    def set_token(self, token: Optional[str]) -> None:
        """Use ``token`` as the bearer credential for subsequent calls."""
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'
        else:
            self.session.headers.pop('Authorization', None)

    def _request(self, method: str, path: str, fallback_message: str, **kwargs) -> Dict[str, Any]:
        """
        Perform one request and return the decoded body.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            fallback_message: Message used when the server gives none

        Returns:
            Dict: Decoded JSON body

        Raises:
            RecordNotFoundError: On HTTP 404
            FeedbackAPIError: On any other failure
        """
        url = f"{self.base_url}{path}"
        self.logger.debug(f"{method} {url}")

        try:
            response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise FeedbackAPIError(f"{fallback_message}: request timed out") from e
        except requests.exceptions.RequestException as e:
            raise FeedbackAPIError(f"{fallback_message}: {e}") from e

        body = self._decode_body(response)
        message = body.get('message') or fallback_message

        if response.status_code == 404:
            raise RecordNotFoundError(body.get('message') or 'Feedback not found', status_code=404, payload=body)

        if not response.ok or body.get('success') is False:
            raise FeedbackAPIError(message, status_code=response.status_code, payload=body)

        return body

    @staticmethod
    def _decode_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {'data': body}

    @staticmethod
    def _day_param(day: Union[date, str, None]) -> str:
        parsed = parse_date(day)
        return parsed.isoformat() if parsed else ''

    def login(self, user_id: str, password: str) -> AuthResult:
        """
        Authenticate against the auth service.

        A rejected login is returned as ``AuthResult(success=False)`` rather
        than raised; transport failures still raise FeedbackAPIError.
        """
        try:
            body = self._request('POST', '/auth/login', 'Login failed',
                                 json={'userId': user_id, 'password': password})
        except FeedbackAPIError as e:
            if e.status_code in (400, 401, 403):
                self.logger.info(f"Login rejected for user {user_id}")
                return AuthResult(success=False, message=str(e))
            raise

        data = body.get('data') or {}
        user = data.get('user') or data
        token = data.get('token')
        self.set_token(token)
        self.logger.info(f"User {user_id} logged in as {user.get('role')}")
        return AuthResult(
            success=True,
            role=user.get('role'),
            name=user.get('name'),
            message=body.get('message', ''),
            token=token,
        )

    def change_password(self, old_password: str, new_password: str, confirm_password: str) -> str:
        """Change the current user's password. Returns the server message."""
        body = self._request('POST', '/auth/change-password', 'Failed to change password', json={
            'oldPassword': old_password,
            'newPassword': new_password,
            'confirmPassword': confirm_password,
        })
        return body.get('message') or 'Password changed successfully'

    def create_record(self, record: FeedbackRecord) -> FeedbackRecord:
        """Persist one record and return it as stored."""
        body = self._request('POST', '/feedback', 'Error submitting feedback', json=record.to_dict())
        return self._record_from(body, record)

    def submit_bulk(self, records: Sequence[FeedbackRecord]) -> Dict[str, Any]:
        """
        Persist a batch in one call.

        Returns:
            Dict: The decoded body, including ``invalidFeedbacks`` when present
        """
        body = self._request('POST', '/feedback/submit-bulk', 'Error submitting feedbacks',
                             json={'feedbacks': [r.to_dict() for r in records]})
        self.logger.info(f"Bulk submitted {len(records)} feedbacks")
        return body

    def update_record(self, record_id: str, record: FeedbackRecord) -> FeedbackRecord:
        payload = record.to_dict()
        payload.pop('_id', None)
        body = self._request('PUT', f'/feedback/{record_id}', 'Error updating feedback', json=payload)
        return self._record_from(body, record)

    def delete_record(self, record_id: str) -> None:
        self._request('DELETE', f'/feedback/{record_id}', 'Error deleting feedback')
        self.logger.info(f"Deleted feedback {record_id}")

    def get_record(self, record_id: str) -> FeedbackRecord:
        body = self._request('GET', f'/feedback/{record_id}', 'Error loading feedback')
        return FeedbackRecord.from_dict(body.get('data') or {})

    def search(self, train_no: str, day: Union[date, str]) -> List[FeedbackRecord]:
        """Fetch the records for one train and date."""
        body = self._request('GET', '/feedback/search', 'Error searching feedbacks',
                             params={'trainNo': train_no, 'date': self._day_param(day)})
        return [FeedbackRecord.from_dict(item) for item in body.get('data') or []]

    def count(self, train_no: str, day: Union[date, str]) -> int:
        """Number of records already stored for a train and date."""
        body = self._request('GET', '/feedback/count', 'Error fetching feedback count',
                             params={'trainNo': train_no, 'date': self._day_param(day)})
        value = body.get('count')
        if value is None:
            data = body.get('data')
            value = data.get('count') if isinstance(data, dict) else data
        return int(value or 0)

    def reference_data(self, kind: str) -> List[Any]:
        """
        Fetch a reference list (trains, stations or coaches).

        Raises:
            ValueError: If kind is not a known reference list
        """
        if kind not in self.REFERENCE_KINDS:
            raise ValueError(f"Unknown reference data '{kind}'. Expected one of: {', '.join(self.REFERENCE_KINDS)}")
        body = self._request('GET', f'/data/{kind}', f'Error loading {kind}')
        return list(body.get('data') or [])

    @staticmethod
    def _record_from(body: Dict[str, Any], sent: FeedbackRecord) -> FeedbackRecord:
        data = body.get('data')
        if isinstance(data, dict) and data:
            return FeedbackRecord.from_dict(data)
        return sent
