"""
Unit tests for the feedback service client.

HTTP is mocked at the requests session; no network access is needed.
"""
from datetime import date
from unittest.mock import Mock, patch

import pytest
import requests

from coach_feedback.config.config_manager import ConfigManager, ConfigurationError
from coach_feedback.services.api_client import FeedbackAPIClient, FeedbackAPIError, RecordNotFoundError
from tests.factories import make_record


def fake_response(status=200, body=None):
    response = Mock()
    response.status_code = status
    response.ok = status < 400
    if body is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setenv("FEEDBACK_API_URL", "http://feedback.test/api/")
    monkeypatch.delenv("FEEDBACK_API_TOKEN", raising=False)
    monkeypatch.setenv("REQUEST_TIMEOUT", "12")
    return ConfigManager()


@pytest.fixture
def client(config):
    return FeedbackAPIClient(config)


def test_rejects_invalid_url(monkeypatch):
    monkeypatch.setenv("FEEDBACK_API_URL", "feedback.test/api")
    with pytest.raises(ConfigurationError):
        FeedbackAPIClient(ConfigManager())


def test_session_has_no_retries_and_static_token(monkeypatch):
    monkeypatch.setenv("FEEDBACK_API_URL", "http://feedback.test/api")
    monkeypatch.setenv("FEEDBACK_API_TOKEN", "static-token")
    client = FeedbackAPIClient(ConfigManager())

    assert client.session.headers["Authorization"] == "Bearer static-token"
    assert client.session.get_adapter("http://feedback.test").max_retries.total == 0


def test_close_releases_session(config):
    session = Mock(spec=requests.Session)
    session.headers = {}
    client = FeedbackAPIClient(config, session=session)

    client.close()

    session.close.assert_called_once_with()


def test_login_stores_token(client):
    body = {"success": True, "data": {"token": "jwt-1", "user": {"name": "Asha", "role": "admin"}}}
    with patch.object(client.session, "request", return_value=fake_response(200, body)) as mock_request:
        result = client.login("asha", "secret")

    assert result.success is True
    assert result.role == "admin"
    assert result.name == "Asha"
    assert client.session.headers["Authorization"] == "Bearer jwt-1"
    kwargs = mock_request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "http://feedback.test/api/auth/login"
    assert kwargs["json"] == {"userId": "asha", "password": "secret"}
    assert kwargs["timeout"] == 12


def test_login_rejected_is_not_raised(client):
    body = {"success": False, "message": "Invalid credentials"}
    with patch.object(client.session, "request", return_value=fake_response(401, body)):
        result = client.login("asha", "wrong")

    assert result.success is False
    assert result.message == "Invalid credentials"
    assert "Authorization" not in client.session.headers


def test_search_sends_iso_date_and_parses_records(client):
    body = {"success": True, "data": [
        {"_id": "a1", "feedbackNo": 1, "trainNo": "12301", "psi": 8, "feedbackRating": "good"},
        {"_id": "a2", "feedbackNo": 2, "trainNo": "12301", "psi": 9, "feedbackText": "Clean"},
    ]}
    with patch.object(client.session, "request", return_value=fake_response(200, body)) as mock_request:
        records = client.search("12301", "15/01/2024")

    assert mock_request.call_args.kwargs["params"] == {"trainNo": "12301", "date": "2024-01-15"}
    assert [r.record_id for r in records] == ["a1", "a2"]
    assert records[1].feedback_text == "Clean"


def test_count_reads_count_field(client):
    with patch.object(client.session, "request", return_value=fake_response(200, {"success": True, "count": 4})):
        assert client.count("12301", date(2024, 1, 15)) == 4
    with patch.object(client.session, "request",
                      return_value=fake_response(200, {"success": True, "data": {"count": 2}})):
        assert client.count("12301", date(2024, 1, 15)) == 2


def test_submit_bulk_posts_wire_records(client):
    records = [make_record(feedback_no=1), make_record(feedback_no=2)]
    with patch.object(client.session, "request",
                      return_value=fake_response(201, {"success": True, "count": 2})) as mock_request:
        body = client.submit_bulk(records)

    assert body["count"] == 2
    sent = mock_request.call_args.kwargs["json"]["feedbacks"]
    assert [item["feedbackNo"] for item in sent] == [1, 2]
    assert sent[0]["reportDate"] == "2024-01-15"


def test_not_found_raises_record_not_found(client):
    with patch.object(client.session, "request",
                      return_value=fake_response(404, {"success": False, "message": "Feedback not found"})):
        with pytest.raises(RecordNotFoundError) as exc_info:
            client.get_record("missing")
    assert exc_info.value.status_code == 404


def test_server_error_uses_server_message(client):
    body = {"success": False, "message": "Duplicate feedback number", "invalidFeedbacks": [{"feedbackNo": 2}]}
    with patch.object(client.session, "request", return_value=fake_response(400, body)):
        with pytest.raises(FeedbackAPIError) as exc_info:
            client.submit_bulk([make_record()])

    assert str(exc_info.value) == "Duplicate feedback number"
    assert exc_info.value.payload["invalidFeedbacks"] == [{"feedbackNo": 2}]


def test_server_error_without_body_uses_fallback(client):
    with patch.object(client.session, "request", return_value=fake_response(500)):
        with pytest.raises(FeedbackAPIError, match="Error submitting feedbacks"):
            client.submit_bulk([make_record()])


def test_connection_error_is_wrapped(client):
    with patch.object(client.session, "request", side_effect=requests.exceptions.ConnectionError("refused")):
        with pytest.raises(FeedbackAPIError, match="Error deleting feedback"):
            client.delete_record("a1")


def test_update_record_omits_id_from_body(client):
    record = make_record(record_id="a1", coach_no="B9")
    with patch.object(client.session, "request",
                      return_value=fake_response(200, {"success": True, "data": record.to_dict()})) as mock_request:
        saved = client.update_record("a1", record)

    kwargs = mock_request.call_args.kwargs
    assert kwargs["method"] == "PUT"
    assert kwargs["url"].endswith("/feedback/a1")
    assert "_id" not in kwargs["json"]
    assert saved.coach_no == "B9"


def test_reference_data(client):
    with patch.object(client.session, "request",
                      return_value=fake_response(200, {"success": True, "data": ["12301", "12302"]})):
        assert client.reference_data("trains") == ["12301", "12302"]
    with pytest.raises(ValueError):
        client.reference_data("platforms")


def test_change_password_returns_message(client):
    with patch.object(client.session, "request",
                      return_value=fake_response(200, {"success": True, "message": "Password updated"})):
        assert client.change_password("old-pass", "new-pass", "new-pass") == "Password updated"
