import pytest
import requests
from unittest.mock import MagicMock, patch

from core.errors import APIError, NetworkError, RateLimitError
from loaders.http import JSONClient

URL = "https://example.test/search"


@pytest.fixture
def client():
    # time.sleep covers both the rate limiter and tenacity's backoff
    with patch('requests.Session') as mock_session, patch('loaders.http.time.sleep'):
        client = JSONClient(min_interval=0)
        client.session = mock_session.return_value
        yield client


def failing_response(status, reason="Error", headers=None):
    error_response = MagicMock(status_code=status, reason=reason, headers=headers or {})
    mock_response = MagicMock()
    mock_response.raise_for_status.side_effect = requests.HTTPError(response=error_response)
    return mock_response


def test_get_json_success(client):
    mock_response = MagicMock()
    mock_response.json.return_value = {"ok": True}
    client.session.get.return_value = mock_response

    assert client.get_json(URL, {"q": "x"}) == {"ok": True}
    client.session.get.assert_called_once_with(URL, params={"q": "x"}, timeout=client.timeout)


def test_rate_limited(client):
    client.session.get.return_value = failing_response(429, headers={"Retry-After": "30"})

    with pytest.raises(RateLimitError) as exc:
        client.get_json(URL, {})
    assert exc.value.status == 429
    assert exc.value.retry_after == 30.0


def test_server_error(client):
    client.session.get.return_value = failing_response(500, reason="Internal Server Error")

    with pytest.raises(APIError) as exc:
        client.get_json(URL, {})
    assert exc.value.status == 500
    assert "500 Internal Server Error" in exc.value.message
    # HTTP errors are not retried
    assert client.session.get.call_count == 1


def test_timeout_retried_then_network_error(client):
    client.session.get.side_effect = requests.Timeout()

    with pytest.raises(NetworkError) as exc:
        client.get_json(URL, {})
    assert exc.value.url == URL
    assert client.session.get.call_count == 3


def test_connection_error_recovers(client):
    mock_response = MagicMock()
    mock_response.json.return_value = []
    client.session.get.side_effect = [requests.ConnectionError("reset"), mock_response]

    assert client.get_json(URL, {}) == []
    assert client.session.get.call_count == 2


def test_invalid_json(client):
    mock_response = MagicMock()
    mock_response.json.side_effect = ValueError("Expecting value")
    client.session.get.return_value = mock_response

    with pytest.raises(APIError) as exc:
        client.get_json(URL, {})
    assert exc.value.status == 502


def test_rate_limit_waits_between_requests():
    with patch('requests.Session'), patch('loaders.http.time.sleep') as mock_sleep:
        client = JSONClient(min_interval=60)
        client._rate_limit("https://throttled.test/a")
        client._rate_limit("https://throttled.test/b")

    assert mock_sleep.call_count == 1
    assert 0 < mock_sleep.call_args.args[0] <= 60


def test_rate_limit_sleeps_without_holding_lock():
    """A throttled host doesn't block requests to other hosts."""
    from loaders import http

    held = []
    with patch('requests.Session'), patch('loaders.http.time.sleep', side_effect=lambda s: held.append(http._rate_lock.locked())):
        client = JSONClient(min_interval=60)
        client._rate_limit("https://slow.test/a")
        client._rate_limit("https://slow.test/b")
        client._rate_limit("https://other.test/a")

    assert held == [False]
