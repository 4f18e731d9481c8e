"""
Unit tests for network/auth.py OAuth token acquisition.
"""

from __future__ import annotations

from typing import Callable
from unittest.mock import Mock

import pytest
import requests

from sync_guesty.cache import TokenCache
from sync_guesty.errors import ExternalAPIError
from sync_guesty.network.auth import OAuthTokenProvider
from sync_guesty.utils.datetime import utc_now

TOKEN_URL = "https://open-api.guesty.com/oauth2/token"


def _provider(session: Mock, sleep: Mock, cache: TokenCache | None = None) -> OAuthTokenProvider:
    return OAuthTokenProvider(
        client_id="client-123",
        client_secret="secret-456",
        token_url=TOKEN_URL,
        session=session,
        cache=cache or TokenCache(),
        sleep=sleep,
    )


@pytest.mark.unit
def test_get_token_posts_client_credentials_form(make_response: Callable) -> None:
    """Test that the token request is a form-encoded client_credentials grant."""
    session = Mock()
    session.post.return_value = make_response(200, {"access_token": "tok-1", "expires_in": 86400})

    token = _provider(session, Mock()).get_token()

    assert token == "tok-1"
    call = session.post.call_args
    assert call[0][0] == TOKEN_URL
    assert call[1]["data"] == {
        "grant_type": "client_credentials",
        "scope": "open-api",
        "client_id": "client-123",
        "client_secret": "secret-456",
    }
    assert call[1]["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


@pytest.mark.unit
def test_get_token_uses_cache_on_second_call(make_response: Callable) -> None:
    """Test that a cached token is reused without another POST."""
    session = Mock()
    session.post.return_value = make_response(200, {"access_token": "tok-1", "expires_in": 86400})
    provider = _provider(session, Mock())

    assert provider.get_token() == "tok-1"
    assert provider.get_token() == "tok-1"
    assert session.post.call_count == 1


@pytest.mark.unit
def test_invalidate_forces_new_token(make_response: Callable) -> None:
    """Test that invalidate() makes the next call fetch a fresh token."""
    session = Mock()
    session.post.side_effect = [
        make_response(200, {"access_token": "tok-1", "expires_in": 86400}),
        make_response(200, {"access_token": "tok-2", "expires_in": 86400}),
    ]
    provider = _provider(session, Mock())

    assert provider.get_token() == "tok-1"
    provider.invalidate()
    assert provider.get_token() == "tok-2"


@pytest.mark.unit
def test_get_token_retries_on_429(make_response: Callable) -> None:
    """Test that a throttled token request is retried after a backoff sleep."""
    session = Mock()
    session.post.side_effect = [
        make_response(429, text="Too Many Requests", headers={"Retry-After": "2"}),
        make_response(200, {"access_token": "tok-1", "expires_in": 86400}),
    ]
    sleep = Mock()

    assert _provider(session, sleep).get_token() == "tok-1"
    assert session.post.call_count == 2
    sleep.assert_called_once()
    assert 1.6 <= sleep.call_args[0][0] <= 2.4


@pytest.mark.unit
def test_get_token_gives_up_after_max_attempts(make_response: Callable) -> None:
    """Test that persistent 429s raise after five attempts with four sleeps."""
    session = Mock()
    session.post.return_value = make_response(429, text="Too Many Requests")
    sleep = Mock()

    with pytest.raises(ExternalAPIError) as exc_info:
        _provider(session, sleep).get_token()

    assert exc_info.value.status_code == 429
    assert exc_info.value.details["attempts_exhausted"] is True
    assert session.post.call_count == 5
    assert sleep.call_count == 4


@pytest.mark.unit
def test_get_token_does_not_retry_bad_credentials(make_response: Callable) -> None:
    """Test that a 401 from the token endpoint fails immediately."""
    session = Mock()
    session.post.return_value = make_response(401, text="invalid_client")
    sleep = Mock()

    with pytest.raises(ExternalAPIError) as exc_info:
        _provider(session, sleep).get_token()

    assert exc_info.value.status_code == 401
    assert exc_info.value.service == "Guesty OAuth"
    assert session.post.call_count == 1
    sleep.assert_not_called()


@pytest.mark.unit
def test_get_token_retries_network_errors_then_reports_502() -> None:
    """Test that connection failures are retried and finally surface as 502."""
    session = Mock()
    session.post.side_effect = requests.ConnectionError("connection refused")
    sleep = Mock()

    with pytest.raises(ExternalAPIError) as exc_info:
        _provider(session, sleep).get_token()

    assert exc_info.value.status_code == 502
    assert session.post.call_count == 5
    assert sleep.call_count == 4


@pytest.mark.unit
def test_get_token_rejects_response_without_token(make_response: Callable) -> None:
    """Test that a 200 without access_token is treated as an upstream failure."""
    session = Mock()
    session.post.return_value = make_response(200, {"token_type": "Bearer"})

    with pytest.raises(ExternalAPIError) as exc_info:
        _provider(session, Mock()).get_token()

    assert exc_info.value.status_code == 502


@pytest.mark.unit
def test_missing_expires_in_defaults_to_one_day(make_response: Callable) -> None:
    """Test that the token lifetime defaults to 24 hours."""
    session = Mock()
    session.post.return_value = make_response(200, {"access_token": "tok-1"})
    cache = TokenCache()

    _provider(session, Mock(), cache=cache).get_token()

    assert cache.expires_at is not None
    remaining = (cache.expires_at - utc_now()).total_seconds()
    assert 86000 < remaining <= 86400
