"""Pytest configuration for jgoogle tests."""

import json
import logging
from datetime import datetime, timedelta, timezone

import pytest
import requests

from jgoogle.accounts import Account, AccountStore, OAuth2Credentials


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by CLI invocations (they hold closed streams)."""
    yield
    logger = logging.getLogger("jgoogle")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "state"


@pytest.fixture
def store(state_dir):
    return AccountStore(state_dir)


@pytest.fixture
def jgoogle_env(monkeypatch, tmp_path, state_dir):
    """Client credentials and an isolated state directory, no stray .env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("JGOOGLE_HOME", str(state_dir))
    for var in ("JGOOGLE_CALLBACK_TIMEOUT", "JGOOGLE_LOG_LEVEL", "JGOOGLE_LOG_FILE"):
        monkeypatch.delenv(var, raising=False)
    return state_dir


@pytest.fixture
def make_account():
    """Build a credential record; pass valid=True for an unexpired access token."""

    def _make(email="a@x.com", refresh_token="RT1", access_token=None, valid=False):
        expires_at = None
        if access_token:
            delta = timedelta(hours=1) if valid else timedelta(hours=-1)
            expires_at = datetime.now(timezone.utc) + delta
        return Account(
            email=email,
            oauth2=OAuth2Credentials(
                client_id="test-client-id",
                client_secret="test-client-secret",
                refresh_token=refresh_token,
                access_token=access_token,
                expires_at=expires_at,
            ),
        )

    return _make


@pytest.fixture
def make_response():
    """Build a real requests.Response with a JSON or raw body."""

    def _make(status_code=200, json_data=None, headers=None, content=None):
        response = requests.Response()
        response.status_code = status_code
        if json_data is not None:
            response._content = json.dumps(json_data).encode()
        else:
            response._content = content or b""
        response._content_consumed = True
        response.headers.update(headers or {})
        return response

    return _make
