"""Tests for OAuth URL construction and token endpoint calls."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from jgoogle.errors import AuthorizationError, NetworkError
from jgoogle.oauth import (
    GOOGLE_TOKEN_URL,
    OOB_REDIRECT_URI,
    OAuthClient,
    OAuthConfig,
    PKCEPair,
    TokenEndpointError,
    TokenInfo,
)


@pytest.fixture
def client():
    return OAuthClient(OAuthConfig("cid", "secret", ["scope-a", "scope-b"]))


def test_authorization_url_requests_offline_consent(client):
    url = client.config.get_authorization_url(
        "http://127.0.0.1:5000/oauth2callback", state="xyz", code_challenge="abc"
    )
    parsed = urlparse(url)
    params = {k: v[0] for k, v in parse_qs(parsed.query).items()}

    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == client.config.auth_url
    assert params == {
        "client_id": "cid",
        "redirect_uri": "http://127.0.0.1:5000/oauth2callback",
        "response_type": "code",
        "scope": "scope-a scope-b",
        "access_type": "offline",
        "prompt": "consent",
        "state": "xyz",
        "code_challenge": "abc",
        "code_challenge_method": "S256",
    }


def test_authorization_url_without_state(client):
    params = parse_qs(urlparse(client.config.get_authorization_url(OOB_REDIRECT_URI)).query)
    assert "state" not in params
    assert "code_challenge" not in params
    assert params["redirect_uri"] == [OOB_REDIRECT_URI]


def test_pkce_challenge_matches_rfc7636_example():
    pkce = PKCEPair(verifier="dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk")
    assert pkce.challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_pkce_verifiers_are_random():
    assert PKCEPair().verifier != PKCEPair().verifier


def test_exchange_code(client, make_response):
    response = make_response(
        json_data={
            "access_token": "AT1",
            "refresh_token": "RT1",
            "expires_in": 3599,
            "token_type": "Bearer",
        }
    )
    with patch("requests.post", return_value=response) as mock_post:
        token = client.exchange_code("CODE", "http://127.0.0.1:1/cb", "verifier")

    assert token.token == "AT1"
    assert token.refresh_token == "RT1"
    assert token.expires_at > datetime.now(timezone.utc) + timedelta(minutes=55)

    args, kwargs = mock_post.call_args
    assert args[0] == GOOGLE_TOKEN_URL
    assert kwargs["data"] == {
        "client_id": "cid",
        "client_secret": "secret",
        "grant_type": "authorization_code",
        "code": "CODE",
        "redirect_uri": "http://127.0.0.1:1/cb",
        "code_verifier": "verifier",
    }


def test_exchange_code_provider_error(client, make_response):
    response = make_response(
        400, {"error": "invalid_grant", "error_description": "Bad Request"}
    )
    with patch("requests.post", return_value=response):
        with pytest.raises(AuthorizationError) as exc_info:
            client.exchange_code("USED", OOB_REDIRECT_URI)

    assert exc_info.value.error == "invalid_grant"
    assert exc_info.value.description == "Bad Request"


def test_exchange_code_without_refresh_token(client, make_response):
    response = make_response(json_data={"access_token": "AT1", "expires_in": 3599})
    with patch("requests.post", return_value=response):
        with pytest.raises(AuthorizationError, match="missing_refresh_token"):
            client.exchange_code("CODE", OOB_REDIRECT_URI)


def test_exchange_code_non_json_error(client, make_response):
    response = make_response(502, content=b"<html>Bad gateway</html>")
    with patch("requests.post", return_value=response):
        with pytest.raises(AuthorizationError) as exc_info:
            client.exchange_code("CODE", OOB_REDIRECT_URI)
    assert exc_info.value.error == "http_502"


def test_exchange_code_connection_error(client):
    with patch("requests.post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(NetworkError):
            client.exchange_code("CODE", OOB_REDIRECT_URI)


def test_refresh(client, make_response):
    response = make_response(json_data={"access_token": "AT2", "expires_in": 3599})
    with patch("requests.post", return_value=response) as mock_post:
        token = client.refresh("RT1")

    assert token.token == "AT2"
    assert token.refresh_token is None
    data = mock_post.call_args.kwargs["data"]
    assert data["grant_type"] == "refresh_token"
    assert data["refresh_token"] == "RT1"


def test_refresh_rejected(client, make_response):
    response = make_response(400, {"error": "invalid_grant", "error_description": "Token has been expired or revoked."})
    with patch("requests.post", return_value=response):
        with pytest.raises(TokenEndpointError) as exc_info:
            client.refresh("RT1")
    assert exc_info.value.error == "invalid_grant"
    assert exc_info.value.status_code == 400


def test_token_expiry():
    now = datetime.now(timezone.utc)
    assert not TokenInfo("t").is_expired()
    assert not TokenInfo("t", expires_at=now + timedelta(hours=1)).is_expired()
    assert TokenInfo("t", expires_at=now + timedelta(seconds=30)).is_expired(buffer_seconds=60)
    assert TokenInfo("t", expires_at=now - timedelta(seconds=1)).is_expired(buffer_seconds=0)
