"""
OAuth 2.0 helpers for Google authentication.

Builds authorization URLs and talks to the token endpoint for the
authorization-code and refresh-token grants. Nothing here retries: a failed
request is reported to the caller, which decides what to do.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import requests

from .errors import AuthorizationError, NetworkError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Redirect target for the copy/paste flow: Google shows the code instead of
# redirecting to a web server.
OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"

REQUEST_TIMEOUT = 30


@dataclass
class TokenInfo:
    """Tokens returned by the token endpoint."""

    token: str
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """
        Check if token is expired or will expire soon.

        Args:
            buffer_seconds: Consider token expired if within this many seconds of expiry
        """
        if not self.expires_at:
            return False

        buffer = timedelta(seconds=buffer_seconds)
        return datetime.now(timezone.utc) >= (self.expires_at - buffer)


@dataclass
class PKCEPair:
    """Proof key for code exchange (RFC 7636, S256 method)."""

    verifier: str = field(default_factory=lambda: secrets.token_urlsafe(64))

    @property
    def challenge(self) -> str:
        digest = hashlib.sha256(self.verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass
class OAuthConfig:
    """Configuration for the OAuth 2.0 client."""

    client_id: str
    client_secret: str
    scopes: list[str]
    auth_url: str = GOOGLE_AUTH_URL
    token_url: str = GOOGLE_TOKEN_URL

    def get_authorization_url(
        self,
        redirect_uri: str,
        state: Optional[str] = None,
        code_challenge: Optional[str] = None,
    ) -> str:
        """
        Generate the consent screen URL.

        Offline access with forced consent makes Google issue a refresh
        token even when the user granted access before.

        Args:
            redirect_uri: Where Google sends the user after consent
            state: Optional state parameter for CSRF protection
            code_challenge: Optional PKCE challenge (S256)

        Returns:
            Authorization URL for user to visit
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }

        if state:
            params["state"] = state
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        return f"{self.auth_url}?{urlencode(params)}"


class TokenEndpointError(Exception):
    """The token endpoint answered with an OAuth error payload."""

    def __init__(self, error: str, description: Optional[str], status_code: int):
        super().__init__(f"{error}: {description}" if description else error)
        self.error = error
        self.description = description
        self.status_code = status_code


class OAuthClient:
    """
    Token endpoint client for one OAuth application.

    Handles code exchange and token refresh.
    """

    def __init__(self, config: OAuthConfig):
        """
        Initialize OAuth client.

        Args:
            config: OAuth configuration
        """
        self.config = config

    def _post_token(self, data: dict[str, str]) -> TokenInfo:
        """POST to the token endpoint and parse the answer."""
        payload = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            **data,
        }
        try:
            response = requests.post(
                self.config.token_url,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=REQUEST_TIMEOUT,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"Could not reach token endpoint: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok or "error" in body:
            raise TokenEndpointError(
                body.get("error") or f"http_{response.status_code}",
                body.get("error_description"),
                response.status_code,
            )
        if "access_token" not in body:
            raise TokenEndpointError(
                "invalid_response", "no access token in response", response.status_code
            )

        return self._parse_token_response(body)

    def exchange_code(
        self,
        authorization_code: str,
        redirect_uri: str,
        code_verifier: Optional[str] = None,
    ) -> TokenInfo:
        """
        Exchange an authorization code for tokens.

        Args:
            authorization_code: Code from the redirect or pasted by the user
            redirect_uri: The redirect URI used in the authorization request
            code_verifier: PKCE verifier matching the challenge that was sent

        Returns:
            TokenInfo including the refresh token

        Raises:
            AuthorizationError: If Google rejects the exchange
            NetworkError: If the token endpoint cannot be reached
        """
        data = {
            "grant_type": "authorization_code",
            "code": authorization_code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier

        try:
            token = self._post_token(data)
        except TokenEndpointError as e:
            raise AuthorizationError(e.error, e.description) from e

        if not token.refresh_token:
            raise AuthorizationError(
                "missing_refresh_token",
                "Google did not return a refresh token",
            )
        logger.info("Authorization code exchanged for tokens")
        return token

    def refresh(self, refresh_token: str) -> TokenInfo:
        """
        Mint a new access token from a refresh token.

        Args:
            refresh_token: Refresh token from a previous authorization

        Returns:
            TokenInfo with the new access token

        Raises:
            TokenEndpointError: If Google rejects the refresh token
            NetworkError: If the token endpoint cannot be reached
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        return self._post_token(data)

    def _parse_token_response(self, response_data: dict) -> TokenInfo:
        """
        Parse token response into TokenInfo object.

        Args:
            response_data: JSON response from token endpoint

        Returns:
            TokenInfo with token details
        """
        expires_in = response_data.get("expires_in")

        expires_at = None
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))

        return TokenInfo(
            token=response_data["access_token"],
            expires_at=expires_at,
            refresh_token=response_data.get("refresh_token"),
            token_type=response_data.get("token_type", "Bearer"),
        )
