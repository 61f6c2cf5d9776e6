"""
Authenticated requests for stored accounts.

`AuthSession.get_access_token` hands out a non-expired access token,
refreshing it through the stored refresh token when needed and writing the
new token back to the account store. One refresh attempt per call, no
automatic retry.
"""

import logging
from typing import Any, Optional

import requests

from .accounts import Account, AccountStore
from .errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RefreshError,
)
from .oauth import OAuthClient, OAuthConfig, TokenEndpointError, TokenInfo

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60

# Token endpoint errors meaning the stored grant is unusable
REVOKED_GRANT_ERRORS = {"invalid_grant", "invalid_client", "unauthorized_client"}

# Seconds before the recorded expiry at which a token counts as expired
EXPIRY_BUFFER = 60


def _error_message(response: requests.Response) -> str:
    """Extract Google's error message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or f"HTTP {response.status_code}"
    if isinstance(error, str):
        return body.get("error_description") or error
    return f"HTTP {response.status_code}"


class AuthSession:
    """Issues bearer-authenticated requests on behalf of stored accounts."""

    def __init__(self, store: AccountStore, scopes: Optional[list[str]] = None):
        """
        Initialize the session.

        Args:
            store: Account store holding the credential records
            scopes: Scopes recorded on the OAuth client config
        """
        self.store = store
        self.scopes = scopes or []

    def _client_for(self, account: Account) -> OAuthClient:
        creds = account.oauth2
        return OAuthClient(
            OAuthConfig(
                client_id=creds.client_id,
                client_secret=creds.client_secret,
                scopes=self.scopes,
            )
        )

    def get_account(self, email: str) -> Account:
        """Return the stored account or raise AuthenticationError."""
        account = self.store.get(email)
        if account is None:
            raise AuthenticationError(f"Account '{email}' not found", account=email)
        return account

    def get_access_token(self, email: str) -> str:
        """
        Return a valid access token for an account.

        Args:
            email: Account id

        Returns:
            Access token string

        Raises:
            AuthenticationError: If the account is not configured
            RefreshError: If Google rejected the stored refresh token
            NetworkError: If the token endpoint cannot be reached
        """
        account = self.get_account(email)
        creds = account.oauth2

        if creds.access_token and creds.expires_at:
            current = TokenInfo(token=creds.access_token, expires_at=creds.expires_at)
            if not current.is_expired(EXPIRY_BUFFER):
                return creds.access_token

        logger.info("Refreshing access token for %s", email)
        try:
            token = self._client_for(account).refresh(creds.refresh_token)
        except TokenEndpointError as e:
            if e.error in REVOKED_GRANT_ERRORS:
                raise RefreshError(email, e.error, e.description) from e
            raise ApiError(f"Token refresh failed: {e}", e.status_code) from e

        creds.access_token = token.token
        creds.expires_at = token.expires_at
        self.store.upsert(account)
        return token.token

    def _forget_access_token(self, email: str) -> None:
        """Drop a rejected access token so the next call refreshes."""
        account = self.get_account(email)
        account.oauth2.access_token = None
        account.oauth2.expires_at = None
        self.store.upsert(account)
        logger.info("Access token for %s was rejected; cleared it", email)

    def request(
        self, email: str, method: str, url: str, **kwargs: Any
    ) -> requests.Response:
        """
        Send a request with the account's bearer token.

        Args:
            email: Account id
            method: HTTP method
            url: Absolute API URL
            **kwargs: Passed to requests.request

        Returns:
            The successful response

        Raises:
            NotFoundError: On 404
            AuthenticationError: On 401; the cached access token is cleared first
            RateLimitError: On 429
            ApiError: On any other error status
            NetworkError: On connection failures and timeouts
        """
        token = self.get_access_token(email)
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)

        logger.debug("%s %s", method, url)
        try:
            response = requests.request(method, url, headers=headers, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"Connection failed: {e}") from e

        if response.ok:
            return response

        message = _error_message(response)
        if response.status_code == 404:
            raise NotFoundError(f"Not found: {message}", 404)
        if response.status_code == 401:
            self._forget_access_token(email)
            raise AuthenticationError(f"Google rejected the access token: {message}", account=email)
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                int(retry_after) if retry_after and retry_after.isdigit() else None,
                message,
            )
        raise ApiError(f"Google API error ({response.status_code}): {message}", response.status_code)
