"""Shared plumbing for the Google REST service wrappers."""

from typing import Any, Optional
from urllib.parse import quote

import requests

from ..retry import retry_with_rate_limit
from ..session import AuthSession


def path_segment(value: str) -> str:
    """Quote an id for use as a single URL path segment."""
    return quote(value, safe="")


class ServiceClient:
    """Base class binding an AuthSession to one account and API root."""

    BASE_URL = ""

    def __init__(self, session: AuthSession, email: str):
        self.session = session
        self.email = email

    @retry_with_rate_limit(max_attempts=3)
    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = path if path.startswith("https://") else f"{self.BASE_URL}{path}"
        return self.session.request(self.email, method, url, **kwargs)

    def _get(self, path: str, params: Optional[dict] = None) -> dict[str, Any]:
        return self._request("GET", path, params=_drop_none(params)).json()

    def _post(self, path: str, body: Optional[dict] = None) -> dict[str, Any]:
        response = self._request("POST", path, json=body or {})
        return response.json() if response.content else {}

    def _patch(self, path: str, body: dict) -> dict[str, Any]:
        return self._request("PATCH", path, json=body).json()

    def _delete(self, path: str) -> None:
        self._request("DELETE", path)


def _drop_none(params: Optional[dict]) -> Optional[dict]:
    if params is None:
        return None
    return {k: v for k, v in params.items() if v is not None}
