"""Account storage for Gmail, Calendar and Drive credentials.

All accounts live in a single JSON file (``accounts.json``) in the state
directory. The whole collection is loaded into memory when the store is
constructed and every mutation rewrites the file in full.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .errors import InputError

logger = logging.getLogger(__name__)

ACCOUNTS_FILENAME = "accounts.json"


@dataclass
class OAuth2Credentials:
    """OAuth client identity plus the tokens issued for one account."""

    client_id: str
    client_secret: str
    refresh_token: str
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "refreshToken": self.refresh_token,
        }
        if self.access_token:
            data["accessToken"] = self.access_token
        if self.expires_at:
            data["expiresAt"] = self.expires_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OAuth2Credentials":
        expires_at = data.get("expiresAt")
        return cls(
            client_id=data["clientId"],
            client_secret=data["clientSecret"],
            refresh_token=data["refreshToken"],
            access_token=data.get("accessToken"),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


@dataclass
class Account:
    """A stored credential record, keyed by email address."""

    email: str
    oauth2: OAuth2Credentials

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.email, "oauth2": self.oauth2.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        return cls(email=data["email"], oauth2=OAuth2Credentials.from_dict(data["oauth2"]))


def validate_email(email: str) -> str:
    """
    Check that an account id looks like an email address.

    Args:
        email: Account id given on the command line

    Returns:
        The email, stripped of surrounding whitespace

    Raises:
        InputError: If the value is empty or malformed
    """
    email = (email or "").strip()
    if not email:
        raise InputError("Missing email address")

    parts = email.split("@")
    if len(parts) != 2:
        raise InputError(f"Invalid email address: {email}")

    local, domain = parts
    if not local or "." not in domain or domain.startswith(".") or domain.endswith("."):
        raise InputError(f"Invalid email address: {email}")

    return email


class AccountStore:
    """
    Durable mapping from account email to credential record.

    The state directory is created (with parents) on construction and the
    accounts file is read immediately. Concurrent writers are not
    coordinated: the last process to write wins.
    """

    def __init__(self, state_dir: Path):
        """
        Initialize the store.

        Args:
            state_dir: Directory holding accounts.json

        Raises:
            OSError: If the state directory cannot be created
        """
        self.state_dir = Path(state_dir)
        self.path = self.state_dir / ACCOUNTS_FILENAME
        self._accounts: dict[str, Account] = {}

        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.load()

    def load(self) -> None:
        """(Re)load all accounts from disk, replacing the in-memory view."""
        self._accounts = {acc.email: acc for acc in self.load_or_empty()}

    def load_or_empty(self) -> list[Account]:
        """
        Read the accounts file.

        A missing file yields no accounts. So does a file that cannot be
        parsed: the content is left on disk untouched and a warning is
        logged, and the next write replaces it.

        Returns:
            Accounts stored in the file
        """
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return [Account.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(
                "Ignoring unreadable accounts file %s (%s); starting with no accounts",
                self.path,
                e,
            )
            return []

    def _save(self) -> None:
        """Rewrite the accounts file with the full collection."""
        payload = json.dumps(
            [acc.to_dict() for acc in self._accounts.values()], indent=2
        )
        self.path.write_text(payload + "\n", encoding="utf-8")
        # Owner read/write only
        os.chmod(self.path, 0o600)
        logger.debug("Saved %d account(s) to %s", len(self._accounts), self.path)

    def upsert(self, account: Account) -> None:
        """Insert or replace the record for ``account.email`` and persist."""
        self._accounts[account.email] = account
        self._save()

    def get(self, email: str) -> Optional[Account]:
        return self._accounts.get(email)

    def list(self) -> list[Account]:
        return list(self._accounts.values())

    def remove(self, email: str) -> bool:
        """
        Delete an account.

        Returns:
            True if an account was removed (and the file rewritten)
        """
        if email not in self._accounts:
            return False
        del self._accounts[email]
        self._save()
        return True

    def exists(self, email: str) -> bool:
        return email in self._accounts
