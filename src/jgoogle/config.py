"""Configuration for the jgoogle CLI.

Values come from the process environment first, then from a `.env` file
(found by python-dotenv from the working directory upwards), then defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values, find_dotenv

from .errors import ConfigurationError

DEFAULT_STATE_DIR = Path("~/.jgoogle").expanduser()
DEFAULT_CALLBACK_TIMEOUT = 300

# Scopes requested when adding an account
SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/drive",
]


def _load_env_file(env_file: Path | None) -> dict[str, str]:
    """Read key/value pairs from a .env file without touching os.environ."""
    if env_file is None:
        found = find_dotenv(usecwd=True)
        if not found:
            return {}
        env_file = Path(found)

    if not env_file.exists():
        return {}

    return {k: v for k, v in dotenv_values(env_file).items() if v is not None}


@dataclass
class Config:
    """Resolved runtime configuration."""

    client_id: str = ""
    client_secret: str = ""
    state_dir: Path = DEFAULT_STATE_DIR
    callback_timeout: int = DEFAULT_CALLBACK_TIMEOUT
    log_level: str = "WARNING"
    log_file: Path | None = None
    scopes: list[str] = field(default_factory=lambda: list(SCOPES))

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Config":
        """
        Build configuration from the environment and an optional .env file.

        Args:
            env_file: Explicit .env path (default: search from cwd upwards)

        Returns:
            Config instance

        Raises:
            ConfigurationError: If a numeric setting cannot be parsed
        """
        file_vars = _load_env_file(env_file)

        def get_env(key: str, default: str | None = None) -> str | None:
            # os.environ has the highest priority
            value = os.environ.get(key)
            if value is None:
                value = file_vars.get(key)
            return default if value is None else value

        timeout_raw = get_env("JGOOGLE_CALLBACK_TIMEOUT")
        if timeout_raw is None:
            callback_timeout = DEFAULT_CALLBACK_TIMEOUT
        else:
            try:
                callback_timeout = int(timeout_raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid integer value for JGOOGLE_CALLBACK_TIMEOUT: {timeout_raw}"
                ) from e
            if callback_timeout <= 0:
                raise ConfigurationError(
                    "JGOOGLE_CALLBACK_TIMEOUT must be a positive number of seconds"
                )

        state_dir = Path(get_env("JGOOGLE_HOME") or DEFAULT_STATE_DIR).expanduser()
        log_file = get_env("JGOOGLE_LOG_FILE")

        return cls(
            client_id=get_env("GOOGLE_CLIENT_ID", "") or "",
            client_secret=get_env("GOOGLE_CLIENT_SECRET", "") or "",
            state_dir=state_dir,
            callback_timeout=callback_timeout,
            log_level=(get_env("JGOOGLE_LOG_LEVEL") or "WARNING").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
        )

    @property
    def downloads_dir(self) -> Path:
        return self.state_dir / "downloads"

    def validate(self) -> tuple[bool, str]:
        """
        Validate that the OAuth client is configured.

        Returns:
            Tuple of (is_valid, error_message)
        """
        missing = [
            name
            for name, value in (
                ("GOOGLE_CLIENT_ID", self.client_id),
                ("GOOGLE_CLIENT_SECRET", self.client_secret),
            )
            if not value
        ]
        if missing:
            return False, f"Required environment variable not set: {', '.join(missing)}"
        return True, ""

    def require_client(self) -> None:
        """Raise ConfigurationError unless client id and secret are set."""
        valid, error = self.validate()
        if not valid:
            raise ConfigurationError(error)
