"""
Error hierarchy and exit codes for jgoogle.

Every failure the CLI reports maps to one exit code so that scripts and
agents can tell "re-authenticate" from "retry later" from "fix arguments".
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Stable process exit codes."""

    SUCCESS = 0
    AUTH_ERROR = 1  # invalid_grant, consent denied, account not configured
    NETWORK_ERROR = 2  # connection failed, timeout
    NOT_FOUND = 3  # message, event or file not found
    INVALID_INPUT = 4  # missing args, bad format, duplicate account
    API_ERROR = 5  # Google API error (quota, permissions)
    CONFIG_ERROR = 6  # client id/secret missing
    STORAGE_ERROR = 7  # state directory or accounts file not writable


class JGoogleError(Exception):
    """Base exception for all jgoogle errors."""

    exit_code: ExitCode = ExitCode.API_ERROR

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize error.

        Args:
            message: Error message
            details: Optional error details
        """
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(JGoogleError):
    """Raised when configuration is invalid or missing."""

    exit_code = ExitCode.CONFIG_ERROR


class InputError(JGoogleError):
    """Raised for missing or malformed arguments and account conflicts."""

    exit_code = ExitCode.INVALID_INPUT


class AuthenticationError(JGoogleError):
    """Raised when no usable credentials exist for an account."""

    exit_code = ExitCode.AUTH_ERROR

    def __init__(
        self,
        message: str = "Authentication failed",
        account: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.account = account

    @property
    def hint(self) -> str:
        """Command the user should run to recover."""
        return f"Run: jgoogle accounts add {self.account or '<email>'}"


class AuthorizationError(AuthenticationError):
    """Raised when the authorization-code flow fails.

    Carries the provider's error code (e.g. ``access_denied``,
    ``invalid_grant``) and description when one was returned.
    """

    def __init__(
        self,
        error: str,
        description: str | None = None,
        account: str | None = None,
    ):
        message = f"Authorization failed: {error}"
        if description:
            message += f" ({description})"
        super().__init__(
            message, account, {"error": error, "error_description": description}
        )
        self.error = error
        self.description = description


class RefreshError(AuthenticationError):
    """Raised when the provider rejects a stored refresh token.

    The refresh token cannot be repaired in place; the account has to be
    added again.
    """

    def __init__(
        self,
        account: str,
        error: str,
        description: str | None = None,
    ):
        message = f"Refresh token for '{account}' was rejected: {error}"
        if description:
            message += f" ({description})"
        super().__init__(
            message, account, {"error": error, "error_description": description}
        )
        self.error = error
        self.description = description


class NetworkError(JGoogleError):
    """Raised when a request cannot reach Google."""

    exit_code = ExitCode.NETWORK_ERROR


class ApiError(JGoogleError):
    """Raised when a Google API returns an error response."""

    exit_code = ExitCode.API_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        """
        Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if applicable
        """
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


class NotFoundError(ApiError):
    """Raised when the requested remote resource does not exist."""

    exit_code = ExitCode.NOT_FOUND


class RateLimitError(ApiError):
    """Raised when Google reports the quota or rate limit is exceeded."""

    def __init__(
        self,
        retry_after: int | None = None,
        message: str = "Rate limit exceeded",
    ):
        """
        Initialize rate limit error.

        Args:
            retry_after: Seconds until the rate limit resets
            message: Error message
        """
        super().__init__(message, 429)
        self.details["retry_after"] = retry_after
        self.retry_after = retry_after
