"""Error taxonomy for the migration engine."""

from typing import Any, Dict, Optional


class MigrationError(Exception):
    """Base class for all migration errors."""

    code = "MIGRATION_ERROR"

    def __init__(
        self,
        message: str,
        actionable: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.actionable = actionable
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "code": self.code,
            "message": self.message,
            "actionable": self.actionable,
            "details": self.details,
        }


class ConfigurationError(MigrationError):
    """Missing or invalid configuration. Fatal for the run."""

    code = "CONFIGURATION_ERROR"


class ConnectivityError(MigrationError):
    """A network or service failure talking to the source or target."""

    code = "CONNECTIVITY_ERROR"

    def __init__(
        self,
        message: str,
        actionable: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, actionable, details)
        self.retryable = retryable
        self.status_code = status_code


class AuthorizationError(ConnectivityError):
    """Credentials were rejected. Never retried."""

    code = "AUTHORIZATION_ERROR"

    def __init__(
        self,
        message: str,
        actionable: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            actionable or "Check that the API token is valid and has access to the resource",
            details,
            retryable=False,
            status_code=status_code,
        )


class RateLimitError(ConnectivityError):
    """The remote service throttled the request."""

    code = "RATE_LIMIT_ERROR"

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            "Wait and retry, or lower RATE_LIMIT_PER_MINUTE",
            details,
            retryable=True,
            status_code=429,
        )
        self.retry_after = retry_after


class ValidationError(MigrationError):
    """A single record failed validation."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "Fix the source record and re-run the import", details)
        self.record_id = record_id
        self.field = field


class DataIntegrityError(MigrationError):
    """A relationship points at an entity that does not exist."""

    code = "DATA_INTEGRITY_ERROR"


def describe_error(error: BaseException) -> str:
    """
    Render an error with its actionable hint for logs and CLI output.

    Args:
        error: Any exception

    Returns:
        Human readable description
    """
    if isinstance(error, MigrationError):
        text = f"[{error.code}] {error.message}"
        if error.actionable:
            text += f" ({error.actionable})"
        return text
    return f"[UNEXPECTED_ERROR] {error}"
