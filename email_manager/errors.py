"""Error taxonomy shared by the catalog, the Gmail adapter, the API and the CLI."""

from typing import Any


class EmailManagerError(Exception):
    """Base class for every error the service reports to a caller.

    Subclasses pin a stable machine-readable ``code`` and the HTTP status the
    API layer answers with.  ``details`` is optional structured context.
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        """Render as the ``{"error": {...}}`` body used by the API."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class AuthenticationError(EmailManagerError):
    """Credentials could not be loaded or were rejected by Gmail."""

    code = "AUTHENTICATION_ERROR"
    status_code = 401


class ValidationError(EmailManagerError):
    """Malformed filter or request input, rejected before any Gmail call."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ConfigurationError(EmailManagerError):
    """An environment setting could not be parsed."""

    code = "CONFIGURATION_ERROR"


class ProviderError(EmailManagerError):
    """A Gmail API call failed."""


class NotFoundError(ProviderError):
    code = "NOT_FOUND"
    status_code = 404


class RateLimitError(ProviderError):
    code = "RATE_LIMIT_ERROR"
    status_code = 429
