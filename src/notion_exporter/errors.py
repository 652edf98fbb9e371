# ABOUTME: Exception hierarchy for notion-exporter.
# ABOUTME: Classifies Notion API failures and local export failures.

import httpx
from notion_client.errors import APIErrorCode, HTTPResponseError, RequestTimeoutError


class NotionExporterError(Exception):
    """Base class for all notion-exporter errors."""
    pass


class CredentialMissingError(NotionExporterError):
    """Raised when the Notion integration token is not available."""

    def __init__(self, env_var: str = "NOTION_TOKEN"):
        self.env_var = env_var
        super().__init__(
            f"{env_var} environment variable is not set. "
            "Export it in your shell or set it in your CI secrets."
        )


class NotionAPIError(NotionExporterError):
    """Generic failure reported by the Notion API.

    Keeps the provider's error code and HTTP status for diagnostics.
    """

    def __init__(self, message: str, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.code = code
        self.status = status


class NotFoundError(NotionAPIError):
    """The requested page, block or database does not exist (or is not shared)."""
    pass


class UnauthorizedError(NotionAPIError):
    """The integration token lacks access to the resource."""
    pass


class RateLimitedError(NotionAPIError):
    """Notion answered HTTP 429 and retries were exhausted."""
    pass


class NotionValidationError(NotionAPIError):
    """The request was rejected as invalid, e.g. a page id used as a database id."""
    pass


class ExportIOError(NotionExporterError):
    """Reading or writing an exported file failed."""

    def __init__(self, path, cause: OSError):
        self.path = path
        super().__init__(f"I/O error on {path}: {cause}")
        self.__cause__ = cause


# Tuples, not sets: APIErrorCode hashes by member name, so plain strings
# only match through ==.
_UNAUTHORIZED_CODES = (APIErrorCode.Unauthorized, APIErrorCode.RestrictedResource)
_VALIDATION_CODES = (
    APIErrorCode.ValidationError,
    APIErrorCode.InvalidRequestURL,
    APIErrorCode.InvalidRequest,
)


def translate_api_error(error: Exception) -> NotionAPIError:
    """Map a notion-client exception onto the exporter's error taxonomy.

    Args:
        error: Exception raised by notion-client.

    Returns:
        The matching NotionAPIError subclass, chained to the original error.
    """
    if isinstance(error, NotionAPIError):
        return error

    if isinstance(error, RequestTimeoutError):
        translated = NotionAPIError(str(error) or "Request to Notion timed out", code="timeout")
        translated.__cause__ = error
        return translated

    # notion-client lets transport errors other than timeouts through.
    if isinstance(error, httpx.HTTPError):
        translated = NotionAPIError(str(error) or "Could not reach the Notion API", code="network_error")
        translated.__cause__ = error
        return translated

    code = getattr(error, "code", None)
    status = getattr(error, "status", None)
    message = str(error) or f"Notion API error ({code})"

    if status == 429 or code == APIErrorCode.RateLimited:
        cls = RateLimitedError
    elif code == APIErrorCode.ObjectNotFound or status == 404:
        cls = NotFoundError
    elif code in _UNAUTHORIZED_CODES or status in (401, 403):
        cls = UnauthorizedError
    elif code in _VALIDATION_CODES:
        cls = NotionValidationError
    else:
        cls = NotionAPIError

    # APIErrorCode is a str enum; keep the plain value for display.
    plain_code = code.value if isinstance(code, APIErrorCode) else code
    translated = cls(message, code=plain_code, status=status)
    translated.__cause__ = error
    return translated


# Exceptions the client translates through translate_api_error.
NOTION_CLIENT_ERRORS = (HTTPResponseError, RequestTimeoutError, httpx.HTTPError)
