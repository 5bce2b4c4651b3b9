"""Errors raised by the storage layer."""

HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429


class StorageServiceError(Exception):
    """Base class for storage failures surfaced to callers."""

    message = "Storage operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NotSignedInError(StorageServiceError):
    message = "Please sign in to continue"


class AuthenticationFailedError(StorageServiceError):
    """Sign-in or token refresh failed."""

    def __init__(self, cause: BaseException | None = None) -> None:
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"Authentication failed: {detail}")


class ConfigurationInvalidError(StorageServiceError):
    message = "Storage configuration is invalid"


class NetworkError(StorageServiceError):
    """The remote store could not be reached."""

    def __init__(self, cause: BaseException | None = None) -> None:
        self.cause = cause
        detail = str(cause) if cause is not None else "no response"
        super().__init__(f"Network error: {detail}")


class HttpStatusError(StorageServiceError):
    """The remote store answered with a non-success status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP error {status_code}")


class PermissionDeniedError(HttpStatusError):
    def __init__(self, status_code: int = HTTP_FORBIDDEN) -> None:
        super().__init__(status_code)
        self.args = ("Permission denied",)


class QuotaExceededError(HttpStatusError):
    def __init__(self, status_code: int = HTTP_TOO_MANY_REQUESTS) -> None:
        super().__init__(status_code)
        self.args = ("Storage quota exceeded",)


class ProviderSpecificError(StorageServiceError):
    """The remote store returned a structured error message."""


class DataFormatError(StorageServiceError):
    message = "Data format error"


def http_error_for_status(status_code: int) -> HttpStatusError:
    """Map an HTTP status code to the most specific error type."""
    if status_code == HTTP_FORBIDDEN:
        return PermissionDeniedError(status_code)
    if status_code == HTTP_TOO_MANY_REQUESTS:
        return QuotaExceededError(status_code)
    return HttpStatusError(status_code)
