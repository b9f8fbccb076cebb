"""API error codes and the exceptions that carry them.

Services raise ApiError (or a subclass) with a code; the HTTP status is
derived from the code, and coursevault.responses renders the envelope.
Vault and pipeline exceptions are translated into these codes at the
service boundary and never reach the HTTP layer as-is.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Error codes returned in the `error.code` field. Format: E_CATEGORY_NAME."""

    # Auth
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_FORBIDDEN = "E_FORBIDDEN"
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"

    # Lookup (missing and not-owned are indistinguishable)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_COURSE_NOT_FOUND = "E_COURSE_NOT_FOUND"
    E_ANALYSIS_NOT_FOUND = "E_ANALYSIS_NOT_FOUND"

    # Input
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_VIDEO_ID = "E_INVALID_VIDEO_ID"

    # Credential vault
    E_VAULT_MISCONFIGURED = "E_VAULT_MISCONFIGURED"
    E_CREDENTIALS_CORRUPT = "E_CREDENTIALS_CORRUPT"

    E_INTERNAL = "E_INTERNAL"


ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_COURSE_NOT_FOUND: 404,
    ApiErrorCode.E_ANALYSIS_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_VIDEO_ID: 400,
    # Server-side faults: the stored secret or the key is unusable
    ApiErrorCode.E_VAULT_MISCONFIGURED: 500,
    ApiErrorCode.E_CREDENTIALS_CORRUPT: 500,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """An error with a stable code and a client-safe message.

    Attributes:
        code: The error code
        message: Message shown to the client; never contains secrets
        status_code: HTTP status derived from the code (500 if unmapped)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)


class NotFoundError(ApiError):
    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)
