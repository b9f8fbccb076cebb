"""Video analysis error classification.

Every failure of the background pipeline is attributed to one of these
classes and persisted on the job as {"error": ..., "error_class": ...}.

Error classes:
- E_DOWNLOAD_FAILED: The external downloader did not produce a file
- E_PROVIDER_FAILED: The transcription provider rejected or failed the task
- E_PROVIDER_TIMEOUT: The provider did not finish within the polling budget
- E_RESPONSE_PARSE_FAILED: The provider response did not have the expected shape
- E_ANALYSIS_INTERNAL: Anything else (bug, database error); still ends as failed

Unexpected exceptions are stored with a generic message; their detail only
goes to the server log.
"""

from enum import Enum

INTERNAL_ERROR_MESSAGE = "Analysis failed due to an internal error"


class AnalysisErrorClass(str, Enum):
    """Normalized analysis failure classifications."""

    DOWNLOAD_FAILED = "E_DOWNLOAD_FAILED"
    PROVIDER_FAILED = "E_PROVIDER_FAILED"
    PROVIDER_TIMEOUT = "E_PROVIDER_TIMEOUT"
    RESPONSE_PARSE_FAILED = "E_RESPONSE_PARSE_FAILED"
    INTERNAL = "E_ANALYSIS_INTERNAL"


class AnalysisError(Exception):
    """Base exception for pipeline failures.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
    """

    error_class: AnalysisErrorClass = AnalysisErrorClass.INTERNAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DownloadFailure(AnalysisError):
    error_class = AnalysisErrorClass.DOWNLOAD_FAILED


class ProviderFailure(AnalysisError):
    """The provider reported failure or returned an error response.

    Attributes:
        status_code: HTTP status code, when the failure came from a response
    """

    error_class = AnalysisErrorClass.PROVIDER_FAILED

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProviderTimeout(AnalysisError):
    error_class = AnalysisErrorClass.PROVIDER_TIMEOUT


class ResponseParseFailure(AnalysisError):
    error_class = AnalysisErrorClass.RESPONSE_PARSE_FAILED


def classify_exception(exc: BaseException) -> AnalysisErrorClass:
    """Map any exception raised inside the pipeline to an error class."""
    if isinstance(exc, AnalysisError):
        return exc.error_class
    return AnalysisErrorClass.INTERNAL


def error_payload(exc: BaseException) -> dict:
    """Build the result payload stored on a failed job."""
    message = exc.message if isinstance(exc, AnalysisError) else INTERNAL_ERROR_MESSAGE
    return {
        "error": message[:1000],
        "error_class": classify_exception(exc).value,
    }
