"""Tests for API error codes and the analysis error classification."""

import pytest

from coursevault.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    InvalidRequestError,
    NotFoundError,
)
from coursevault.services.analysis.errors import (
    AnalysisErrorClass,
    DownloadFailure,
    ProviderFailure,
    ProviderTimeout,
    ResponseParseFailure,
    classify_exception,
    error_payload,
)


class TestApiErrors:
    def test_every_code_has_a_status(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS

    def test_status_derived_from_code(self):
        assert ApiError(ApiErrorCode.E_CREDENTIALS_CORRUPT, "x").status_code == 500
        assert NotFoundError(ApiErrorCode.E_COURSE_NOT_FOUND).status_code == 404
        assert InvalidRequestError(ApiErrorCode.E_INVALID_VIDEO_ID).status_code == 400

    def test_auth_unavailable_is_503(self):
        assert ApiError(ApiErrorCode.E_AUTH_UNAVAILABLE, "x").status_code == 503


class TestAnalysisErrorClassification:
    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (DownloadFailure("x"), AnalysisErrorClass.DOWNLOAD_FAILED),
            (ProviderFailure("x", status_code=502), AnalysisErrorClass.PROVIDER_FAILED),
            (ProviderTimeout("x"), AnalysisErrorClass.PROVIDER_TIMEOUT),
            (ResponseParseFailure("x"), AnalysisErrorClass.RESPONSE_PARSE_FAILED),
            (KeyError("boom"), AnalysisErrorClass.INTERNAL),
        ],
    )
    def test_classify(self, exc, expected):
        assert classify_exception(exc) == expected

    def test_payload_for_analysis_error(self):
        payload = error_payload(DownloadFailure("No video file found after download"))
        assert payload == {
            "error": "No video file found after download",
            "error_class": "E_DOWNLOAD_FAILED",
        }

    def test_payload_for_unexpected_error(self):
        payload = error_payload(RuntimeError("db went away"))
        assert payload["error"] == "Analysis failed due to an internal error"
        assert "db went away" not in payload["error"]
        assert payload["error_class"] == "E_ANALYSIS_INTERNAL"

    def test_payload_message_truncated(self):
        payload = error_payload(ProviderFailure("x" * 5000))
        assert len(payload["error"]) == 1000

    def test_provider_failure_keeps_status_code(self):
        assert ProviderFailure("bad gateway", status_code=502).status_code == 502
