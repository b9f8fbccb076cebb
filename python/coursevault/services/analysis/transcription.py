"""Transcription service: provider call plus the placeholder fallback policy.

The adapter raises on every failure. This layer decides whether a failure
reaches the job or is replaced by a placeholder result:

- Provider not configured + fallback enabled → placeholder (reason "not_configured")
- Provider call raised + fallback enabled → placeholder (reason = error class)
- Fallback disabled → the error propagates and the job fails

Every substitution emits `transcription_fallback_used` and is marked
source="placeholder" in the result, so it is never indistinguishable from
a provider result.
"""

import time
from pathlib import Path

from coursevault.config import TranscriptionConfig
from coursevault.logging import get_logger
from coursevault.services.analysis.errors import (
    AnalysisError,
    AnalysisErrorClass,
    ProviderFailure,
)
from coursevault.services.analysis.placeholder import placeholder_knowledge_points
from coursevault.services.analysis.tingwu_adapter import TingwuAdapter
from coursevault.services.analysis.types import TranscriptionResult

logger = get_logger(__name__)

FALLBACK_NOT_CONFIGURED = "not_configured"


class TranscriptionService:
    """Wraps the provider adapter with timing logs and the fallback policy.

    Args:
        adapter: Provider adapter. May be None when the provider is unconfigured.
        config: Transcription configuration (fallback flag, credentials).
    """

    def __init__(self, adapter: TingwuAdapter | None, config: TranscriptionConfig):
        self._adapter = adapter
        self._config = config

    @property
    def provider_configured(self) -> bool:
        return self._adapter is not None and self._config.is_configured

    async def transcribe(self, file_path: Path, external_video_id: str) -> TranscriptionResult:
        """Produce knowledge points for a downloaded video file.

        Raises:
            AnalysisError: Only when the fallback is disabled.
        """
        if not self.provider_configured:
            if not self._config.fallback_enabled:
                raise ProviderFailure("Transcription provider is not configured")
            logger.warning(
                "transcription_provider_unconfigured",
                missing=self._config.missing_fields,
            )
            return self._fallback(external_video_id, FALLBACK_NOT_CONFIGURED)

        logger.info("transcription.request.started", file_name=file_path.name)
        start = time.monotonic()

        try:
            result = await self._adapter.transcribe(file_path)
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            error_class = (
                e.error_class if isinstance(e, AnalysisError) else AnalysisErrorClass.INTERNAL
            )
            logger.warning(
                "transcription.request.failed",
                error_class=error_class.value,
                error_type=type(e).__name__,
                latency_ms=latency_ms,
            )
            if not self._config.fallback_enabled:
                raise
            return self._fallback(external_video_id, error_class.value)

        logger.info(
            "transcription.request.finished",
            latency_ms=int((time.monotonic() - start) * 1000),
            knowledge_point_count=len(result.knowledge_points),
            remote_task_id=result.remote_task_id,
        )
        return result

    def _fallback(self, external_video_id: str, reason: str) -> TranscriptionResult:
        points = placeholder_knowledge_points(external_video_id)
        logger.warning(
            "transcription_fallback_used",
            reason=reason,
            external_video_id=external_video_id,
            knowledge_point_count=len(points),
        )
        return TranscriptionResult(
            knowledge_points=points,
            source="placeholder",
            fallback_reason=reason,
        )
