"""Tests for the transcription fallback policy."""

from dataclasses import replace
from pathlib import Path

import pytest

from coursevault.services.analysis import (
    KnowledgePointData,
    ProviderFailure,
    ProviderTimeout,
    TranscriptionResult,
    TranscriptionService,
    placeholder_knowledge_points,
)


class StubAdapter:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls: list[Path] = []

    async def transcribe(self, file_path: Path) -> TranscriptionResult:
        self.calls.append(file_path)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def configured(unconfigured_transcription_config):
    return replace(
        unconfigured_transcription_config,
        api_key="k",
        access_key_id="id",
        access_key_secret="secret",
    )


@pytest.fixture
def video_file(tmp_path) -> Path:
    path = tmp_path / "BVtest001_video.mp4"
    path.write_bytes(b"fake")
    return path


class TestProviderConfigured:
    @pytest.mark.asyncio
    async def test_provider_result_passed_through(self, configured, video_file):
        result = TranscriptionResult(
            knowledge_points=[KnowledgePointData(0.0, 5.0, "Intro")], remote_task_id="t-1"
        )
        adapter = StubAdapter(result=result)
        service = TranscriptionService(adapter, configured)

        assert await service.transcribe(video_file, "BVtest001") is result
        assert adapter.calls == [video_file]

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, configured, video_file):
        service = TranscriptionService(StubAdapter(error=ProviderTimeout("slow")), configured)

        result = await service.transcribe(video_file, "BVtest001")

        assert result.source == "placeholder"
        assert result.fallback_reason == "E_PROVIDER_TIMEOUT"
        assert result.knowledge_points == placeholder_knowledge_points("BVtest001")

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back_as_internal(self, configured, video_file):
        service = TranscriptionService(StubAdapter(error=KeyError("Data")), configured)

        result = await service.transcribe(video_file, "BVtest001")

        assert result.fallback_reason == "E_ANALYSIS_INTERNAL"

    @pytest.mark.asyncio
    async def test_fallback_disabled_propagates_error(self, configured, video_file):
        service = TranscriptionService(
            StubAdapter(error=ProviderFailure("rejected", status_code=403)),
            replace(configured, fallback_enabled=False),
        )

        with pytest.raises(ProviderFailure) as exc_info:
            await service.transcribe(video_file, "BVtest001")

        assert exc_info.value.status_code == 403


class TestProviderUnconfigured:
    @pytest.mark.asyncio
    async def test_placeholder_when_unconfigured(
        self, unconfigured_transcription_config, video_file
    ):
        service = TranscriptionService(None, unconfigured_transcription_config)

        result = await service.transcribe(video_file, "BV1oJm5BQEfJ")

        assert service.provider_configured is False
        assert result.source == "placeholder"
        assert result.fallback_reason == "not_configured"
        assert result.knowledge_points[0] == KnowledgePointData(
            5.2, 18.7, "Introducing the hydrostatic paradox"
        )

    @pytest.mark.asyncio
    async def test_adapter_ignored_when_credentials_missing(
        self, unconfigured_transcription_config, video_file
    ):
        adapter = StubAdapter(error=AssertionError("should not be called"))
        service = TranscriptionService(adapter, unconfigured_transcription_config)

        result = await service.transcribe(video_file, "BVtest001")

        assert result.source == "placeholder"
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_unconfigured_without_fallback_fails(
        self, unconfigured_transcription_config, video_file
    ):
        service = TranscriptionService(
            None, replace(unconfigured_transcription_config, fallback_enabled=False)
        )

        with pytest.raises(ProviderFailure, match="not configured"):
            await service.transcribe(video_file, "BVtest001")

    def test_placeholder_payload_is_marked(self):
        payload = TranscriptionResult(
            knowledge_points=[], source="placeholder", fallback_reason="not_configured"
        ).to_payload()
        assert payload == {
            "source": "placeholder",
            "knowledge_points": [],
            "fallback_reason": "not_configured",
        }
