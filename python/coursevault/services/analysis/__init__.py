"""Video analysis pipeline: download, transcription and job state.

This package provides:

- VideoDownloader: yt-dlp subprocess wrapper with best-effort cleanup
- TingwuAdapter: remote task creation, bounded polling and chapter parsing
- TranscriptionService: provider call plus the explicit placeholder fallback
- AnalysisJobManager: per-(video, user) job state machine and detached pipelines

Usage:
    from coursevault.services.analysis import (
        AnalysisJobManager, TingwuAdapter, TranscriptionService, VideoDownloader,
    )

    adapter = TingwuAdapter(httpx_client, settings.transcription_config())
    transcriber = TranscriptionService(adapter, settings.transcription_config())
    manager = AnalysisJobManager(session_factory, downloader, transcriber)
    submitted = await manager.submit("BV1oJm5BQEfJ", user_id)
    snapshot = await manager.get_result(submitted.snapshot.job_id, user_id)
"""

from coursevault.services.analysis.downloader import (
    VIDEO_ID_PATTERN,
    VideoDownloader,
    is_valid_video_id,
)
from coursevault.services.analysis.errors import (
    AnalysisError,
    AnalysisErrorClass,
    DownloadFailure,
    ProviderFailure,
    ProviderTimeout,
    ResponseParseFailure,
    classify_exception,
)
from coursevault.services.analysis.jobs import AnalysisJobManager, SubmitResult
from coursevault.services.analysis.placeholder import (
    format_timestamp,
    placeholder_knowledge_points,
)
from coursevault.services.analysis.tingwu_adapter import TingwuAdapter, parse_chapters
from coursevault.services.analysis.transcription import TranscriptionService
from coursevault.services.analysis.types import (
    AnalysisSnapshot,
    KnowledgePointData,
    TranscriptionResult,
)

__all__ = [
    # Core types
    "KnowledgePointData",
    "TranscriptionResult",
    "AnalysisSnapshot",
    "SubmitResult",
    # Collaborators
    "VideoDownloader",
    "VIDEO_ID_PATTERN",
    "is_valid_video_id",
    "TingwuAdapter",
    "parse_chapters",
    "TranscriptionService",
    # Job manager
    "AnalysisJobManager",
    # Errors
    "AnalysisError",
    "AnalysisErrorClass",
    "DownloadFailure",
    "ProviderFailure",
    "ProviderTimeout",
    "ResponseParseFailure",
    "classify_exception",
    # Placeholder
    "placeholder_knowledge_points",
    "format_timestamp",
]
