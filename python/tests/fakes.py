"""In-process fakes for the analysis pipeline collaborators."""

import asyncio
from pathlib import Path

from coursevault.services.analysis import (
    DownloadFailure,
    KnowledgePointData,
    TranscriptionResult,
)


class FakeDownloader:
    """Writes a small file instead of running yt-dlp.

    Set `error` to make downloads fail, or `gate` to hold them until the
    event is set.
    """

    def __init__(self, download_dir: Path):
        self.download_dir = download_dir
        self.calls: list[str] = []
        self.cleaned: list[Path] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def download(self, external_video_id: str) -> Path:
        self.calls.append(external_video_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.download_dir.mkdir(parents=True, exist_ok=True)
        path = self.download_dir / f"{external_video_id}_video.mp4"
        path.write_bytes(b"fake video")
        return path

    async def cleanup(self, path: Path) -> None:
        self.cleaned.append(path)
        path.unlink(missing_ok=True)


class FakeTranscriber:
    """Returns fixed knowledge points, deliberately out of order."""

    def __init__(self, points: list[KnowledgePointData] | None = None):
        self.points = points or [
            KnowledgePointData(start_time=42.0, end_time=60.5, content="Second topic"),
            KnowledgePointData(start_time=3.5, end_time=40.0, content="First topic"),
            KnowledgePointData(start_time=61.0, end_time=None, content=""),
        ]
        self.calls: list[tuple[Path, str]] = []
        self.error: Exception | None = None

    async def transcribe(self, file_path: Path, external_video_id: str) -> TranscriptionResult:
        self.calls.append((file_path, external_video_id))
        if self.error is not None:
            raise self.error
        return TranscriptionResult(knowledge_points=list(self.points), remote_task_id="task-1")


def failing_download(message: str = "yt-dlp download failed (rc=1): HTTP Error 404") -> Exception:
    return DownloadFailure(message)
