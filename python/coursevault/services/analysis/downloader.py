"""Video download via yt-dlp.

The downloader is an external tool: it either leaves a file at
<download_dir>/<video_id>_video.<ext> or the download fails. The tool runs
as an asyncio subprocess from an argument list (never through a shell), so
the event loop is free while it runs.
"""

import asyncio
import contextlib
import re
from pathlib import Path

from coursevault.config import DownloaderConfig
from coursevault.logging import get_logger
from coursevault.services.analysis.errors import DownloadFailure

logger = get_logger(__name__)

VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def is_valid_video_id(external_video_id: str) -> bool:
    return bool(VIDEO_ID_PATTERN.match(external_video_id or ""))


class VideoDownloader:
    """Downloads a video by external id and cleans up afterwards.

    Args:
        config: Download directory, yt-dlp binary, timeout and URL template.
    """

    def __init__(self, config: DownloaderConfig):
        self._config = config

    def video_url(self, external_video_id: str) -> str:
        return self._config.video_url_template.format(video_id=external_video_id)

    def build_args(self, external_video_id: str) -> list[str]:
        output_template = self._config.download_dir / f"{external_video_id}_video.%(ext)s"
        return [
            self._config.yt_dlp_path,
            self.video_url(external_video_id),
            "--output",
            str(output_template),
            "--no-playlist",
            "--quiet",
        ]

    async def download(self, external_video_id: str) -> Path:
        """Download a video and return the local file path.

        Raises:
            DownloadFailure: Invalid id, missing binary, non-zero exit,
                timeout, or no file produced. Outputs of the failed run,
                including .part files, are removed first.
        """
        if not is_valid_video_id(external_video_id):
            raise DownloadFailure(f"Invalid video id: {external_video_id!r}")

        self._config.download_dir.mkdir(parents=True, exist_ok=True)
        try:
            return await self._run(external_video_id)
        except (DownloadFailure, asyncio.CancelledError):
            # A failed run leaves no <id>_video.* files behind
            self._remove_outputs(external_video_id)
            raise

    async def _run(self, external_video_id: str) -> Path:
        args = self.build_args(external_video_id)

        logger.info("download_started", external_video_id=external_video_id)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DownloadFailure(f"Downloader not found: {self._config.yt_dlp_path}") from e
        except OSError as e:
            raise DownloadFailure(f"Downloader could not start: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self._config.timeout_s
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise DownloadFailure(
                f"Download timed out after {self._config.timeout_s:.0f}s"
            ) from e
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            raise

        if process.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise DownloadFailure(
                f"yt-dlp download failed (rc={process.returncode}): {detail[:300]}"
            )

        path = self._find_output(external_video_id)
        if path is None:
            raise DownloadFailure("No video file found after download")

        logger.info("download_finished", external_video_id=external_video_id, file_name=path.name)
        return path

    def _find_output(self, external_video_id: str) -> Path | None:
        candidates = sorted(
            self._config.download_dir.glob(f"{external_video_id}_video.*"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        # yt-dlp leaves .part files behind on interrupted downloads
        candidates = [p for p in candidates if p.suffix != ".part"]
        return candidates[0] if candidates else None

    def _remove_outputs(self, external_video_id: str) -> None:
        for path in self._config.download_dir.glob(f"{external_video_id}_video.*"):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("download_cleanup_failed", file_name=path.name, error=str(e))

    async def cleanup(self, path: Path) -> None:
        """Delete a downloaded file. Failures are logged, never raised."""
        try:
            path.unlink(missing_ok=True)
            logger.debug("download_cleaned_up", file_name=path.name)
        except OSError as e:
            logger.warning("download_cleanup_failed", file_name=path.name, error=str(e))
