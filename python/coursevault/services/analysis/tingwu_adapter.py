"""Tingwu (Alibaba Cloud) offline transcription adapter.

- Create task: PUT {api_url}/openapi/tingwu/v2/tasks
- Get task:    GET {api_url}/openapi/tingwu/v2/tasks/{task_id}
- Headers: X-Access-Key-Id, X-Access-Key-Secret, Authorization: Bearer <api key>

Create request body:
{
  "type": "offline",
  "AppKey": "<app key>",
  "Input": {"SourceLanguage": "cn", "FileUrl": "<public file url>"},
  "TaskKey": "task_<epoch ms>",
  "Parameters": {
    "Transcoding": {"TargetAudioFormat": "mp3"},
    "Transcription": {"DiarizationEnabled": false}
  }
}

Create response: {"Data": {"TaskId": "..."}}
Get response: {"Data": {"TaskStatus": "PROCESSING" | "COMPLETED" | "FAILED",
                        "Result": {"AutoChapters": [{"StartTime", "EndTime", "Title"}]}},
               "Message": "..."}

Rules:
- No fallback here; every failure is raised as an AnalysisError subclass
- No DB access
- Never log credentials or response bodies
"""

import asyncio
import math
import time
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from coursevault.config import TranscriptionConfig
from coursevault.logging import get_logger
from coursevault.services.analysis.errors import (
    ProviderFailure,
    ProviderTimeout,
    ResponseParseFailure,
)
from coursevault.services.analysis.types import KnowledgePointData, TranscriptionResult

logger = get_logger(__name__)

TASKS_PATH = "/openapi/tingwu/v2/tasks"

STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"
STATUS_PROCESSING = "PROCESSING"


class TingwuAdapter:
    """Creates a remote transcription task, polls it, and parses chapters.

    Args:
        client: Shared httpx.AsyncClient for connection pooling.
        config: Endpoint, credentials and polling budget.
    """

    def __init__(self, client: httpx.AsyncClient, config: TranscriptionConfig):
        self._client = client
        self._config = config

    async def transcribe(self, file_path: Path) -> TranscriptionResult:
        """Run the full create → poll → parse sequence for one file.

        Raises:
            ProviderFailure: Remote task failed or the provider returned an error.
            ProviderTimeout: Polling budget exhausted or a request timed out.
            ResponseParseFailure: A response did not have the expected shape.
        """
        task_id = await self.create_task(self.file_url_for(file_path))
        task_data = await self.poll_task(task_id)
        points = parse_chapters(task_data)
        logger.info(
            "tingwu_task_parsed",
            remote_task_id=task_id,
            knowledge_point_count=len(points),
        )
        return TranscriptionResult(
            knowledge_points=points,
            source="provider",
            remote_task_id=task_id,
        )

    def file_url_for(self, file_path: Path) -> str:
        """Public URL the provider fetches the downloaded file from."""
        return f"{self._config.file_base_url}/{quote(file_path.name)}"

    async def create_task(self, file_url: str) -> str:
        body = {
            "type": "offline",
            "AppKey": self._config.app_key or "",
            "Input": {
                "SourceLanguage": self._config.source_language,
                "FileUrl": file_url,
            },
            "TaskKey": f"task_{int(time.time() * 1000)}",
            "Parameters": {
                "Transcoding": {"TargetAudioFormat": self._config.audio_format},
                "Transcription": {"DiarizationEnabled": False},
            },
        }
        data = await self._request("PUT", f"{self._config.api_url}{TASKS_PATH}", json=body)

        task_id = (data.get("Data") or {}).get("TaskId") if isinstance(data, dict) else None
        if not task_id:
            raise ResponseParseFailure("Create task response did not include a TaskId")

        logger.info("tingwu_task_created", remote_task_id=task_id)
        return str(task_id)

    async def get_task(self, task_id: str) -> dict[str, Any]:
        url = f"{self._config.api_url}{TASKS_PATH}/{quote(task_id, safe='')}"
        data = await self._request("GET", url)
        if not isinstance(data, dict):
            raise ResponseParseFailure("Get task response is not a JSON object")
        return data

    async def poll_task(self, task_id: str) -> dict[str, Any]:
        """Poll until the remote task completes or fails.

        Polls at most max_polls times, sleeping poll_interval_s between
        attempts. The sleep is the only suspension point besides the requests.
        """
        max_polls = self._config.max_polls
        for poll in range(1, max_polls + 1):
            data = await self.get_task(task_id)
            task_status = (data.get("Data") or {}).get("TaskStatus")

            if task_status == STATUS_COMPLETED:
                logger.info("tingwu_task_completed", remote_task_id=task_id, polls=poll)
                return data

            if task_status == STATUS_FAILED:
                message = data.get("Message") or "unknown error"
                raise ProviderFailure(f"Transcription task failed: {message}")

            logger.debug(
                "tingwu_task_pending",
                remote_task_id=task_id,
                task_status=task_status,
                poll=poll,
                max_polls=max_polls,
            )
            if poll < max_polls:
                await asyncio.sleep(self._config.poll_interval_s)

        raise ProviderTimeout(
            f"Transcription task {task_id} did not finish after {max_polls} polls"
        )

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.api_key}",
            "X-Access-Key-Id": self._config.access_key_id or "",
            "X-Access-Key-Secret": self._config.access_key_secret or "",
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send one request and normalize transport errors."""
        try:
            response = await self._client.request(
                method,
                url,
                headers=self._build_headers(),
                timeout=httpx.Timeout(self._config.timeout_s, connect=10.0),
                **kwargs,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"Transcription provider request timed out ({method})") from e
        except httpx.HTTPStatusError as e:
            raise ProviderFailure(
                f"Transcription provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderFailure(f"Transcription provider unreachable: {type(e).__name__}") from e

        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseFailure("Transcription provider returned invalid JSON") from e


def _as_seconds(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ResponseParseFailure(f"Chapter {field} is not a number")
    try:
        seconds = float(value)
    except ValueError as e:
        raise ResponseParseFailure(f"Chapter {field} is not a number") from e
    if not math.isfinite(seconds):
        raise ResponseParseFailure(f"Chapter {field} is not a finite number")
    return seconds


def parse_chapters(task_data: dict[str, Any]) -> list[KnowledgePointData]:
    """Convert Data.Result.AutoChapters into knowledge points.

    A chapter without a title becomes an empty content string. A missing
    StartTime is read as 0; a missing EndTime stays None.

    Raises:
        ResponseParseFailure: If the chapters array is missing or malformed.
    """
    result = (task_data.get("Data") or {}).get("Result")
    if not isinstance(result, dict):
        raise ResponseParseFailure("Completed task has no Result object")

    chapters = result.get("AutoChapters")
    if not isinstance(chapters, list):
        raise ResponseParseFailure("Completed task has no AutoChapters array")

    points: list[KnowledgePointData] = []
    for index, chapter in enumerate(chapters):
        if not isinstance(chapter, dict):
            raise ResponseParseFailure(f"Chapter {index} is not an object")

        raw_start = chapter.get("StartTime")
        start_time = 0.0 if raw_start is None else _as_seconds(raw_start, "StartTime")

        raw_end = chapter.get("EndTime")
        end_time = None if raw_end is None else _as_seconds(raw_end, "EndTime")

        if start_time < 0:
            raise ResponseParseFailure(f"Chapter {index} has a negative StartTime")
        if end_time is not None and end_time < start_time:
            raise ResponseParseFailure(f"Chapter {index} ends before it starts")

        title = chapter.get("Title")
        points.append(
            KnowledgePointData(
                start_time=start_time,
                end_time=end_time,
                content=str(title) if title is not None else "",
            )
        )

    return points
