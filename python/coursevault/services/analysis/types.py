"""Shared type definitions for the video analysis pipeline.

- KnowledgePointData: One timestamped chapter, independent of storage
- TranscriptionResult: What the transcription layer hands to the job manager
- AnalysisSnapshot: What the job manager hands back to callers
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

ResultSource = Literal["provider", "placeholder"]


@dataclass(frozen=True)
class KnowledgePointData:
    """One timestamped chapter.

    Attributes:
        start_time: Seconds from the start of the video, >= 0
        end_time: Seconds, >= start_time; None when the provider omitted it
        content: Chapter label; empty when the provider omitted the title
    """

    start_time: float
    end_time: float | None
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "content": self.content,
        }


@dataclass(frozen=True)
class TranscriptionResult:
    """Knowledge points plus where they came from.

    Attributes:
        knowledge_points: Chapters in provider order
        source: "provider" for a real result, "placeholder" for the fallback
        remote_task_id: Provider task id, when a remote task was created
        fallback_reason: Why the placeholder was used (placeholder only)
    """

    knowledge_points: list[KnowledgePointData]
    source: ResultSource = "provider"
    remote_task_id: str | None = None
    fallback_reason: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "source": self.source,
            "knowledge_points": [kp.to_dict() for kp in self.knowledge_points],
        }
        if self.remote_task_id:
            payload["remote_task_id"] = self.remote_task_id
        if self.fallback_reason:
            payload["fallback_reason"] = self.fallback_reason
        return payload


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Point-in-time view of one analysis job.

    knowledge_points is empty unless status is completed, and sorted by
    start_time ascending otherwise.
    """

    job_id: UUID
    external_video_id: str
    status: str
    knowledge_points: list[KnowledgePointData] = field(default_factory=list)
    result_payload: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def error(self) -> str | None:
        if self.status == "failed" and self.result_payload:
            return self.result_payload.get("error")
        return None
