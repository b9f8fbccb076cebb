"""Video analysis Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

AnalysisStatusLiteral = Literal["pending", "processing", "completed", "failed"]


class VideoAnalysisRequest(BaseModel):
    external_video_id: str = Field(..., min_length=1, max_length=64)


class KnowledgePointOut(BaseModel):
    start_time: float
    end_time: float | None = None
    content: str
    start_label: str


class VideoAnalysisOut(BaseModel):
    """Status of one analysis job.

    knowledge_points is empty unless status is completed.
    error is set only when status is failed.
    """

    job_id: UUID
    external_video_id: str
    status: AnalysisStatusLiteral
    knowledge_points: list[KnowledgePointOut] = Field(default_factory=list)
    source: str | None = None
    error: str | None = None
    error_class: str | None = None


class VideoAnalysisSummaryOut(BaseModel):
    job_id: UUID
    external_video_id: str
    status: AnalysisStatusLiteral
    created_at: datetime | None = None
    updated_at: datetime | None = None
