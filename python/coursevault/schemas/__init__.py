"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from coursevault.schemas.courses import (
    CourseCreate,
    CourseCredentialsOut,
    CourseLaunchOut,
    CourseListOut,
    CourseOut,
    CourseUpdate,
)
from coursevault.schemas.video_analysis import (
    KnowledgePointOut,
    VideoAnalysisOut,
    VideoAnalysisRequest,
    VideoAnalysisSummaryOut,
)

__all__ = [
    # Course schemas
    "CourseCreate",
    "CourseUpdate",
    "CourseOut",
    "CourseListOut",
    "CourseLaunchOut",
    "CourseCredentialsOut",
    # Video analysis schemas
    "VideoAnalysisRequest",
    "VideoAnalysisOut",
    "VideoAnalysisSummaryOut",
    "KnowledgePointOut",
]
