"""Test data factories.

Centralizes helper functions that create database rows for tests.
"""

from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from coursevault.db.models import AnalysisStatus, KnowledgePoint, User, VideoAnalysis


def create_user(session: Session, user_id: UUID | None = None) -> UUID:
    user_id = user_id or uuid4()
    session.add(User(id=user_id))
    session.commit()
    return user_id


def create_analysis(
    session: Session,
    user_id: UUID,
    external_video_id: str = "BVtest001",
    status: AnalysisStatus = AnalysisStatus.processing,
    attempt: int = 1,
    result_payload: dict | None = None,
    knowledge_points: list[tuple[float, float | None, str]] | None = None,
) -> UUID:
    """Insert an analysis row directly, bypassing the job manager."""
    analysis = VideoAnalysis(
        external_video_id=external_video_id,
        user_id=user_id,
        status=status.value,
        attempt=attempt,
        result_payload=result_payload,
    )
    session.add(analysis)
    session.flush()

    for start, end, content in knowledge_points or []:
        session.add(
            KnowledgePoint(
                analysis_id=analysis.id, start_time=start, end_time=end, content=content
            )
        )
    session.commit()
    return analysis.id
