"""Video analysis routes.

- POST /video-analysis          submit (or reuse) the job for a video
- GET  /video-analysis/{job_id} poll a job's status and knowledge points
- GET  /video-analysis          the caller's jobs, newest first

Submission returns immediately with {job_id, status: processing}, or with
the cached result when the video was already analysed. Failures are only
visible through polling.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from coursevault.api.deps import get_job_manager
from coursevault.auth.middleware import Viewer, get_viewer
from coursevault.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from coursevault.middleware.request_id import get_request_id_from_request
from coursevault.responses import success_response
from coursevault.schemas.video_analysis import (
    KnowledgePointOut,
    VideoAnalysisOut,
    VideoAnalysisRequest,
    VideoAnalysisSummaryOut,
)
from coursevault.services.analysis import (
    AnalysisJobManager,
    AnalysisSnapshot,
    format_timestamp,
    is_valid_video_id,
)

router = APIRouter()


def _to_out(snapshot: AnalysisSnapshot) -> VideoAnalysisOut:
    payload = snapshot.result_payload or {}
    return VideoAnalysisOut(
        job_id=snapshot.job_id,
        external_video_id=snapshot.external_video_id,
        status=snapshot.status,
        knowledge_points=[
            KnowledgePointOut(
                start_time=kp.start_time,
                end_time=kp.end_time,
                content=kp.content,
                start_label=format_timestamp(kp.start_time),
            )
            for kp in snapshot.knowledge_points
        ],
        source=payload.get("source") if snapshot.status == "completed" else None,
        error=snapshot.error,
        error_class=payload.get("error_class") if snapshot.status == "failed" else None,
    )


@router.post("/video-analysis", status_code=202)
async def submit_analysis(
    body: VideoAnalysisRequest,
    request: Request,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    manager: Annotated[AnalysisJobManager, Depends(get_job_manager)],
) -> dict:
    """Submit a video for analysis.

    Errors:
        E_INVALID_VIDEO_ID (400): Id is not 1-64 chars of [A-Za-z0-9_-]
    """
    if not is_valid_video_id(body.external_video_id):
        raise InvalidRequestError(ApiErrorCode.E_INVALID_VIDEO_ID, "Invalid video id")

    submitted = await manager.submit(
        body.external_video_id,
        viewer.user_id,
        request_id=get_request_id_from_request(request),
    )
    return success_response(_to_out(submitted.snapshot).model_dump(mode="json"))


@router.get("/video-analysis")
async def list_analyses(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    manager: Annotated[AnalysisJobManager, Depends(get_job_manager)],
) -> dict:
    snapshots = await manager.list_user_analyses(viewer.user_id)
    return success_response(
        [
            VideoAnalysisSummaryOut(
                job_id=s.job_id,
                external_video_id=s.external_video_id,
                status=s.status,
                created_at=s.created_at,
                updated_at=s.updated_at,
            ).model_dump(mode="json")
            for s in snapshots
        ]
    )


@router.get("/video-analysis/{job_id}")
async def get_analysis(
    job_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    manager: Annotated[AnalysisJobManager, Depends(get_job_manager)],
) -> dict:
    """Poll a job. Other users' jobs are reported as not found."""
    snapshot = await manager.get_result(job_id, viewer.user_id)
    if snapshot is None:
        raise NotFoundError(ApiErrorCode.E_ANALYSIS_NOT_FOUND, "Analysis not found")
    return success_response(_to_out(snapshot).model_dump(mode="json"))
