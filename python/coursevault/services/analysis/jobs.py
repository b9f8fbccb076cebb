"""Video analysis job manager.

One job per (external_video_id, user_id), enforced by a unique constraint.

submit():
- completed row with a result → cache hit, no pipeline
- processing row with a live pipeline in this process → reuse, no new pipeline
- any other existing row → status processing, attempt + 1, respawn pipeline
- no row → insert (processing, attempt 1), spawn pipeline

Pipeline (asyncio.Task owned by the manager, never awaited by the request):
download → transcribe → conditional final write → cleanup.

Final writes are `UPDATE ... WHERE id = :id AND attempt = :attempt`. A
pipeline whose attempt has been superseded updates zero rows, logs
`analysis_result_stale`, and writes no knowledge points, so the persisted
status and payload always come from exactly one pipeline.
A failure write additionally requires the row to still be processing, so a
cancellation that lands after the success commit cannot undo it.

Sync DB access uses run_in_threadpool (starlette) to avoid blocking the
event loop.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from coursevault.db.models import AnalysisStatus, KnowledgePoint, VideoAnalysis
from coursevault.db.session import SessionFactory
from coursevault.logging import bind_analysis_context, clear_analysis_context, get_logger
from coursevault.services.analysis.downloader import VideoDownloader
from coursevault.services.analysis.errors import (
    AnalysisErrorClass,
    classify_exception,
    error_payload,
)
from coursevault.services.analysis.transcription import TranscriptionService
from coursevault.services.analysis.types import (
    AnalysisSnapshot,
    KnowledgePointData,
    TranscriptionResult,
)

logger = get_logger(__name__)

JobKey = tuple[str, UUID]


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of submit().

    Attributes:
        snapshot: The job as it stands after submission
        cached: True when a completed result was returned without a pipeline
        spawned_attempt: Attempt number of the pipeline started, if any
    """

    snapshot: AnalysisSnapshot
    cached: bool = False
    spawned_attempt: int | None = None


def _snapshot(row: VideoAnalysis) -> AnalysisSnapshot:
    points: list[KnowledgePointData] = []
    if row.status == AnalysisStatus.completed.value:
        points = [
            KnowledgePointData(start_time=kp.start_time, end_time=kp.end_time, content=kp.content)
            for kp in sorted(row.knowledge_points, key=lambda kp: (kp.start_time, kp.id))
        ]
    return AnalysisSnapshot(
        job_id=row.id,
        external_video_id=row.external_video_id,
        status=row.status,
        knowledge_points=points,
        result_payload=row.result_payload,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class AnalysisJobManager:
    """Owns the analysis state machine and the background pipeline tasks.

    Args:
        session_factory: Callable returning a new SQLAlchemy Session.
        downloader: External downloader collaborator.
        transcriber: Transcription service (provider + fallback policy).
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        downloader: VideoDownloader,
        transcriber: TranscriptionService,
    ):
        self._session_factory = session_factory
        self._downloader = downloader
        self._transcriber = transcriber
        self._tasks: dict[JobKey, asyncio.Task] = {}
        self._submit_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def submit(
        self,
        external_video_id: str,
        user_id: UUID,
        *,
        request_id: str | None = None,
    ) -> SubmitResult:
        """Create or reuse the job for (video, user) and start a pipeline if needed.

        Returns immediately; the pipeline runs detached.
        """
        key: JobKey = (external_video_id, user_id)

        async with self._submit_lock:
            result = await run_in_threadpool(
                self._claim, external_video_id, user_id, self.is_running(key)
            )
            if result.spawned_attempt is not None:
                self._spawn(key, result.snapshot.job_id, result.spawned_attempt, request_id)

        logger.info(
            "analysis_submitted",
            analysis_id=str(result.snapshot.job_id),
            external_video_id=external_video_id,
            status=result.snapshot.status,
            cached=result.cached,
            attempt=result.spawned_attempt,
        )
        return result

    async def get_result(
        self, job_id: UUID, user_id: UUID | None = None
    ) -> AnalysisSnapshot | None:
        """Current status and knowledge points. Never waits for the pipeline.

        Returns None when the job does not exist or belongs to another user.
        """
        return await run_in_threadpool(self._load, job_id, user_id)

    async def list_user_analyses(self, user_id: UUID) -> list[AnalysisSnapshot]:
        """The user's jobs, newest first (knowledge points not included)."""
        return await run_in_threadpool(self._list, user_id)

    def is_running(self, key: JobKey) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def drain(self) -> None:
        """Wait for every in-flight pipeline to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight pipelines and wait for them to record their outcome."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("analysis_manager_shutdown", cancelled=len(tasks))

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _spawn(self, key: JobKey, job_id: UUID, attempt: int, request_id: str | None) -> None:
        task = asyncio.create_task(
            self._run_pipeline(job_id, key[0], key[1], attempt, request_id),
            name=f"video-analysis-{job_id}-{attempt}",
        )
        self._tasks[key] = task

        def _forget(done: asyncio.Task) -> None:
            if self._tasks.get(key) is done:
                del self._tasks[key]

        task.add_done_callback(_forget)

    async def _run_pipeline(
        self,
        job_id: UUID,
        external_video_id: str,
        user_id: UUID,
        attempt: int,
        request_id: str | None,
    ) -> None:
        """Single error boundary: every outcome ends in completed or failed."""
        bind_analysis_context(str(job_id), attempt, request_id=request_id, user_id=str(user_id))
        logger.info("analysis_pipeline_started", external_video_id=external_video_id)

        file_path = None
        try:
            file_path = await self._downloader.download(external_video_id)
            result = await self._transcriber.transcribe(file_path, external_video_id)
            written = await run_in_threadpool(self._write_success, job_id, attempt, result)
            if written:
                logger.info(
                    "analysis_completed",
                    knowledge_point_count=len(result.knowledge_points),
                    source=result.source,
                )
        except asyncio.CancelledError:
            logger.warning("analysis_pipeline_cancelled")
            await self._record_failure(
                job_id,
                attempt,
                {
                    "error": "Analysis was interrupted before it finished",
                    "error_class": AnalysisErrorClass.INTERNAL.value,
                },
            )
            raise
        except Exception as exc:
            error_class = classify_exception(exc)
            if error_class == AnalysisErrorClass.INTERNAL:
                logger.exception("analysis_failed", error_class=error_class.value)
            else:
                logger.warning(
                    "analysis_failed",
                    error_class=error_class.value,
                    error_type=type(exc).__name__,
                )
            await self._record_failure(job_id, attempt, error_payload(exc))
        finally:
            if file_path is not None:
                await self._downloader.cleanup(file_path)
            clear_analysis_context()

    async def _record_failure(self, job_id: UUID, attempt: int, payload: dict[str, Any]) -> None:
        try:
            await run_in_threadpool(self._write_failure, job_id, attempt, payload)
        except Exception:
            logger.exception("analysis_failure_write_failed")

    # -------------------------------------------------------------------------
    # Sync DB operations (run in the threadpool)
    # -------------------------------------------------------------------------

    def _find(self, db: Session, external_video_id: str, user_id: UUID) -> VideoAnalysis | None:
        return db.execute(
            select(VideoAnalysis).where(
                VideoAnalysis.external_video_id == external_video_id,
                VideoAnalysis.user_id == user_id,
            )
        ).scalar_one_or_none()

    def _claim(self, external_video_id: str, user_id: UUID, running: bool) -> SubmitResult:
        with self._session_factory() as db:
            row = self._find(db, external_video_id, user_id)

            if row is None:
                now = datetime.now(UTC)
                row = VideoAnalysis(
                    external_video_id=external_video_id,
                    user_id=user_id,
                    status=AnalysisStatus.processing.value,
                    attempt=1,
                    created_at=now,
                    updated_at=now,
                )
                db.add(row)
                try:
                    db.commit()
                except IntegrityError:
                    # Another process inserted the same pair first
                    db.rollback()
                    row = self._find(db, external_video_id, user_id)
                    if row is None:
                        raise
                else:
                    db.refresh(row)
                    return SubmitResult(snapshot=_snapshot(row), spawned_attempt=1)

            if row.status == AnalysisStatus.completed.value and row.result_payload is not None:
                return SubmitResult(snapshot=_snapshot(row), cached=True)

            if row.status == AnalysisStatus.processing.value and running:
                return SubmitResult(snapshot=_snapshot(row))

            db.execute(
                update(VideoAnalysis)
                .where(VideoAnalysis.id == row.id)
                .values(
                    status=AnalysisStatus.processing.value,
                    attempt=VideoAnalysis.attempt + 1,
                    updated_at=datetime.now(UTC),
                )
            )
            db.commit()
            db.refresh(row)
            return SubmitResult(snapshot=_snapshot(row), spawned_attempt=row.attempt)

    def _write_success(self, job_id: UUID, attempt: int, result: TranscriptionResult) -> bool:
        """Persist a completed result; delete-then-insert in one transaction."""
        with self._session_factory() as db, db.begin():
            updated = db.execute(
                update(VideoAnalysis)
                .where(VideoAnalysis.id == job_id, VideoAnalysis.attempt == attempt)
                .values(
                    status=AnalysisStatus.completed.value,
                    result_payload=result.to_payload(),
                    updated_at=datetime.now(UTC),
                )
            )
            if updated.rowcount != 1:
                logger.warning("analysis_result_stale", outcome="completed")
                return False

            db.execute(delete(KnowledgePoint).where(KnowledgePoint.analysis_id == job_id))
            db.add_all(
                KnowledgePoint(
                    analysis_id=job_id,
                    start_time=kp.start_time,
                    end_time=kp.end_time,
                    content=kp.content,
                )
                for kp in sorted(result.knowledge_points, key=lambda kp: kp.start_time)
            )
        return True

    def _write_failure(self, job_id: UUID, attempt: int, payload: dict[str, Any]) -> bool:
        """Mark the attempt failed unless it already reached a terminal state."""
        with self._session_factory() as db, db.begin():
            updated = db.execute(
                update(VideoAnalysis)
                .where(VideoAnalysis.id == job_id, VideoAnalysis.attempt == attempt)
                .where(VideoAnalysis.status == AnalysisStatus.processing.value)
                .values(
                    status=AnalysisStatus.failed.value,
                    result_payload=payload,
                    updated_at=datetime.now(UTC),
                )
            )
            if updated.rowcount != 1:
                logger.warning("analysis_result_stale", outcome="failed")
                return False

            db.execute(delete(KnowledgePoint).where(KnowledgePoint.analysis_id == job_id))
        return True

    def _load(self, job_id: UUID, user_id: UUID | None) -> AnalysisSnapshot | None:
        with self._session_factory() as db:
            row = db.get(VideoAnalysis, job_id)
            if row is None or (user_id is not None and row.user_id != user_id):
                return None
            return _snapshot(row)

    def _list(self, user_id: UUID) -> list[AnalysisSnapshot]:
        with self._session_factory() as db:
            rows = (
                db.execute(
                    select(VideoAnalysis)
                    .where(VideoAnalysis.user_id == user_id)
                    .order_by(VideoAnalysis.created_at.desc(), VideoAnalysis.id)
                )
                .scalars()
                .all()
            )
            return [
                AnalysisSnapshot(
                    job_id=row.id,
                    external_video_id=row.external_video_id,
                    status=row.status,
                    result_payload=None,
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )
                for row in rows
            ]
