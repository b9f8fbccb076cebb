"""Course routes.

Routes are transport-only: each calls exactly one service function.

- POST   /courses              save a course (credentials encrypted at rest)
- GET    /courses              list the caller's courses (paginated)
- GET    /courses/{id}         one course, no credentials
- PATCH  /courses/{id}         update details, optionally rotate credentials
- DELETE /courses/{id}         delete course and its encrypted credentials
- POST   /courses/{id}/launch  decrypted credentials + login/redirect URLs

All routes require authentication.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from coursevault.api.deps import get_db, get_vault
from coursevault.auth.middleware import Viewer, get_viewer
from coursevault.responses import success_response
from coursevault.schemas.courses import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    CourseCreate,
    CourseUpdate,
)
from coursevault.services import courses as courses_service
from coursevault.services.crypto import CredentialVault

router = APIRouter()


@router.post("/courses", status_code=201)
def create_course(
    body: CourseCreate,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    vault: Annotated[CredentialVault, Depends(get_vault)],
) -> dict:
    course = courses_service.create_course(db, vault, viewer.user_id, body)
    return success_response(course.model_dump(mode="json"))


@router.get("/courses")
def list_courses(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_LIMIT)] = DEFAULT_PAGE_LIMIT,
) -> dict:
    result = courses_service.list_courses(db, viewer.user_id, page=page, limit=limit)
    return success_response(result.model_dump(mode="json"))


@router.get("/courses/{course_id}")
def get_course(
    course_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    course = courses_service.get_course(db, viewer.user_id, course_id)
    return success_response(course.model_dump(mode="json"))


@router.patch("/courses/{course_id}")
def update_course(
    course_id: UUID,
    body: CourseUpdate,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    vault: Annotated[CredentialVault, Depends(get_vault)],
) -> dict:
    course = courses_service.update_course(db, vault, viewer.user_id, course_id, body)
    return success_response(course.model_dump(mode="json"))


@router.delete("/courses/{course_id}", status_code=204)
def delete_course(
    course_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    courses_service.delete_course(db, viewer.user_id, course_id)
    return Response(status_code=204)


@router.post("/courses/{course_id}/launch")
def launch_course(
    course_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    vault: Annotated[CredentialVault, Depends(get_vault)],
) -> dict:
    """Return decrypted credentials for the owner.

    Errors:
        E_COURSE_NOT_FOUND (404): Missing or not owned
        E_CREDENTIALS_CORRUPT (500): Stored credentials failed authentication
        E_VAULT_MISCONFIGURED (500): Encryption key missing or invalid
    """
    launch = courses_service.launch_course(db, vault, viewer.user_id, course_id)
    return success_response(launch.model_dump(mode="json"))
