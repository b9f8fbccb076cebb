"""Course service layer.

Handles course records and their encrypted credentials:
- Create / list / get / update / delete courses owned by a user
- Launch a course: decrypt credentials and record the access

Security invariants:
- Plaintext credentials never persist and are never logged
- encrypted_credentials, iv and auth_tag never leave this module
- An update with new credentials writes a brand-new encrypted triple
- Vault failures surface as errors; they are never masked into empty credentials
"""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coursevault.db.models import AccessLog, AccessType, Course
from coursevault.errors import ApiError, ApiErrorCode, NotFoundError
from coursevault.logging import get_logger
from coursevault.schemas.courses import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    CourseCreate,
    CourseCredentialsOut,
    CourseLaunchOut,
    CourseListOut,
    CourseOut,
    CourseUpdate,
)
from coursevault.services.crypto import (
    AuthenticationError,
    ConfigurationError,
    CredentialVault,
    EncryptedSecret,
    MalformedInputError,
)
from coursevault.services.redact import safe_kv

logger = get_logger(__name__)

DEFAULT_LOGIN_URL = "https://passport.bilibili.com/login"


@contextmanager
def _vault_errors(course_id: UUID | None, operation: str) -> Iterator[None]:
    """Map vault exceptions to API errors at the service boundary."""
    try:
        yield
    except ConfigurationError as e:
        logger.error("vault_misconfigured", operation=operation)
        raise ApiError(
            ApiErrorCode.E_VAULT_MISCONFIGURED, "Credential encryption is not configured"
        ) from e
    except (AuthenticationError, MalformedInputError) as e:
        logger.error(
            "course_credentials_corrupt",
            **safe_kv(
                course_id=str(course_id) if course_id else None,
                operation=operation,
                error_type=type(e).__name__,
            ),
        )
        raise ApiError(
            ApiErrorCode.E_CREDENTIALS_CORRUPT, "Stored credentials could not be decrypted"
        ) from e


def _to_out(course: Course) -> CourseOut:
    return CourseOut.model_validate(course)


def _get_owned_course(db: Session, user_id: UUID, course_id: UUID) -> Course:
    """Load a course owned by the user, else 404.

    Missing and not-owned look the same to the caller.
    """
    course = db.scalars(
        select(Course).where(
            Course.id == course_id,
            Course.user_id == user_id,
        )
    ).first()
    if course is None:
        raise NotFoundError(ApiErrorCode.E_COURSE_NOT_FOUND, "Course not found")
    return course


def create_course(
    db: Session, vault: CredentialVault, user_id: UUID, payload: CourseCreate
) -> CourseOut:
    """Save a course with its credentials encrypted at rest.

    Raises:
        ApiError: E_VAULT_MISCONFIGURED if the encryption key is unusable.
    """
    with _vault_errors(None, "encrypt"):
        secret = vault.encrypt_credentials(payload.username, payload.password)

    now = datetime.now(UTC)
    course = Course(
        user_id=user_id,
        course_name=payload.course_name,
        course_url=payload.course_url,
        login_url=payload.login_url or None,
        description=payload.description or None,
        encrypted_credentials=secret.ciphertext,
        iv=secret.nonce,
        auth_tag=secret.auth_tag,
        created_at=now,
        updated_at=now,
    )
    db.add(course)
    db.flush()
    db.commit()

    logger.info("course_created", course_id=str(course.id), user_id=str(user_id))
    return _to_out(course)


def list_courses(
    db: Session, user_id: UUID, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT
) -> CourseListOut:
    """List the user's courses, newest first."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_LIMIT)

    base = select(Course).where(Course.user_id == user_id)
    total = db.scalar(select(func.count()).select_from(base.subquery())) or 0

    courses = db.scalars(
        base.order_by(Course.created_at.desc(), Course.id)
        .limit(limit)
        .offset((page - 1) * limit)
    ).all()

    return CourseListOut(
        courses=[_to_out(c) for c in courses],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


def get_course(db: Session, user_id: UUID, course_id: UUID) -> CourseOut:
    return _to_out(_get_owned_course(db, user_id, course_id))


def update_course(
    db: Session,
    vault: CredentialVault,
    user_id: UUID,
    course_id: UUID,
    payload: CourseUpdate,
) -> CourseOut:
    """Update course details; replace credentials when both parts are given.

    Raises:
        NotFoundError: E_COURSE_NOT_FOUND if missing or not owned.
        ApiError: E_VAULT_MISCONFIGURED if new credentials cannot be encrypted.
    """
    course = _get_owned_course(db, user_id, course_id)
    fields = payload.model_fields_set

    if "course_name" in fields and payload.course_name is not None:
        course.course_name = payload.course_name
    if "description" in fields:
        course.description = payload.description or None
    if "login_url" in fields:
        course.login_url = payload.login_url or None

    rotated = False
    if payload.username and payload.password:
        with _vault_errors(course_id, "encrypt"):
            secret = vault.encrypt_credentials(payload.username, payload.password)
        course.encrypted_credentials = secret.ciphertext
        course.iv = secret.nonce
        course.auth_tag = secret.auth_tag
        rotated = True

    course.updated_at = datetime.now(UTC)
    db.flush()
    db.commit()

    logger.info(
        "course_updated",
        course_id=str(course_id),
        user_id=str(user_id),
        credentials_rotated=rotated,
    )
    return _to_out(course)


def delete_course(db: Session, user_id: UUID, course_id: UUID) -> None:
    """Delete a course and, with it, its encrypted credentials and access logs."""
    course = _get_owned_course(db, user_id, course_id)
    db.delete(course)
    db.flush()
    db.commit()

    logger.info("course_deleted", course_id=str(course_id), user_id=str(user_id))


def launch_course(
    db: Session,
    vault: CredentialVault,
    user_id: UUID,
    course_id: UUID,
    access_type: AccessType = AccessType.proxy,
) -> CourseLaunchOut:
    """Decrypt the stored credentials and record the access.

    Raises:
        NotFoundError: E_COURSE_NOT_FOUND if missing or not owned.
        ApiError: E_CREDENTIALS_CORRUPT if the stored triple does not verify.
        ApiError: E_VAULT_MISCONFIGURED if the encryption key is unusable.
    """
    course = _get_owned_course(db, user_id, course_id)

    secret = EncryptedSecret(
        ciphertext=course.encrypted_credentials,
        nonce=course.iv,
        auth_tag=course.auth_tag,
    )
    try:
        with _vault_errors(course_id, "decrypt"):
            credentials = vault.decrypt_credentials(secret)
    except ApiError:
        db.add(
            AccessLog(
                user_id=user_id,
                course_id=course_id,
                access_type=access_type.value,
                success=False,
            )
        )
        db.commit()
        raise

    now = datetime.now(UTC)
    course.access_count = (course.access_count or 0) + 1
    course.last_accessed = now
    db.add(
        AccessLog(
            user_id=user_id,
            course_id=course_id,
            access_type=access_type.value,
            success=True,
            created_at=now,
        )
    )
    db.flush()
    db.commit()

    logger.info(
        "course_launched",
        course_id=str(course_id),
        user_id=str(user_id),
        access_type=access_type.value,
    )
    return CourseLaunchOut(
        course_id=course.id,
        course_name=course.course_name,
        course_url=course.course_url,
        login_url=course.login_url or DEFAULT_LOGIN_URL,
        redirect_url=course.course_url,
        credentials=CourseCredentialsOut(
            username=credentials.username,
            password=credentials.password,
        ),
    )
