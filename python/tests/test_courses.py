"""Tests for course storage, credential rotation and launch.

Service-level tests call coursevault.services.courses directly against the
per-test database; route tests go through the authenticated client.
"""

import base64
from uuid import uuid4

import pytest
from sqlalchemy import select

from coursevault.config import VaultConfig
from coursevault.db.models import AccessLog, Course
from coursevault.errors import ApiError, ApiErrorCode
from coursevault.schemas.courses import CourseCreate, CourseUpdate
from coursevault.services import courses as courses_service
from coursevault.services.crypto import CredentialVault
from tests.factories import create_user
from tests.helpers import auth_headers


def _create_payload(**overrides) -> CourseCreate:
    data = {
        "course_name": "Fluid Mechanics 101",
        "course_url": "https://example.edu/courses/fluids",
        "username": "student@example.edu",
        "password": "correct horse battery staple",
    }
    data.update(overrides)
    return CourseCreate(**data)


@pytest.fixture
def owner(db_session):
    return create_user(db_session)


class TestCreateCourse:
    def test_credentials_stored_encrypted(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())

        row = db_session.get(Course, course.id)
        assert row.encrypted_credentials
        assert len(row.iv) == 32
        assert len(row.auth_tag) == 32
        assert "correct horse" not in row.encrypted_credentials
        assert "student@example.edu" not in row.encrypted_credentials

    def test_response_never_carries_credentials(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        dumped = course.model_dump()

        for key in ("username", "password", "encrypted_credentials", "iv", "auth_tag"):
            assert key not in dumped

    def test_missing_key_is_vault_misconfigured(self, db_session, owner):
        vault = CredentialVault(VaultConfig(encryption_key=None))

        with pytest.raises(ApiError) as exc_info:
            courses_service.create_course(db_session, vault, owner, _create_payload())

        assert exc_info.value.code == ApiErrorCode.E_VAULT_MISCONFIGURED
        assert db_session.scalars(select(Course)).first() is None

    def test_blank_name_rejected(self):
        with pytest.raises(ValueError):
            _create_payload(course_name="   ")


class TestListAndGet:
    def test_list_is_scoped_to_owner(self, db_session, vault, owner):
        other = create_user(db_session)
        courses_service.create_course(db_session, vault, owner, _create_payload())
        courses_service.create_course(
            db_session, vault, other, _create_payload(course_name="Other")
        )

        result = courses_service.list_courses(db_session, owner)

        assert result.total == 1
        assert [c.course_name for c in result.courses] == ["Fluid Mechanics 101"]

    def test_pagination(self, db_session, vault, owner):
        for i in range(5):
            courses_service.create_course(
                db_session, vault, owner, _create_payload(course_name=f"Course {i}")
            )

        page = courses_service.list_courses(db_session, owner, page=2, limit=2)

        assert page.total == 5
        assert page.total_pages == 3
        assert len(page.courses) == 2

    def test_limit_is_clamped(self, db_session, owner):
        result = courses_service.list_courses(db_session, owner, page=0, limit=1000)
        assert result.page == 1
        assert result.limit == 100
        assert result.total_pages == 0

    def test_get_other_users_course_is_not_found(self, db_session, vault, owner):
        other = create_user(db_session)
        course = courses_service.create_course(db_session, vault, owner, _create_payload())

        with pytest.raises(ApiError) as exc_info:
            courses_service.get_course(db_session, other, course.id)
        assert exc_info.value.code == ApiErrorCode.E_COURSE_NOT_FOUND


class TestUpdateCourse:
    def test_details_updated_without_touching_credentials(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        before = db_session.get(Course, course.id)
        triple = (before.encrypted_credentials, before.iv, before.auth_tag)

        updated = courses_service.update_course(
            db_session, vault, owner, course.id, CourseUpdate(course_name="Renamed")
        )

        row = db_session.get(Course, course.id)
        assert updated.course_name == "Renamed"
        assert (row.encrypted_credentials, row.iv, row.auth_tag) == triple

    def test_both_credentials_rotate_the_whole_triple(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        old_iv = db_session.get(Course, course.id).iv

        courses_service.update_course(
            db_session,
            vault,
            owner,
            course.id,
            CourseUpdate(username="new-user", password="new-pass"),
        )

        row = db_session.get(Course, course.id)
        assert row.iv != old_iv
        launch = courses_service.launch_course(db_session, vault, owner, course.id)
        assert launch.credentials.username == "new-user"
        assert launch.credentials.password == "new-pass"

    def test_password_alone_does_not_rotate(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        old_iv = db_session.get(Course, course.id).iv

        courses_service.update_course(
            db_session, vault, owner, course.id, CourseUpdate(password="only-password")
        )

        assert db_session.get(Course, course.id).iv == old_iv


class TestDeleteCourse:
    def test_delete_removes_row_and_access_logs(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        courses_service.launch_course(db_session, vault, owner, course.id)

        courses_service.delete_course(db_session, owner, course.id)

        db_session.expire_all()
        assert db_session.get(Course, course.id) is None
        assert db_session.scalars(
            select(AccessLog).where(AccessLog.course_id == course.id)
        ).first() is None

    def test_deleted_course_gone_from_list_and_lookup(self, db_session, vault, owner):
        kept = courses_service.create_course(db_session, vault, owner, _create_payload())
        removed = courses_service.create_course(db_session, vault, owner, _create_payload())

        courses_service.delete_course(db_session, owner, removed.id)

        listing = courses_service.list_courses(db_session, owner)
        assert [c.id for c in listing.courses] == [kept.id]
        assert listing.total == 1
        with pytest.raises(ApiError) as exc_info:
            courses_service.get_course(db_session, owner, removed.id)
        assert exc_info.value.code == ApiErrorCode.E_COURSE_NOT_FOUND

    def test_delete_not_owned_is_not_found(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        with pytest.raises(ApiError):
            courses_service.delete_course(db_session, uuid4(), course.id)


class TestLaunchCourse:
    def test_launch_returns_decrypted_credentials(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())

        launch = courses_service.launch_course(db_session, vault, owner, course.id)

        assert launch.credentials.username == "student@example.edu"
        assert launch.credentials.password == "correct horse battery staple"
        assert launch.redirect_url == "https://example.edu/courses/fluids"
        assert launch.login_url == courses_service.DEFAULT_LOGIN_URL

    def test_launch_uses_course_login_url(self, db_session, vault, owner):
        course = courses_service.create_course(
            db_session, vault, owner, _create_payload(login_url="https://example.edu/login")
        )
        launch = courses_service.launch_course(db_session, vault, owner, course.id)
        assert launch.login_url == "https://example.edu/login"

    def test_launch_records_access(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())

        courses_service.launch_course(db_session, vault, owner, course.id)
        courses_service.launch_course(db_session, vault, owner, course.id)

        row = db_session.get(Course, course.id)
        logs = db_session.scalars(select(AccessLog).where(AccessLog.course_id == course.id)).all()
        assert row.access_count == 2
        assert row.last_accessed is not None
        assert len(logs) == 2
        assert all(log.success for log in logs)

    def test_tampered_credentials_fail_loudly(self, db_session, vault, owner):
        """A modified ciphertext is an error, never empty credentials."""
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        row = db_session.get(Course, course.id)
        first = "1" if row.encrypted_credentials[0] != "1" else "2"
        row.encrypted_credentials = first + row.encrypted_credentials[1:]
        db_session.commit()

        with pytest.raises(ApiError) as exc_info:
            courses_service.launch_course(db_session, vault, owner, course.id)

        assert exc_info.value.code == ApiErrorCode.E_CREDENTIALS_CORRUPT
        log = db_session.scalars(select(AccessLog).where(AccessLog.course_id == course.id)).one()
        assert log.success is False
        assert db_session.get(Course, course.id).access_count == 0

    def test_wrong_key_is_credentials_corrupt(self, db_session, vault, owner):
        course = courses_service.create_course(db_session, vault, owner, _create_payload())
        other_vault = CredentialVault(
            VaultConfig(encryption_key=base64.b64encode(b"x" * 32).decode("ascii"))
        )

        with pytest.raises(ApiError) as exc_info:
            courses_service.launch_course(db_session, other_vault, owner, course.id)
        assert exc_info.value.code == ApiErrorCode.E_CREDENTIALS_CORRUPT


@pytest.mark.integration
class TestCourseRoutes:
    def test_requires_authentication(self, authenticated_client):
        response = authenticated_client.get("/courses")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_create_list_launch_delete(self, authenticated_client, test_user_id):
        headers = auth_headers(test_user_id)

        created = authenticated_client.post(
            "/courses",
            json={
                "course_name": "Fluid Mechanics 101",
                "course_url": "https://example.edu/courses/fluids",
                "username": "student",
                "password": "pw",
            },
            headers=headers,
        )
        assert created.status_code == 201
        course = created.json()["data"]
        assert "password" not in course

        listed = authenticated_client.get("/courses", headers=headers)
        assert listed.json()["data"]["total"] == 1

        launched = authenticated_client.post(f"/courses/{course['id']}/launch", headers=headers)
        assert launched.status_code == 200
        assert launched.json()["data"]["credentials"] == {"username": "student", "password": "pw"}

        deleted = authenticated_client.delete(f"/courses/{course['id']}", headers=headers)
        assert deleted.status_code == 204

        missing = authenticated_client.get(f"/courses/{course['id']}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "E_COURSE_NOT_FOUND"

    def test_other_user_cannot_launch(self, authenticated_client, test_user_id):
        created = authenticated_client.post(
            "/courses",
            json={
                "course_name": "Private",
                "course_url": "https://example.edu/p",
                "username": "u",
                "password": "p",
            },
            headers=auth_headers(test_user_id),
        )
        course_id = created.json()["data"]["id"]

        response = authenticated_client.post(
            f"/courses/{course_id}/launch", headers=auth_headers(uuid4())
        )
        assert response.status_code == 404

    def test_corrupt_credentials_return_500(
        self, authenticated_client, test_user_id, session_factory
    ):
        headers = auth_headers(test_user_id)
        created = authenticated_client.post(
            "/courses",
            json={
                "course_name": "Tampered",
                "course_url": "https://example.edu/t",
                "username": "u",
                "password": "p",
            },
            headers=headers,
        )
        course_id = created.json()["data"]["id"]

        with session_factory() as db:
            row = db.scalars(select(Course)).one()
            row.auth_tag = "0" * 32
            db.commit()

        response = authenticated_client.post(f"/courses/{course_id}/launch", headers=headers)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "E_CREDENTIALS_CORRUPT"

    def test_missing_required_field_is_400(self, authenticated_client, test_user_id):
        response = authenticated_client.post(
            "/courses",
            json={"course_name": "No creds", "course_url": "https://example.edu"},
            headers=auth_headers(test_user_id),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_malformed_json_is_400(self, authenticated_client, test_user_id):
        response = authenticated_client.post(
            "/courses",
            content=b'{"course_name": ',
            headers=auth_headers(test_user_id, **{"Content-Type": "application/json"}),
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Malformed JSON body"
