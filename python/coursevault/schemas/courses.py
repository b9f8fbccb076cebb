"""Course Pydantic schemas.

Security invariants:
- Responses never include encrypted_credentials, iv or auth_tag
- Plaintext credentials only appear in the launch response, for the owner
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


class CourseOut(BaseModel):
    """Response schema for a course. Never carries credentials."""

    id: UUID
    course_name: str
    course_url: str
    login_url: str | None = None
    description: str | None = None
    access_count: int = 0
    last_accessed: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CourseListOut(BaseModel):
    courses: list[CourseOut]
    total: int
    page: int
    limit: int
    total_pages: int


class CourseCreate(BaseModel):
    """Request schema for saving a course and its credentials."""

    course_name: str = Field(..., min_length=1, max_length=255)
    course_url: str = Field(..., min_length=1, max_length=2048)
    login_url: str | None = Field(default=None, max_length=2048)
    description: str | None = Field(default=None, max_length=2000)
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=1024)

    @field_validator("course_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("course_name must not be blank")
        return v


class CourseUpdate(BaseModel):
    """Request schema for updating a course.

    Credentials are replaced only when both username and password are given.
    """

    course_name: str | None = Field(default=None, min_length=1, max_length=255)
    login_url: str | None = Field(default=None, max_length=2048)
    description: str | None = Field(default=None, max_length=2000)
    username: str | None = Field(default=None, min_length=1, max_length=255)
    password: str | None = Field(default=None, min_length=1, max_length=1024)

    @field_validator("course_name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("course_name must not be blank")
        return v


class CourseCredentialsOut(BaseModel):
    username: str
    password: str


class CourseLaunchOut(BaseModel):
    """Everything the client needs to open the course with stored credentials."""

    course_id: UUID
    course_name: str
    course_url: str
    login_url: str
    redirect_url: str
    credentials: CourseCredentialsOut
