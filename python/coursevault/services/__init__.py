"""Business logic services.

This module contains service-layer functions that implement business logic.
Services are called by route handlers and orchestrate database operations.
"""

from coursevault.services.bootstrap import ensure_user
from coursevault.services.courses import (
    create_course,
    delete_course,
    get_course,
    launch_course,
    list_courses,
    update_course,
)

__all__ = [
    "ensure_user",
    "create_course",
    "list_courses",
    "get_course",
    "update_course",
    "delete_course",
    "launch_course",
]
