"""Database module for the course vault.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from coursevault.db.engine import create_db_engine, get_engine
from coursevault.db.models import (
    AccessLog,
    AccessType,
    AnalysisStatus,
    Base,
    Course,
    KnowledgePoint,
    User,
    VideoAnalysis,
)
from coursevault.db.session import (
    SessionFactory,
    create_session_factory,
    get_db,
    get_session_factory,
    session_scope,
    transaction,
)

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "SessionFactory",
    "create_session_factory",
    "get_session_factory",
    "get_db",
    "session_scope",
    "transaction",
    # Base
    "Base",
    # Enums
    "AnalysisStatus",
    "AccessType",
    # Models
    "User",
    "Course",
    "AccessLog",
    "VideoAnalysis",
    "KnowledgePoint",
]
