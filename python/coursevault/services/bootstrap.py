"""User bootstrap service.

Provides race-safe user creation on first authenticated request.
"""

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursevault.db.models import User
from coursevault.db.session import transaction
from coursevault.logging import get_logger

logger = get_logger(__name__)


def ensure_user(db: Session, user_id: UUID) -> UUID:
    """Ensure a users row exists for the token subject.

    Idempotent: concurrent calls converge on a single row. A lost insert
    race surfaces as IntegrityError and is treated as success.

    Args:
        db: Database session.
        user_id: The user's ID (from JWT sub claim).

    Returns:
        The user ID.
    """
    if db.get(User, user_id) is not None:
        return user_id

    try:
        with transaction(db):
            db.add(User(id=user_id))
            db.flush()
    except IntegrityError:
        # Lost race: another request created the row
        if db.get(User, user_id) is None:
            raise
        return user_id

    logger.info("user_created", user_id=str(user_id))
    return user_id
