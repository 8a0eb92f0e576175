"""Helpers for pattern owners."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cadence.db.models.user import User

logger = logging.getLogger(__name__)


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Return the owner row for `user_id`, inserting it on first use."""
    user = db.get(User, user_id)
    if user is not None:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Another request registered the same owner first.
        db.rollback()
        user = db.get(User, user_id)
        if user is None:
            raise
        return user
    logger.debug("Registered pattern owner %s", user_id)
    return user
