from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from beestat.core.errors import NotFoundError
from beestat.db.models import User, UserSession


def create_anonymous_user(db: Session) -> User:
    user = User(anonymous=True)
    db.add(user)
    db.flush()
    return user


def get_user(db: Session, user_id: int) -> User | None:
    user = db.get(User, user_id)
    if user is None or user.deleted:
        return None
    return user


def create_session(db: Session, *, user_id: int) -> UserSession:
    session = UserSession(
        user_id=user_id,
        session_key=secrets.token_hex(20),
        last_used_at=datetime.now(timezone.utc),
    )
    db.add(session)
    db.flush()
    return session


def get_active_session(db: Session, session_key: str) -> UserSession | None:
    return db.scalars(
        select(UserSession).where(
            UserSession.session_key == session_key,
            UserSession.deleted.is_(False),
        )
    ).first()


def delete_sessions(db: Session, *, user_id: int, session_key: str | None = None) -> int:
    statement = (
        update(UserSession)
        .where(UserSession.user_id == user_id, UserSession.deleted.is_(False))
        .values(deleted=True)
    )
    if session_key is not None:
        statement = statement.where(UserSession.session_key == session_key)
    result = db.execute(statement)
    db.flush()
    return int(result.rowcount or 0)


def set_patreon_status(db: Session, *, user_id: int, patreon_status: dict[str, Any] | None) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")
    if user.patreon_status != patreon_status:
        user.patreon_status = patreon_status
        db.flush()
    return user
