"""
auth/store.py -- Account persistence on SQLAlchemy Core.

UserStore owns every query against the users table; _row_to_user maps rows
back to auth.models.User. Callers never build SQL themselves, and every
query binds its parameters.

Uniqueness: users.username carries a UNIQUE constraint. username_exists()
only lets registration show a friendly message early. When two sign-ups
race for the same name, the constraint decides and the loser gets an
IntegrityError.

Layer rule: no imports from api/, web/, or records/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import exists, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.database import users as _users


class UserStore:
    """Create and look up accounts. Accounts are never updated or removed.

    Usage:
        store = UserStore(engine)
        uid = store.create_user(User(username="alice", hashed_password=digest))
        alice = store.get_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, user: User) -> int:
        """Insert user and return the new row id.

        A duplicate username raises sqlalchemy.exc.IntegrityError, which the
        registration route reports as "already taken".
        """
        stmt = _users.insert().values(
            username=user.username,
            hashed_password=user.hashed_password,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).inserted_primary_key[0]

    def username_exists(self, username: str) -> bool:
        with self.engine.connect() as conn:
            return bool(conn.execute(select(exists().where(_users.c.username == username))).scalar())

    def get_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive match."""
        return self._fetch_one(_users.c.username == username)

    def get_by_id(self, user_id: int) -> User | None:
        return self._fetch_one(_users.c.id == user_id)

    def _fetch_one(self, condition) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users).where(condition)).fetchone()
        return None if row is None else _row_to_user(row)


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )
