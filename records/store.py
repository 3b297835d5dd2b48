"""
records/store.py -- SQLAlchemy-backed persistence for posts and parking history.

Pattern: Repository + Data Mapper. RecordStore is the repository; the _row_to_*
functions translate raw rows into the dataclasses in records/models.py.

Ownership is enforced by construction rather than by a check on read:
  - Writes take the owner as an auth.models.Identity, which only the session
    codec produces. There is no code path that accepts an owner id from a form
    field or JSON body.
  - Reads are always filtered by the caller's own id. An anonymous caller
    (identity None) gets an empty list, not an error.

Every write is a single-row INSERT committed on its own connection, so no
application-level locking is needed; SQLite serializes writers.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RecordStore(engine)
    post = store.create_post(identity, "Title", "Body")
    entry = store.add_reservation(identity, Reservation("LotA", 12, 3, 5))
    rows = store.get_user_history(identity)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.engine import Engine

from auth.models import Identity
from core.database import history as _history
from core.database import posts as _posts
from records.models import HistoryEntry, Post, Reservation


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStore:
    """Repository for Post and HistoryEntry records."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def create_post(self, author: Identity, title: str, body: str) -> Post:
        """Insert a post owned by author and return the stored record."""
        created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _posts.insert().values(
                    title=title,
                    body=body,
                    author_id=author.user_id,
                    created_at=created_at,
                )
            )
            conn.commit()
            post_id = result.inserted_primary_key[0]
        return Post(id=post_id, title=title, body=body, author_id=author.user_id, created_at=created_at)

    def get_post(self, post_id: int) -> Optional[Post]:
        """Return the post with this id, or None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self, author: Optional[Identity]) -> list[Post]:
        """Return the author's posts, newest first. Anonymous -> []."""
        if author is None:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                _posts.select()
                .where(_posts.c.author_id == author.user_id)
                .order_by(_posts.c.created_at.desc(), _posts.c.id.desc())
            ).fetchall()
        return [_row_to_post(r) for r in rows]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_reservation(self, customer: Identity, reservation: Reservation) -> HistoryEntry:
        """Record a reservation for customer and return the stored history row."""
        visited_date = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _history.insert().values(
                    visited_date=visited_date,
                    place=reservation.place,
                    parking_spot=reservation.parking_spot,
                    spots_left=reservation.spots_left,
                    rating=reservation.rating,
                    customer_id=customer.user_id,
                )
            )
            conn.commit()
            entry_id = result.inserted_primary_key[0]
        return HistoryEntry(
            id=entry_id,
            visited_date=visited_date,
            place=reservation.place,
            parking_spot=reservation.parking_spot,
            spots_left=reservation.spots_left,
            rating=reservation.rating,
            customer_id=customer.user_id,
        )

    def get_user_history(self, customer: Optional[Identity]) -> list[HistoryEntry]:
        """Return the customer's reservations, most recent first. Anonymous -> []."""
        if customer is None:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                _history.select()
                .where(_history.c.customer_id == customer.user_id)
                .order_by(_history.c.visited_date.desc(), _history.c.id.desc())
            ).fetchall()
        return [_row_to_history(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        body=row.body,
        author_id=row.author_id,
        created_at=row.created_at,
    )


def _row_to_history(row) -> HistoryEntry:
    return HistoryEntry(
        id=row.id,
        visited_date=row.visited_date,
        place=row.place,
        parking_spot=row.parking_spot,
        spots_left=row.spots_left,
        rating=row.rating,
        customer_id=row.customer_id,
    )
