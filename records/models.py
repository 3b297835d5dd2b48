"""
records/models.py -- Domain dataclasses for posts and parking history.

These are pure data containers with zero logic. Persistence and the ownership
rules live in records/store.py.

Owner fields (author_id, customer_id) are filled in by the store from a
verified Identity. Nothing builds them from request data.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Post:
    """A text post. Immutable once written.

    title and body are already markup-stripped and non-empty.
    """

    title: str
    body: str
    author_id: int
    created_at: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None


@dataclass
class Reservation:
    """A parsed, validated reservation request -- not yet owned by anyone."""

    place: str
    parking_spot: int
    spots_left: int
    rating: int


@dataclass
class HistoryEntry:
    """A recorded parking reservation. Append-only.

    id is None before the record is written to the database.
    """

    place: str
    parking_spot: int
    spots_left: int
    rating: int
    customer_id: int
    visited_date: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None
