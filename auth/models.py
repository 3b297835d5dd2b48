"""
auth/models.py -- Account and identity records.

Plain dataclasses with no behaviour; UserStore and TokenCodec produce them.

Layer rule: no imports from api/, web/, core/, or records/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A stored account. hashed_password is a bcrypt digest, never plaintext.

    id and created_at stay None until UserStore has inserted the row.
    """

    username: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """Who is calling, as proven by a verified session token.

    TokenCodec.verify() is the only place request data turns into one, which
    is why RecordStore can stamp identity.user_id on new rows as their owner.
    """

    user_id: int
    username: str
