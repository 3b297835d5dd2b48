"""
core/database.py -- Schema and engine factory shared by every store.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py and
records/models.py stay the authoritative domain representation.

All three tables live in one MetaData so posts.author_id and
history.customer_id can declare real foreign keys to users.id. SQLite only
enforces them with PRAGMA foreign_keys=ON, which is set per connection.

create_db_engine() is called once at startup and the resulting Engine is
handed to UserStore and RecordStore. Nothing reads it as a global.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or records/.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(10), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("created_at", String(32), nullable=False),
    Column("title", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("author_id", Integer, ForeignKey("users.id"), nullable=False, index=True),
)

history = Table(
    "history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("visited_date", String(32), nullable=False),
    Column("place", Text, nullable=False),
    Column("parking_spot", Integer, nullable=False),
    Column("spots_left", Integer, nullable=False),
    Column("rating", Integer, nullable=False),
    Column("customer_id", Integer, ForeignKey("users.id"), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journaling and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. WAL lets readers proceed while a writer holds
    the lock; concurrent writers are serialized by the engine.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


def create_db_engine(db_url: str) -> Engine:
    """Create an Engine for db_url and create any missing tables.

    create_all() is idempotent: existing tables are left untouched, so this is
    safe to call on every startup.

    Usage:
        engine = create_db_engine("sqlite:///parkspot.db")
        users = UserStore(engine)
        records = RecordStore(engine)
        ...
        engine.dispose()
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine
