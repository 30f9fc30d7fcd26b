"""
Database engine initialisation and the record store adapter.

The adapter exposes a small collection-oriented interface (find one, find
all, insert, update by filter, remove) over a SQLAlchemy engine. Callers
address records with typed ``Filter`` objects from ``prescription_api.models``
rather than raw SQL.
"""

import logging
import secrets
import sys
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import (
    Column,
    MetaData,
    String,
    Table,
    Text,
    and_,
    create_engine,
    delete,
    insert,
    select,
    text,
    true,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from prescription_api.config import DB_URI, PRESCRIPTIONS_COLLECTION, USERS_COLLECTION
from prescription_api.errors import StoreFailure
from prescription_api.models import Filter

logger = logging.getLogger(__name__)

metadata = MetaData()

prescriptions_table = Table(
    PRESCRIPTIONS_COLLECTION,
    metadata,
    Column("id", String(24), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("directions", Text, nullable=False, default=""),
    Column("time", String(255), nullable=False, default=""),
    Column("owner", String(255), nullable=False, index=True),
)

users_table = Table(
    USERS_COLLECTION,
    metadata,
    Column("username", String(255), primary_key=True),
    Column("password_hash", String(255), nullable=False),
)


class RecordNotFound(LookupError):
    """No record in the collection matched the filter."""


def init_engine(db_uri: Optional[str] = None):
    """Create a SQLAlchemy engine, verify the connection and create tables."""
    db_uri = db_uri or DB_URI
    kwargs = {"echo": False, "future": True}
    if db_uri.startswith("sqlite"):
        # One engine is shared by every request thread.
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in db_uri or db_uri == "sqlite://":
            kwargs["poolclass"] = StaticPool
    engine = create_engine(db_uri, **kwargs)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        metadata.create_all(engine)
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


class RecordStore:
    """Collection-scoped CRUD over a shared engine.

    The engine is owned by the process: it is handed in at construction and
    disposed by ``close()`` once, at shutdown.
    """

    def __init__(self, engine):
        self.engine = engine
        self.collections = {
            PRESCRIPTIONS_COLLECTION: prescriptions_table,
            USERS_COLLECTION: users_table,
        }

    # ── Helpers ──────────────────────────────────────────────────────

    def _table(self, collection: str) -> Table:
        try:
            return self.collections[collection]
        except KeyError:
            raise ValueError(f"Unknown collection '{collection}'") from None

    @staticmethod
    def _check_fields(table: Table, fields) -> None:
        unknown = [f for f in fields if f not in table.c]
        if unknown:
            raise ValueError(f"Unknown field(s) {unknown} for collection '{table.name}'")

    def _where(self, table: Table, query: Filter):
        criteria = query.as_dict()
        self._check_fields(table, criteria)
        if not criteria:
            return true()
        return and_(*(table.c[name] == value for name, value in criteria.items()))

    @contextmanager
    def _guard(self, operation: str, collection: str):
        try:
            yield
        except SQLAlchemyError:
            logger.exception("store %s on '%s' failed", operation, collection)
            raise StoreFailure() from None

    # ── Operations ───────────────────────────────────────────────────

    def new_id(self) -> str:
        """Return a fresh opaque identifier (24 hex characters)."""
        return secrets.token_hex(12)

    def find_one(self, query: Filter, collection: str) -> Dict[str, Any]:
        table = self._table(collection)
        stmt = select(table).where(self._where(table, query)).limit(1)
        with self._guard("find_one", collection):
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        if row is None:
            raise RecordNotFound(collection)
        return dict(row)

    def find_all(self, query: Filter, collection: str) -> List[Dict[str, Any]]:
        table = self._table(collection)
        stmt = select(table).where(self._where(table, query))
        with self._guard("find_all", collection):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [dict(row) for row in rows]

    def insert(self, record: Mapping[str, Any], collection: str) -> Dict[str, Any]:
        table = self._table(collection)
        self._check_fields(table, record)
        with self._guard("insert", collection):
            with self.engine.begin() as conn:
                conn.execute(insert(table).values(**record))
        return dict(record)

    def update(self, query: Filter, fields: Mapping[str, Any], collection: str) -> int:
        """Set *fields* on every record matching *query*; return the match count."""
        table = self._table(collection)
        self._check_fields(table, fields)
        stmt = update(table).where(self._where(table, query)).values(**fields)
        with self._guard("update", collection):
            with self.engine.begin() as conn:
                matched = conn.execute(stmt).rowcount
        if not matched:
            raise RecordNotFound(collection)
        return matched

    def remove(self, query: Filter, collection: str) -> None:
        table = self._table(collection)
        stmt = delete(table).where(self._where(table, query))
        with self._guard("remove", collection):
            with self.engine.begin() as conn:
                removed = conn.execute(stmt).rowcount
        if not removed:
            raise RecordNotFound(collection)

    def close(self) -> None:
        self.engine.dispose()
