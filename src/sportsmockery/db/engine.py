"""Database engine, sessions and startup column migration.

Production runs on Postgres; development, the scheduler's local runs and
the test suite use SQLite through aiosqlite. Everything outside this module
only sees ``AsyncSession``.

Usage:
    engine = create_engine(settings.database_url)
    async with get_session(engine) as session:
        repo = Repository(session)
        ...
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import Column, event, text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sportsmockery.db.models import Base

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 15


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for *database_url*.

    Server databases get ``pool_pre_ping`` so connections dropped by the
    host are replaced instead of failing a request. SQLite connections are
    switched to WAL with a busy timeout, because the WordPress sync and bot
    monitor jobs write while requests read, and foreign keys are turned on
    so poll options and votes cannot outlive their poll.
    """
    if not _is_sqlite(database_url):
        return create_async_engine(database_url, echo=False, pool_pre_ping=True)

    engine = create_async_engine(
        database_url, echo=False, connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn: object, connection_record: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[union-attr]
        for pragma in (
            "journal_mode=WAL",
            "synchronous=NORMAL",
            f"busy_timeout={SQLITE_BUSY_TIMEOUT_SECONDS * 1000}",
            "foreign_keys=ON",
        ):
            cursor.execute(f"PRAGMA {pragma}")
        cursor.close()

    return engine


# Keyed by id(engine.sync_engine); each test engine gets its own factory.
_session_factories: dict[int, async_sessionmaker[AsyncSession]] = {}


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for *engine*, built on first use and cached.

    ``expire_on_commit`` is off so rows returned by a repository call can
    still be serialized after the request's session has committed.
    """
    factory = _session_factories.get(id(engine.sync_engine))
    if factory is None:
        factory = async_sessionmaker(engine, expire_on_commit=False)
        _session_factories[id(engine.sync_engine)] = factory
    return factory


@asynccontextmanager
async def get_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session scoped to one unit of work: commit when the block exits
    cleanly, roll back and re-raise when it does not."""
    async with create_session_factory(engine)() as session:
        try:
            yield session
            await session.commit()
        except Exception:  # rollback, then let the caller see the error
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Startup migration
# ---------------------------------------------------------------------------

_SQLITE_TYPES: dict[str, str] = {
    "String": "VARCHAR",
    "Text": "TEXT",
    "Integer": "INTEGER",
    "Float": "FLOAT",
    "Boolean": "BOOLEAN",
    "DateTime": "DATETIME",
    "Date": "DATE",
    "JSON": "JSON",
}


def _sqlite_col_type(sa_type: object) -> str:
    """SQLite type name for a column type; ``String(n)`` keeps its length."""
    type_name = type(sa_type).__name__
    length = getattr(sa_type, "length", None)
    if type_name == "String" and length:
        return f"VARCHAR({length})"
    return _SQLITE_TYPES.get(type_name, "TEXT")


def _scalar_default_sql(column: Column) -> str | None:
    """SQL literal for the column's default, or None when it has none.

    A ``server_default`` wins. Python-side defaults only count when they are
    plain scalars; callables such as ``default=list`` or ``default=_now``
    cannot be expressed in ``ALTER TABLE`` and return None.
    """
    if column.server_default is not None:
        return str(column.server_default.arg)  # type: ignore[attr-defined]
    default = column.default
    if default is None or not default.is_scalar:
        return None
    value = default.arg  # type: ignore[attr-defined]
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return None


def _column_ddl(column: Column) -> str | None:
    """``ADD COLUMN`` clause for *column*, or None when it cannot be added safely."""
    col_type = _sqlite_col_type(column.type)
    default_sql = _scalar_default_sql(column)
    if default_sql is not None:
        return f"{column.name} {col_type} DEFAULT {default_sql}"
    if column.nullable:
        return f"{column.name} {col_type}"
    return None


async def auto_migrate_schema(conn: AsyncConnection) -> int:
    """Bring an existing SQLite database up to the current models.

    ``create_all`` creates missing tables but never touches existing ones,
    so columns added to a model since the file was created are added here.
    Only columns that are nullable or carry a scalar default can be added to
    a table that already has rows; a NOT NULL column without one is logged
    and left for a manual migration. Other dialects are skipped entirely.

    Returns the number of columns added.
    """
    if conn.dialect.name != "sqlite":
        return 0

    added = 0
    for table_name, table in Base.metadata.tables.items():
        result = await conn.execute(text(f"PRAGMA table_info({table_name})"))
        existing = {row[1] for row in result.fetchall()}
        if not existing:
            continue

        for column in table.columns:
            if column.name in existing:
                continue
            ddl = _column_ddl(column)
            if ddl is None:
                logger.warning(
                    "auto_migrate_skipped table=%s column=%s reason=not_null_without_default",
                    table_name,
                    column.name,
                )
                continue
            await conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {ddl}"))
            logger.info("auto_migrate_added table=%s column=%s", table_name, column.name)
            added += 1

    return added
