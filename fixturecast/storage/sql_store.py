"""SQL-backed state store (SQLite via aiosqlite, PostgreSQL via asyncpg)."""

import logging
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from fixturecast.database import build_engine, build_session_maker, init_db
from fixturecast.models import StateEntry, utc_naive_now
from fixturecast.storage.base import StateStore, StateStoreError

logger = logging.getLogger(__name__)


class SQLStateStore(StateStore):
    """Key-value store over the `state_entries` table.

    Tables are created lazily on first use.
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self._engine = engine or build_engine(url)
        self._session_maker = build_session_maker(self._engine)
        self._initialized = False

    async def _ensure_schema(self) -> None:
        if self._initialized:
            return
        try:
            await init_db(self._engine)
        except SQLAlchemyError as e:
            raise StateStoreError(f"Schema initialization failed: {e}") from e
        self._initialized = True

    async def get(self, key: str) -> Optional[Any]:
        await self._ensure_schema()
        try:
            async with self._session_maker() as session:
                entry = await session.get(StateEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error(f"State read failed for {key}: {e}")
            raise StateStoreError(f"Read failed for {key}") from e

    def _upsert_statement(self, key: str, value: Any):
        """INSERT .. ON CONFLICT (key) DO UPDATE for the engine's dialect."""
        insert = pg_insert if self._engine.dialect.name == "postgresql" else sqlite_insert
        stmt = insert(StateEntry).values(key=key, value=value, updated_at=utc_naive_now())
        return stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded["value"], "updated_at": stmt.excluded["updated_at"]},
        )

    async def put(self, key: str, value: Any) -> None:
        await self._ensure_schema()
        try:
            async with self._session_maker() as session:
                await session.execute(self._upsert_statement(key, value))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"State write failed for {key}: {e}")
            raise StateStoreError(f"Write failed for {key}") from e

    async def delete(self, key: str) -> bool:
        await self._ensure_schema()
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    delete(StateEntry).where(StateEntry.key == key)
                )
                await session.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            logger.error(f"State delete failed for {key}: {e}")
            raise StateStoreError(f"Delete failed for {key}") from e

    async def list_keys(self, prefix: str = "") -> list[str]:
        await self._ensure_schema()
        try:
            async with self._session_maker() as session:
                stmt = select(StateEntry.key).order_by(StateEntry.key)
                if prefix:
                    stmt = stmt.where(StateEntry.key.startswith(prefix, autoescape=True))
                result = await session.execute(stmt)
                return [row[0] for row in result.all()]
        except SQLAlchemyError as e:
            logger.error(f"State list failed for prefix {prefix!r}: {e}")
            raise StateStoreError(f"List failed for prefix {prefix!r}") from e

    async def close(self) -> None:
        logger.info("Closing state store connections...")
        await self._engine.dispose()
