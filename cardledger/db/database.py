"""
Database engines and session management.

`CatalogueStore` owns the two independently persisted SQLite stores
(encyclopedia and collection) and the catalogue schema version recorded in
the encyclopedia's `_metadata` table. One instance is built at process start
and injected into the reconciler, the query layer and the statistics engine.
"""

import asyncio
import logging
from enum import Enum
from typing import Any

from sqlalchemy import event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cardledger.config import Settings
from cardledger.config import settings as default_settings
from cardledger.models.db import CollectionBase, EncyclopediaBase, MetadataDB
from cardledger.models.failure import NotInitializedError, StorageUnavailableError

logger = logging.getLogger(__name__)

VERSION_KEY = "db_version"

ENCYCLOPEDIA = "encyclopedia"
COLLECTION = "collection"


class SchemaStatus(str, Enum):
    """How the stored catalogue compares to the version the app ships."""

    FRESH = "fresh"
    NEEDS_MIGRATION = "needs_migration"
    UP_TO_DATE = "up_to_date"


def _configure_sqlite(engine: AsyncEngine) -> None:
    """
    Per-connection SQLite setup.

    The driver's implicit transaction handling is disabled and BEGIN is
    emitted explicitly, so DROP/CREATE TABLE run inside the same transaction
    as the inserts that follow them.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        # One writer, many readers
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


class CatalogueStore:
    """
    Handle to the encyclopedia and collection stores.

    `open()` is safe to call from several startup paths at once: the first
    caller starts the open sequence and every concurrent caller awaits that
    same task, so the schema is only ever created once.
    """

    def __init__(
        self,
        encyclopedia_url: str,
        collection_url: str,
        echo: bool = False,
    ):
        self.encyclopedia_url = encyclopedia_url
        self.collection_url = collection_url
        self.echo = echo

        self._encyclopedia_engine: AsyncEngine | None = None
        self._collection_engine: AsyncEngine | None = None
        self._encyclopedia_sessions: async_sessionmaker[AsyncSession] | None = None
        self._collection_sessions: async_sessionmaker[AsyncSession] | None = None
        self._pending_open: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CatalogueStore":
        """Build a store from application settings."""
        settings = settings or default_settings
        return cls(
            encyclopedia_url=settings.encyclopedia_url,
            collection_url=settings.collection_url,
            echo=settings.debug,
        )

    @property
    def is_open(self) -> bool:
        return self._encyclopedia_sessions is not None and self._collection_sessions is not None

    # --- Lifecycle ---

    async def open(self) -> None:
        """
        Open both stores and create their schemas if missing.

        Idempotent. Raises StorageUnavailableError if either store cannot be
        opened; a failed open leaves nothing behind and may be retried.
        """
        if self.is_open:
            return

        if self._pending_open is None:
            self._pending_open = asyncio.get_running_loop().create_task(self._open())
        pending = self._pending_open

        try:
            # Shielded so one caller being cancelled does not cancel the open for the rest
            await asyncio.shield(pending)
        finally:
            if pending.done() and self._pending_open is pending:
                self._pending_open = None

    async def _open(self) -> None:
        encyclopedia: AsyncEngine | None = None
        collection: AsyncEngine | None = None

        store_name = ENCYCLOPEDIA
        try:
            # Malformed URLs fail in create_async_engine, not on first connect
            encyclopedia = create_async_engine(self.encyclopedia_url, echo=self.echo)
            _configure_sqlite(encyclopedia)
            async with encyclopedia.begin() as conn:
                await conn.run_sync(EncyclopediaBase.metadata.create_all)

            store_name = COLLECTION
            collection = create_async_engine(self.collection_url, echo=self.echo)
            _configure_sqlite(collection)
            async with collection.begin() as conn:
                await conn.run_sync(CollectionBase.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to open %s store: %s", store_name, e)
            for engine in (encyclopedia, collection):
                if engine is not None:
                    await engine.dispose()
            raise StorageUnavailableError(store_name, detail=str(e)) from e

        self._encyclopedia_engine = encyclopedia
        self._collection_engine = collection
        self._encyclopedia_sessions = async_sessionmaker(
            encyclopedia, class_=AsyncSession, expire_on_commit=False
        )
        self._collection_sessions = async_sessionmaker(
            collection, class_=AsyncSession, expire_on_commit=False
        )
        logger.info("Stores opened (%s, %s)", self.encyclopedia_url, self.collection_url)

    async def close(self) -> None:
        """Dispose both engines. The store can be opened again afterwards."""
        engines = [self._encyclopedia_engine, self._collection_engine]
        self._encyclopedia_engine = None
        self._collection_engine = None
        self._encyclopedia_sessions = None
        self._collection_sessions = None
        for engine in engines:
            if engine is not None:
                await engine.dispose()
        logger.info("Stores closed")

    # --- Engines and sessions ---

    @property
    def encyclopedia_engine(self) -> AsyncEngine:
        if self._encyclopedia_engine is None:
            raise NotInitializedError(ENCYCLOPEDIA)
        return self._encyclopedia_engine

    @property
    def collection_engine(self) -> AsyncEngine:
        if self._collection_engine is None:
            raise NotInitializedError(COLLECTION)
        return self._collection_engine

    def encyclopedia_session(self) -> AsyncSession:
        """New session on the encyclopedia store."""
        if self._encyclopedia_sessions is None:
            raise NotInitializedError(ENCYCLOPEDIA)
        return self._encyclopedia_sessions()

    def collection_session(self) -> AsyncSession:
        """New session on the collection store."""
        if self._collection_sessions is None:
            raise NotInitializedError(COLLECTION)
        return self._collection_sessions()

    # --- Version marker ---

    async def current_version(self) -> int | None:
        """
        Catalogue schema version recorded in the encyclopedia.

        Returns None if the encyclopedia has never been seeded.
        """
        try:
            async with self.encyclopedia_session() as session:
                result = await session.execute(
                    select(MetadataDB.value).where(MetadataDB.key == VERSION_KEY)
                )
                value = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(ENCYCLOPEDIA, detail=str(e)) from e

        if value is None:
            return None
        return int(value)

    async def status(self, target_version: int) -> SchemaStatus:
        """Compare the stored version with `target_version`."""
        current = await self.current_version()
        if current is None:
            return SchemaStatus.FRESH
        if current < target_version:
            return SchemaStatus.NEEDS_MIGRATION
        return SchemaStatus.UP_TO_DATE
