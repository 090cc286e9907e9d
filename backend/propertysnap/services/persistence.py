"""Key-value backends and the debounced state persister."""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from propertysnap.core.config import Settings, get_settings
from propertysnap.core.exceptions import CollaboratorError
from propertysnap.models.kv_entry import KVEntry
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.state import AppState
from propertysnap.services.audit import StoreEvent
from propertysnap.services.interfaces import KeyValueStore
from propertysnap.services.store import InspectionStore

logger = logging.getLogger(__name__)


class MemoryKeyValueStore(KeyValueStore):
    """In-process store. Contents are lost with the process."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self.data: dict[str, bytes] = dict(initial or {})
        self.writes = 0

    async def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    async def put(self, key: str, value: bytes) -> None:
        self.writes += 1
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _upsert(dialect_name: str, key: str, value: bytes):
    """INSERT ... ON CONFLICT DO UPDATE for ``kv_entries``, or None when unsupported."""
    insert = _UPSERT_DIALECTS.get(dialect_name)
    if insert is None:
        return None
    stmt = insert(KVEntry).values(key=key, value=value, updated_at=utcnow())
    return stmt.on_conflict_do_update(
        index_elements=[KVEntry.key],
        set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
    )


class SqlKeyValueStore(KeyValueStore):
    """Key-value blobs in the ``kv_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[bytes]:
        try:
            async with self.session_factory() as session:
                entry = await session.get(KVEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Failed to read {key}: {e}") from e

    async def put(self, key: str, value: bytes) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    stmt = _upsert(session.get_bind().dialect.name, key, value)
                    if stmt is not None:
                        await session.execute(stmt)
                    else:
                        await session.merge(KVEntry(key=key, value=value, updated_at=utcnow()))
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Failed to write {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(delete(KVEntry).where(KVEntry.key == key))
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Failed to delete {key}: {e}") from e


class StatePersister:
    """Serialise the latest store snapshot after a coalescing debounce.

    Any number of store transitions inside one debounce window collapse to a
    single write of the newest snapshot. A failed write is logged and tried
    again one window later.
    """

    def __init__(
        self,
        store: InspectionStore,
        kv: KeyValueStore,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.kv = kv
        self.settings = settings or get_settings()
        self._task: Optional[asyncio.Task] = None
        self._dirty = False
        self._unsubscribe = None

    @property
    def key(self) -> str:
        return self.settings.state_key

    @property
    def delay(self) -> float:
        return self.settings.persist_debounce_ms / 1000

    @property
    def dirty(self) -> bool:
        return self._dirty

    async def load(self) -> AppState:
        """Read the stored tree and hydrate the store with it.

        A missing or unreadable document leaves the store at its empty state.
        """
        try:
            raw = await self.kv.get(self.key)
        except CollaboratorError as e:
            logger.error("Failed to load state: %s", e.message)
            return self.store.state
        if raw is None:
            return self.store.state

        try:
            state = AppState.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Stored state under %s is invalid: %s", self.key, e)
            return self.store.state

        self.store.hydrate(state)
        logger.info("Loaded %d properties from %s", len(state.properties), self.key)
        return state

    def attach(self) -> None:
        """Persist after every accepted store transition."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_event(self, event: StoreEvent) -> None:
        self.schedule()

    def schedule(self) -> None:
        """Mark the tree dirty and start a debounce window if none is open."""
        self._dirty = True
        if self._task is not None and not self._task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # flush() picks it up
            return
        self._task = loop.create_task(self._debounced_save())

    async def _debounced_save(self) -> None:
        await asyncio.sleep(self.delay)
        await self._write()
        self._task = None
        # failed writes and changes made during the write open a new window
        if self._dirty:
            self.schedule()

    async def _write(self) -> bool:
        self._dirty = False
        snapshot = self.store.state
        try:
            await self.kv.put(self.key, snapshot.model_dump_json(by_alias=True).encode("utf-8"))
        except (CollaboratorError, OSError) as e:
            self._dirty = True
            logger.warning("State write failed, retrying: %s", e)
            return False
        logger.debug("Persisted state under %s", self.key)
        return True

    async def flush(self) -> bool:
        """Write immediately, cancelling any pending debounce."""
        await self.cancel()
        return await self._write()

    async def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        """Detach from the store and write any pending change."""
        self.detach()
        if self._dirty:
            await self.flush()
        else:
            await self.cancel()
