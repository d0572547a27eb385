import sqlite3
import aiosqlite
import logging
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional

from pydantic import ValidationError

from models import PersonalRecord, RecordList, LiftNameList, sort_newest_first

_LOGGER = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Base class for local storage failures."""


class StorageDecodeError(StorageError):
    """Raised when a stored entry cannot be decoded."""


class StorageWriteError(StorageError):
    """Raised when an entry cannot be encoded or written."""


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "kv_store": """CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
        "documents": """CREATE TABLE IF NOT EXISTS documents (
                    user_id TEXT NOT NULL,
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, collection, doc_id)
                );""",
    }

    def __init__(self, db_path: str = "records.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for sql in self._TABLE_DEFINITIONS.values():
                conn.execute(sql)


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class KeyValueRepository(BaseRepository):
    """Named string entries, the local equivalent of a defaults store."""

    def get(self, key: str) -> Optional[str]:
        rows = self.fetch_all("SELECT value FROM kv_store WHERE key = ?;", (key,))
        return rows[0][0] if rows else None

    def set(self, key: str, value: str) -> None:
        try:
            self.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at;",
                (key, value, datetime.datetime.now().isoformat()),
            )
        except sqlite3.Error as e:
            raise StorageWriteError(f"failed to write {key}: {e}") from e

    def delete(self, key: str) -> None:
        self.execute("DELETE FROM kv_store WHERE key = ?;", (key,))

    def keys(self) -> list[str]:
        rows = self.fetch_all("SELECT key FROM kv_store ORDER BY key;")
        return [r[0] for r in rows]


class RecordRepository(KeyValueRepository):
    """Persist the record collection and custom lift names as JSON entries."""

    RECORDS_KEY = "OneRepMaxRecords"
    CUSTOM_LIFTS_KEY = "CustomLifts"

    def _decode(self, key: str, adapter):
        try:
            raw = self.get(key)
        except sqlite3.Error as e:
            raise StorageDecodeError(f"failed to read {key}: {e}") from e
        if raw is None:
            return []
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            raise StorageDecodeError(f"invalid {key} entry: {e}") from e

    def _encode(self, key: str, adapter, items: list) -> None:
        try:
            payload = adapter.dump_json(items).decode("utf-8")
        except (TypeError, ValueError) as e:
            raise StorageWriteError(f"failed to encode {key}: {e}") from e
        self.set(key, payload)

    def load_records(self) -> list[PersonalRecord]:
        """Return stored records newest first, or an empty list if unreadable."""
        try:
            records = self._decode(self.RECORDS_KEY, RecordList)
        except StorageDecodeError as e:
            _LOGGER.error("Error loading personal records: %s", e)
            return []
        return sort_newest_first(records)

    def load_custom_lifts(self) -> list[str]:
        try:
            return self._decode(self.CUSTOM_LIFTS_KEY, LiftNameList)
        except StorageDecodeError as e:
            _LOGGER.error("Error loading custom lifts: %s", e)
            return []

    def save_records(self, records: list[PersonalRecord]) -> bool:
        try:
            self._encode(self.RECORDS_KEY, RecordList, list(records))
        except StorageError as e:
            _LOGGER.error("Error saving personal records: %s", e)
            return False
        return True

    def save_custom_lifts(self, lifts: list[str]) -> bool:
        try:
            self._encode(self.CUSTOM_LIFTS_KEY, LiftNameList, list(lifts))
        except StorageError as e:
            _LOGGER.error("Error saving custom lifts: %s", e)
            return False
        return True


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows
