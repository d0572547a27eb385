"""Remote document store used to back up and share personal records.

The manager only depends on the :class:`RemoteRecordStore` protocol. The
bundled :class:`SQLiteDocumentStore` keeps one document per record under the
signed-in user, plus a single document holding the custom lift names.
"""

import datetime
import json
import logging
import sqlite3
from typing import Protocol

from pydantic import ValidationError

from auth import AuthSession
from db import AsyncBaseRepository
from models import PersonalRecord

_LOGGER = logging.getLogger(__name__)

RECORDS_COLLECTION = "personal_records"
CUSTOM_LIFTS_COLLECTION = "custom_lifts"
CUSTOM_LIFTS_DOC = "lifts"


class RemoteStoreError(RuntimeError):
    """Raised when the remote store cannot complete a request."""


class RemoteRecordStore(Protocol):
    async def load_records(self) -> list[PersonalRecord]: ...

    async def save_records(self, records: list[PersonalRecord]) -> None: ...

    async def load_custom_lifts(self) -> list[str]: ...

    async def save_custom_lifts(self, lifts: list[str]) -> None: ...


class SQLiteDocumentStore(AsyncBaseRepository):
    """Per-user document collections stored with aiosqlite."""

    def __init__(self, db_path: str, session: AuthSession) -> None:
        super().__init__(db_path)
        self.session = session

    def _user(self) -> str:
        if not self.session.is_authenticated:
            raise RemoteStoreError("no authenticated user")
        return str(self.session.user_id)

    async def load_records(self) -> list[PersonalRecord]:
        user = self._user()
        try:
            rows = await self.fetch_all(
                "SELECT doc_id, data FROM documents WHERE user_id = ? AND collection = ? "
                "ORDER BY created_at DESC;",
                (user, RECORDS_COLLECTION),
            )
        except sqlite3.Error as e:
            raise RemoteStoreError(f"failed to load records: {e}") from e
        records: list[PersonalRecord] = []
        for doc_id, data in rows:
            try:
                records.append(PersonalRecord.model_validate_json(data))
            except ValidationError as e:
                _LOGGER.warning("Skipping undecodable record document %s: %s", doc_id, e)
        _LOGGER.debug("Loaded %d personal records for %s", len(records), user)
        return records

    async def save_records(self, records: list[PersonalRecord]) -> None:
        """Replace the user's record collection with ``records``."""
        user = self._user()
        now = datetime.datetime.now().isoformat()
        rows = [
            (user, RECORDS_COLLECTION, str(r.id), r.model_dump_json(), r.date.isoformat(), now)
            for r in records
        ]
        try:
            async with self._async_connection() as conn:
                await conn.execute(
                    "DELETE FROM documents WHERE user_id = ? AND collection = ?;",
                    (user, RECORDS_COLLECTION),
                )
                await conn.executemany(
                    "INSERT INTO documents (user_id, collection, doc_id, data, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?);",
                    rows,
                )
        except sqlite3.Error as e:
            raise RemoteStoreError(f"failed to save records: {e}") from e
        _LOGGER.debug("Saved %d personal records for %s", len(rows), user)

    async def load_custom_lifts(self) -> list[str]:
        user = self._user()
        try:
            rows = await self.fetch_all(
                "SELECT data FROM documents WHERE user_id = ? AND collection = ? AND doc_id = ?;",
                (user, CUSTOM_LIFTS_COLLECTION, CUSTOM_LIFTS_DOC),
            )
        except sqlite3.Error as e:
            raise RemoteStoreError(f"failed to load custom lifts: {e}") from e
        if not rows:
            return []
        try:
            data = json.loads(rows[0][0])
        except ValueError as e:
            raise RemoteStoreError(f"invalid custom lifts document: {e}") from e
        lifts = data.get("customLifts") if isinstance(data, dict) else None
        if not isinstance(lifts, list):
            raise RemoteStoreError("custom lifts document has no customLifts list")
        return [str(x) for x in lifts]

    async def save_custom_lifts(self, lifts: list[str]) -> None:
        user = self._user()
        now = datetime.datetime.now().isoformat()
        payload = json.dumps({"customLifts": list(lifts), "updatedAt": now})
        try:
            await self.execute(
                "INSERT INTO documents (user_id, collection, doc_id, data, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(user_id, collection, doc_id) DO UPDATE SET data=excluded.data, updated_at=excluded.updated_at;",
                (user, CUSTOM_LIFTS_COLLECTION, CUSTOM_LIFTS_DOC, payload, now, now),
            )
        except sqlite3.Error as e:
            raise RemoteStoreError(f"failed to save custom lifts: {e}") from e
