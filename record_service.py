import asyncio
import datetime
import logging
import uuid
from typing import Awaitable, Callable, Iterable, Optional

from auth import AuthSession
from db import RecordRepository
from models import MAJOR_LIFTS, PersonalRecord, RecordKind, sort_newest_first
from remote_store import RemoteRecordStore

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[], None]


def merge_records(
    local: Iterable[PersonalRecord], remote: Iterable[PersonalRecord]
) -> list[PersonalRecord]:
    """Return all remote records plus local records whose id is not remote.

    Remote wins for every id it contains. The result is newest first.
    """
    merged = list(remote)
    remote_ids = {r.id for r in merged}
    merged.extend(r for r in local if r.id not in remote_ids)
    return sort_newest_first(merged)


def merge_custom_lifts(
    local: Iterable[str], remote: Iterable[str], catalog: Iterable[str] = ()
) -> list[str]:
    """Return the union of both lift lists without duplicates.

    Names found in ``catalog`` are built-in lifts and are left out.
    """
    out: list[str] = []
    seen: set[str] = set(catalog)
    for name in list(local) + list(remote):
        if name not in seen:
            seen.add(name)
            out.append(name)
    return out


class PersonalRecordService:
    """Own the personal record store and the custom lift registry.

    All mutations persist to the local repository straight away. When a
    remote store is configured and the session is signed in, the full
    collection is pushed in the background and reconciled on sign-in.
    """

    def __init__(
        self,
        repo: RecordRepository,
        remote: Optional[RemoteRecordStore] = None,
        session: Optional[AuthSession] = None,
        major_lifts: Iterable[str] = MAJOR_LIFTS,
    ) -> None:
        self.repo = repo
        self.remote = remote
        self.session = session
        self.major_lifts: list[str] = list(major_lifts)
        self.personal_records: list[PersonalRecord] = repo.load_records()
        self.custom_lifts: list[str] = repo.load_custom_lifts()
        self.last_sync_date: Optional[datetime.datetime] = None
        self.is_syncing = False
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        if session is not None:
            session.subscribe(self._on_auth_changed)
            if session.is_authenticated:
                self._schedule(self.sync())

    # observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every state change until removed."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # persistence

    def _save_records(self) -> None:
        self.repo.save_records(self.personal_records)
        self._notify()
        self._push(self._push_records)

    def _save_custom_lifts(self) -> None:
        self.repo.save_custom_lifts(self.custom_lifts)
        self._notify()
        self._push(self._push_custom_lifts)

    # records

    def add_record(self, record: PersonalRecord) -> None:
        """Add ``record`` and prune same lift/kind records it strictly beats."""
        self.personal_records = [
            r
            for r in self.personal_records
            if r.id != record.id
            and not (
                r.lift_name == record.lift_name
                and r.record_kind == record.record_kind
                and record.is_better_than(r)
            )
        ]
        self.personal_records.append(record)
        self.personal_records = sort_newest_first(self.personal_records)
        self._save_records()

    def update_record(self, record: PersonalRecord) -> None:
        for index, existing in enumerate(self.personal_records):
            if existing.id == record.id:
                self.personal_records[index] = record
                self.personal_records = sort_newest_first(self.personal_records)
                self._save_records()
                return

    def delete_record(self, record: PersonalRecord | uuid.UUID) -> None:
        record_id = record.id if isinstance(record, PersonalRecord) else record
        remaining = [r for r in self.personal_records if r.id != record_id]
        if len(remaining) == len(self.personal_records):
            return
        self.personal_records = remaining
        self._save_records()

    def get_record(self, record_id: uuid.UUID) -> Optional[PersonalRecord]:
        return next((r for r in self.personal_records if r.id == record_id), None)

    def get_all_records(self) -> list[PersonalRecord]:
        return list(self.personal_records)

    def get_personal_record(self, lift_name: str) -> Optional[PersonalRecord]:
        """Return the most recent record for ``lift_name``."""
        return next((r for r in self.personal_records if r.lift_name == lift_name), None)

    def get_best_record(
        self, lift_name: str, kind: RecordKind = RecordKind.WEIGHT
    ) -> Optional[PersonalRecord]:
        best: Optional[PersonalRecord] = None
        for r in self.personal_records:
            if r.lift_name != lift_name or r.record_kind != kind:
                continue
            # Store order is newest first, so ties keep the most recent.
            if best is None or r.is_better_than(best):
                best = r
        return best

    def get_recent_records(self, limit: int = 5) -> list[PersonalRecord]:
        return self.personal_records[: max(0, limit)]

    def get_records_for_lift(self, lift_name: str) -> list[PersonalRecord]:
        return [r for r in self.personal_records if r.lift_name == lift_name]

    def get_default_record_kind(self, lift_name: str) -> RecordKind:
        latest = self.get_personal_record(lift_name)
        return latest.record_kind if latest else RecordKind.WEIGHT

    # custom lifts

    def is_custom_lift(self, lift_name: str) -> bool:
        return lift_name in self.custom_lifts

    def add_custom_lift(self, lift_name: str) -> bool:
        if lift_name in self.custom_lifts or lift_name in self.major_lifts:
            return False
        self.custom_lifts.append(lift_name)
        self._save_custom_lifts()
        return True

    def remove_custom_lift(self, lift_name: str) -> None:
        """Remove ``lift_name`` and every custom record logged under it."""
        if lift_name not in self.custom_lifts:
            return
        self.custom_lifts = [n for n in self.custom_lifts if n != lift_name]
        remaining = [
            r
            for r in self.personal_records
            if not (r.lift_name == lift_name and r.is_custom)
        ]
        self._save_custom_lifts()
        if len(remaining) != len(self.personal_records):
            self.personal_records = remaining
            self._save_records()

    def get_all_lifts(self) -> list[str]:
        return self.major_lifts + self.custom_lifts

    # statistics

    def total_records(self) -> int:
        return len(self.personal_records)

    def _weight_records(self) -> list[PersonalRecord]:
        return [r for r in self.personal_records if r.record_kind is RecordKind.WEIGHT]

    def total_weight(self) -> float:
        """Sum of weight-kind values; other kinds have no common unit."""
        return sum(r.value for r in self._weight_records())

    def average_weight(self) -> float:
        weights = self._weight_records()
        if not weights:
            return 0.0
        return self.total_weight() / len(weights)

    def best_overall_record(self) -> Optional[PersonalRecord]:
        if not self.personal_records:
            return None
        return max(self.personal_records, key=PersonalRecord.overall_key)

    def most_recent_record(self) -> Optional[PersonalRecord]:
        return self.personal_records[0] if self.personal_records else None

    def summary(self) -> dict:
        best = self.best_overall_record()
        recent = self.most_recent_record()
        return {
            "total_records": self.total_records(),
            "total_weight": round(self.total_weight(), 2),
            "average_weight": round(self.average_weight(), 2),
            "best_overall": best.to_dict() if best else None,
            "most_recent": recent.to_dict() if recent else None,
            "last_sync_date": self.last_sync_date.isoformat() if self.last_sync_date else None,
        }

    # remote synchronisation

    def _remote_active(self) -> bool:
        if self.remote is None:
            return False
        return self.session is None or self.session.is_authenticated

    def _schedule(self, coro: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _push(self, push: Callable[[], Awaitable[None]]) -> None:
        if self._remote_active():
            self._schedule(push())

    async def wait_for_pending(self) -> None:
        """Wait until background pushes and syncs have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _push_records(self) -> None:
        try:
            await self.remote.save_records(list(self.personal_records))
        except Exception as e:  # remote client errors vary by backend
            _LOGGER.warning("Failed to push personal records: %s", e)

    async def _push_custom_lifts(self) -> None:
        try:
            await self.remote.save_custom_lifts(list(self.custom_lifts))
        except Exception as e:  # remote client errors vary by backend
            _LOGGER.warning("Failed to push custom lifts: %s", e)

    def _on_auth_changed(self, authenticated: bool) -> None:
        if authenticated:
            self._schedule(self.sync())
        else:
            self.last_sync_date = None
            self._notify()

    def resync(self) -> None:
        """Run a reconciliation now, in the background if a loop is running."""
        self._schedule(self.sync())

    async def sync(self) -> None:
        """Pull remote records and lifts and merge them into local state."""
        if not self._remote_active():
            _LOGGER.debug("Skipping sync, no active remote session")
            return
        self.is_syncing = True
        self._notify()
        try:
            await asyncio.gather(self._sync_records(), self._sync_custom_lifts())
        finally:
            self.is_syncing = False
            self._notify()

    async def _sync_records(self) -> None:
        try:
            remote_records = await self.remote.load_records()
        except Exception as e:  # remote client errors vary by backend
            _LOGGER.warning("Failed to load remote personal records: %s", e)
            return
        merged = merge_records(self.personal_records, remote_records)
        self.personal_records = merged
        self.repo.save_records(merged)
        self.last_sync_date = datetime.datetime.now()
        _LOGGER.info(
            "Synced personal records: %d remote, %d total", len(remote_records), len(merged)
        )
        self._notify()
        remote_ids = {r.id for r in remote_records}
        if any(r.id not in remote_ids for r in merged):
            await self._push_records()

    async def _sync_custom_lifts(self) -> None:
        try:
            remote_lifts = await self.remote.load_custom_lifts()
        except Exception as e:  # remote client errors vary by backend
            _LOGGER.warning("Failed to load remote custom lifts: %s", e)
            return
        merged = merge_custom_lifts(self.custom_lifts, remote_lifts, self.major_lifts)
        self.custom_lifts = merged
        self.repo.save_custom_lifts(merged)
        self._notify()
        if set(merged) != set(remote_lifts):
            await self._push_custom_lifts()
