import asyncio
import datetime
import logging
import os
import sys
import uuid

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from auth import AuthSession
from db import RecordRepository
from models import PersonalRecord
from record_service import PersonalRecordService, merge_custom_lifts, merge_records
from remote_store import RemoteStoreError, SQLiteDocumentStore


def day(n: int) -> datetime.datetime:
    return datetime.datetime(2024, 1, 1) + datetime.timedelta(days=n)


def rec(n: int, value: float = 100.0, lift: str = "Deadlift", record_id: int | None = None) -> PersonalRecord:
    rid = uuid.UUID(int=record_id if record_id is not None else n)
    return PersonalRecord(id=rid, lift_name=lift, value=value, date=day(n))


class FakeRemote:
    def __init__(self, records=None, lifts=None) -> None:
        self.records = list(records or [])
        self.lifts = list(lifts or [])
        self.fail_loads = False
        self.fail_saves = False
        self.saved_records: list[list[PersonalRecord]] = []
        self.saved_lifts: list[list[str]] = []

    async def load_records(self):
        await asyncio.sleep(0)
        if self.fail_loads:
            raise RemoteStoreError("offline")
        return list(self.records)

    async def save_records(self, records):
        if self.fail_saves:
            raise RemoteStoreError("offline")
        self.records = list(records)
        self.saved_records.append(list(records))

    async def load_custom_lifts(self):
        await asyncio.sleep(0)
        if self.fail_loads:
            raise RemoteStoreError("offline")
        return list(self.lifts)

    async def save_custom_lifts(self, lifts):
        if self.fail_saves:
            raise RemoteStoreError("offline")
        self.lifts = list(lifts)
        self.saved_lifts.append(list(lifts))


def make_repo(tmp_path, records=(), lifts=()) -> RecordRepository:
    repo = RecordRepository(str(tmp_path / "local.db"))
    repo.save_records(list(records))
    repo.save_custom_lifts(list(lifts))
    return repo


def test_merge_prefers_remote_and_keeps_local_only():
    local = [rec(1), rec(2)]
    updated = rec(2, value=150.0)
    remote = [updated, rec(3)]
    merged = merge_records(local, remote)
    assert {r.id: r for r in merged} == {
        uuid.UUID(int=1): rec(1),
        uuid.UUID(int=2): updated,
        uuid.UUID(int=3): rec(3),
    }
    assert [r.id.int for r in merged] == [3, 2, 1]


def test_merge_custom_lifts_is_a_union():
    merged = merge_custom_lifts(["A", "B"], ["B", "C", "C"])
    assert sorted(merged) == ["A", "B", "C"]
    assert len(merged) == len(set(merged))


@pytest.mark.asyncio
async def test_sync_on_sign_in(tmp_path):
    repo = make_repo(tmp_path, [rec(1), rec(2)], ["Sled Push"])
    remote = FakeRemote([rec(2, value=150.0), rec(3)], ["Yoke Walk", "Sled Push"])
    session = AuthSession()
    service = PersonalRecordService(repo, remote, session)
    assert service.last_sync_date is None

    session.sign_in("user-1")
    await service.wait_for_pending()

    values = {r.id.int: r.value for r in service.get_all_records()}
    assert values == {1: 100.0, 2: 150.0, 3: 100.0}
    assert [r.id.int for r in service.get_all_records()] == [3, 2, 1]
    assert sorted(service.custom_lifts) == ["Sled Push", "Yoke Walk"]
    assert service.last_sync_date is not None
    assert service.is_syncing is False
    assert RecordRepository(repo._db_path).load_records() == service.get_all_records()
    # Local-only record 1 was uploaded after merging.
    assert {r.id.int for r in remote.records} == {1, 2, 3}


@pytest.mark.asyncio
async def test_sync_at_start_with_existing_session(tmp_path):
    repo = make_repo(tmp_path, [rec(1)])
    remote = FakeRemote([rec(5)])
    service = PersonalRecordService(repo, remote, AuthSession("user-1"))
    await service.wait_for_pending()
    assert [r.id.int for r in service.get_all_records()] == [5, 1]


def test_sync_at_start_without_event_loop(tmp_path):
    repo = make_repo(tmp_path, [rec(1)])
    remote = FakeRemote([rec(5)], ["Yoke Walk"])
    service = PersonalRecordService(repo, remote, AuthSession("user-1"))
    assert [r.id.int for r in service.get_all_records()] == [5, 1]
    assert service.custom_lifts == ["Yoke Walk"]


@pytest.mark.asyncio
async def test_remote_failure_leaves_local_state(tmp_path, caplog):
    repo = make_repo(tmp_path, [rec(1)], ["Sled Push"])
    remote = FakeRemote([rec(3)], ["Yoke Walk"])
    remote.fail_loads = True
    service = PersonalRecordService(repo, remote, AuthSession())
    with caplog.at_level(logging.WARNING, logger="record_service"):
        service.session.sign_in("user-1")
        await service.wait_for_pending()
    assert [r.id.int for r in service.get_all_records()] == [1]
    assert service.custom_lifts == ["Sled Push"]
    assert service.last_sync_date is None
    assert "Failed to load remote personal records" in caplog.text

    # Manual resync picks up once the remote is reachable again.
    remote.fail_loads = False
    service.resync()
    await service.wait_for_pending()
    assert [r.id.int for r in service.get_all_records()] == [3, 1]


@pytest.mark.asyncio
async def test_mutations_push_when_signed_in(tmp_path):
    repo = make_repo(tmp_path)
    remote = FakeRemote()
    session = AuthSession()
    service = PersonalRecordService(repo, remote, session)

    service.add_record(rec(1))
    await service.wait_for_pending()
    assert remote.saved_records == []

    session.sign_in("user-1")
    await service.wait_for_pending()
    service.add_record(rec(2, lift="Back Squat"))
    service.add_custom_lift("Sled Push")
    await service.wait_for_pending()
    assert {r.id.int for r in remote.records} == {1, 2}
    assert remote.lifts == ["Sled Push"]


@pytest.mark.asyncio
async def test_push_failure_is_logged(tmp_path, caplog):
    repo = make_repo(tmp_path)
    remote = FakeRemote()
    remote.fail_saves = True
    service = PersonalRecordService(repo, remote, AuthSession("user-1"))
    await service.wait_for_pending()
    with caplog.at_level(logging.WARNING, logger="record_service"):
        service.add_record(rec(1))
        await service.wait_for_pending()
    assert service.get_all_records() == [rec(1)]
    assert "Failed to push personal records" in caplog.text


@pytest.mark.asyncio
async def test_sign_out_clears_last_sync_only(tmp_path):
    repo = make_repo(tmp_path, [rec(1)])
    remote = FakeRemote([rec(2)])
    session = AuthSession("user-1")
    service = PersonalRecordService(repo, remote, session)
    await service.wait_for_pending()
    assert service.last_sync_date is not None

    session.sign_out()
    assert service.last_sync_date is None
    assert [r.id.int for r in service.get_all_records()] == [2, 1]

    service.add_record(rec(3, lift="Snatch"))
    await service.wait_for_pending()
    assert {r.id.int for r in remote.records} == {1, 2}


@pytest.mark.asyncio
async def test_document_store_round_trip(tmp_path):
    session = AuthSession()
    store = SQLiteDocumentStore(str(tmp_path / "remote.db"), session)
    with pytest.raises(RemoteStoreError):
        await store.load_records()

    session.sign_in("user-1")
    assert await store.load_records() == []
    assert await store.load_custom_lifts() == []

    await store.save_records([rec(1), rec(2)])
    await store.save_custom_lifts(["Sled Push"])
    assert [r.id.int for r in await store.load_records()] == [2, 1]
    assert await store.load_custom_lifts() == ["Sled Push"]

    # Saving replaces the collection.
    await store.save_records([rec(2)])
    assert [r.id.int for r in await store.load_records()] == [2]

    # Collections are scoped per user.
    session.sign_in("user-2")
    assert await store.load_records() == []


@pytest.mark.asyncio
async def test_document_store_skips_bad_documents(tmp_path, caplog):
    session = AuthSession("user-1")
    store = SQLiteDocumentStore(str(tmp_path / "remote.db"), session)
    await store.save_records([rec(1)])
    await store.execute(
        "INSERT INTO documents (user_id, collection, doc_id, data, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?);",
        ("user-1", "personal_records", "bad", "{}", "2025-01-01", "2025-01-01"),
    )
    with caplog.at_level(logging.WARNING, logger="remote_store"):
        records = await store.load_records()
    assert [r.id.int for r in records] == [1]
    assert "Skipping undecodable record document bad" in caplog.text


@pytest.mark.asyncio
async def test_service_syncs_through_document_store(tmp_path):
    remote_path = str(tmp_path / "remote.db")
    first = PersonalRecordService(
        RecordRepository(str(tmp_path / "phone.db")),
        SQLiteDocumentStore(remote_path, AuthSession("user-1")),
        None,
    )
    first.add_record(rec(1))
    first.add_custom_lift("Sled Push")
    await first.wait_for_pending()

    session = AuthSession()
    second = PersonalRecordService(
        RecordRepository(str(tmp_path / "tablet.db")),
        SQLiteDocumentStore(remote_path, session),
        session,
    )
    second.add_record(rec(2, lift="Back Squat"))
    session.sign_in("user-1")
    await second.wait_for_pending()
    assert {r.id.int for r in second.get_all_records()} == {1, 2}
    assert second.custom_lifts == ["Sled Push"]


def test_merge_custom_lifts_leaves_out_catalog_names():
    merged = merge_custom_lifts(["Sled Push"], ["Bench Press", "Yoke Walk"], ["Bench Press"])
    assert merged == ["Sled Push", "Yoke Walk"]


@pytest.mark.asyncio
async def test_remote_catalog_names_stay_out_of_registry(tmp_path):
    repo = make_repo(tmp_path)
    remote = FakeRemote([], ["Bench Press", "Sled Push"])
    service = PersonalRecordService(repo, remote, AuthSession("user-1"))
    await service.wait_for_pending()
    assert service.custom_lifts == ["Sled Push"]
    assert service.get_all_lifts().count("Bench Press") == 1
    assert RecordRepository(repo._db_path).load_custom_lifts() == ["Sled Push"]
    # The cleaned list is written back so the remote converges.
    assert remote.lifts == ["Sled Push"]
