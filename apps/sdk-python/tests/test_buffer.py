from __future__ import annotations

import json
from pathlib import Path

import pytest

from trace_sdk.buffer import OfflineQueue
from trace_sdk.errors import PersistenceError
from trace_sdk.models import OperationMethod, QueuedOperation
from trace_sdk.storage import SlotStore

from conftest import make_sample


def _queue(path: Path) -> OfflineQueue:
    queue = OfflineQueue(SlotStore(str(path)))
    queue.load_from_storage()
    return queue


def test_enqueue_persists_snapshot_before_returning(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    queue = _queue(path)
    queue.enqueue(QueuedOperation.create(make_sample(100)))

    document = json.loads(path.read_text())
    assert len(document["offline_queue"]) == 1
    assert document["offline_queue"][0]["payload"]["timestamp"] == 100
    assert document["offline_queue"][0]["payload"]["deviceId"] == "device-1"


def test_restart_preserves_order_and_attempts(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    queue = _queue(path)
    for ts in (100, 101, 102):
        queue.enqueue(QueuedOperation.create(make_sample(ts)))
    queue.enqueue(QueuedOperation.delete(1700000000000))
    queue.mark_front_failed()
    queue.mark_front_failed()

    restarted = _queue(path)
    ops = restarted.snapshot()
    assert [op.method for op in ops] == [OperationMethod.CREATE] * 3 + [OperationMethod.DELETE]
    assert [op.payload.timestamp for op in ops[:3]] == [100, 101, 102]
    assert ops[3].payload.older_than == 1700000000000
    assert ops[0].attempts == 2
    assert ops[1].attempts == 0


def test_remove_front_only_removes_the_head(tmp_path: Path) -> None:
    queue = _queue(tmp_path / "queue.json")
    first = QueuedOperation.create(make_sample(1))
    second = QueuedOperation.create(make_sample(2))
    queue.enqueue(first)
    queue.enqueue(second)

    removed = queue.remove_front(first.id)

    assert removed.id == first.id
    assert queue.peek_front().id == second.id
    with pytest.raises(RuntimeError):
        queue.remove_front(first.id)


def test_corrupt_snapshot_starts_empty_and_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    path.write_text("{not json", encoding="utf-8")

    queue = OfflineQueue(SlotStore(str(path)))
    assert queue.load_from_storage() == 0
    assert len(queue) == 0
    assert queue.last_load_error
    assert (tmp_path / "queue.json.corrupt").exists()

    queue.enqueue(QueuedOperation.create(make_sample(5)))
    assert len(_queue(path)) == 1


def test_invalid_record_is_treated_as_corruption(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    path.write_text(json.dumps({"offline_queue": [{"method": "create", "payload": {"latitude": 400}}]}))

    queue = OfflineQueue(SlotStore(str(path)))
    assert queue.load_from_storage() == 0
    assert queue.last_load_error


def test_enqueue_surfaces_persistence_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SlotStore(str(tmp_path / "queue.json"))
    queue = OfflineQueue(store)

    def broken(values):
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "write_many", broken)

    with pytest.raises(PersistenceError):
        queue.enqueue(QueuedOperation.create(make_sample(1)))
    assert len(queue) == 0


def test_dead_letter_front_moves_operation(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    queue = _queue(path)
    op = QueuedOperation.create(make_sample(1))
    queue.enqueue(op)

    queue.dead_letter_front(op.id)

    restarted = _queue(path)
    assert len(restarted) == 0
    assert [dead.id for dead in restarted.dead_letters()] == [op.id]


def test_in_memory_store_needs_no_path() -> None:
    queue = OfflineQueue(SlotStore())
    queue.enqueue(QueuedOperation.create(make_sample(1)))
    assert len(queue) == 1


def test_undecodable_snapshot_is_quarantined(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    queue = OfflineQueue(SlotStore(str(path)))

    assert queue.load_from_storage() == 0
    assert "UTF-8" in queue.last_load_error
    assert (tmp_path / "queue.json.corrupt").read_bytes() == b"\xff\xfe\x00garbage"
    assert not path.exists()


def test_first_mutation_keeps_persisted_operations(tmp_path: Path) -> None:
    path = tmp_path / "queue.json"
    seeded = _queue(path)
    for ts in (1, 2):
        seeded.enqueue(QueuedOperation.create(make_sample(ts)))

    fresh = OfflineQueue(SlotStore(str(path)))
    fresh.enqueue(QueuedOperation.create(make_sample(3)))

    assert [op.payload.timestamp for op in fresh.snapshot()] == [1, 2, 3]
    assert [op.payload.timestamp for op in _queue(path).snapshot()] == [1, 2, 3]
