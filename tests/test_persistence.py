import json

from photobooth_queue.persistence import STORAGE_KEY, SnapshotSlot
from photobooth_queue.snapshot import QueueSnapshot, RoomConfig
from photobooth_queue.store import TicketStore
from photobooth_queue.ticket import TicketStatus


def _sample_snapshot():
    s = TicketStore()
    a = s.register("Alice", "081")
    s.register("Bob", "082")
    s.register("Carol", "083")
    s.call_next()
    s.set_status(a.id, TicketStatus.COMPLETED)
    s.call_next()
    return s.snapshot()


def test_round_trip_without_room_config(tmp_path):
    slot = SnapshotSlot(tmp_path)
    snap = _sample_snapshot()
    assert slot.save(snap)
    assert SnapshotSlot(tmp_path).load() == snap


def test_round_trip_with_room_config(tmp_path):
    slot = SnapshotSlot(tmp_path)
    room = RoomConfig(endpoint="mqtts://broker:8883", credential="u:p", room_id="fair")
    snap = _sample_snapshot().with_room_config(room)
    slot.save(snap)
    assert SnapshotSlot(tmp_path).load() == snap


def test_slot_uses_fixed_key(tmp_path):
    SnapshotSlot(tmp_path).save(QueueSnapshot.empty())
    assert (tmp_path / f"{STORAGE_KEY}.json").exists()


def test_missing_file_loads_empty(tmp_path):
    assert SnapshotSlot(tmp_path / "nowhere").load() == QueueSnapshot.empty()


def test_garbage_loads_empty(tmp_path):
    (tmp_path / f"{STORAGE_KEY}.json").write_text("{not json", encoding="utf-8")
    assert SnapshotSlot(tmp_path).load() == QueueSnapshot.empty()


def test_fields_fall_back_individually(tmp_path):
    good = _sample_snapshot()
    data = good.to_storage()
    data["tickets"].append({"id": "broken", "number": "seven"})
    data["currentNumber"] = "x"
    data["callingStartedAt"] = None
    data["roomConfig"] = ["not", "a", "dict"]
    (tmp_path / f"{STORAGE_KEY}.json").write_text(json.dumps(data), encoding="utf-8")

    loaded = SnapshotSlot(tmp_path).load()
    assert loaded.tickets == good.tickets
    assert loaded.last_number == 3
    assert loaded.current_number is None
    assert loaded.calling_started_at is None
    assert loaded.room_config is None


def test_missing_last_number_is_raised_to_highest_ticket(tmp_path):
    data = _sample_snapshot().to_storage()
    del data["lastNumber"]
    (tmp_path / f"{STORAGE_KEY}.json").write_text(json.dumps(data), encoding="utf-8")
    assert SnapshotSlot(tmp_path).load().last_number == 3


def test_external_change_detection(tmp_path):
    mine = SnapshotSlot(tmp_path)
    other = SnapshotSlot(tmp_path)
    mine.save(QueueSnapshot.empty())
    assert mine.read_external_change() is None

    snap = _sample_snapshot()
    other.save(snap)
    assert mine.read_external_change() == snap
    # Reported once only.
    assert mine.read_external_change() is None
