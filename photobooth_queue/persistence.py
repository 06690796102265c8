"""Local durable snapshot slot.

One JSON file per storage key inside a storage directory:

    <storage_dir>/fluctus_queue_data.json
    {"tickets": [...], "currentNumber": 3, "lastNumber": 7,
     "callingStartedAt": 1718000000000, "roomConfig": {...} | null}

This is cold-start recovery for one device, not a sync mechanism. Loading is
forgiving: each field that is missing or malformed falls back to its default
instead of failing the whole load.

Another local process may share the same slot (e.g. a display window and an
operator console on one machine). `read_external_change()` lets the owner
notice when the file was rewritten by someone else.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .snapshot import QueueSnapshot, RoomConfig
from .ticket import Ticket

logger = logging.getLogger(__name__)

STORAGE_KEY = "fluctus_queue_data"


class SnapshotSlot:
    """Single-writer JSON slot holding the complete queue snapshot."""

    def __init__(self, storage_dir: str | Path, *, key: str = STORAGE_KEY) -> None:
        self.path = Path(storage_dir) / f"{key}.json"
        # Last text this process wrote or read; anything else on disk came from elsewhere.
        self._last_seen: str | None = None

    def save(self, snapshot: QueueSnapshot) -> bool:
        """Write the snapshot atomically. Failures are logged, never raised."""
        text = json.dumps(snapshot.to_storage(), separators=(",", ":"), ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning("could not save snapshot to %s: %s", self.path, e)
            return False
        self._last_seen = text
        return True

    def load(self) -> QueueSnapshot:
        """Read the slot, falling back to an empty snapshot where needed."""
        text = self._read_text()
        if text is None:
            return QueueSnapshot.empty()
        self._last_seen = text
        return decode_stored(text)

    def read_external_change(self) -> QueueSnapshot | None:
        """Return the stored snapshot if another process rewrote the slot."""
        text = self._read_text()
        if text is None or text == self._last_seen:
            return None
        self._last_seen = text
        return decode_stored(text)

    def _read_text(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("could not read snapshot from %s: %s", self.path, e)
            return None


def decode_stored(text: str) -> QueueSnapshot:
    """Decode stored JSON field by field."""
    try:
        data = json.loads(text)
    except ValueError:
        logger.warning("stored snapshot is not valid JSON, starting with an empty queue")
        return QueueSnapshot.empty()
    if not isinstance(data, dict):
        logger.warning("stored snapshot is not an object, starting with an empty queue")
        return QueueSnapshot.empty()

    tickets = _decode_tickets(data.get("tickets"))
    last_number = _optional_int(data.get("lastNumber"), "lastNumber") or 0
    # The counter must never fall behind an issued number.
    highest = max((t.number for t in tickets), default=0)
    if last_number < highest:
        logger.warning("stored lastNumber %s is behind ticket #%s, raising it", last_number, highest)
        last_number = highest

    room_raw = data.get("roomConfig")
    room_config = RoomConfig.from_dict(room_raw) if room_raw is not None else None
    if room_raw is not None and room_config is None:
        logger.warning("ignoring malformed stored roomConfig")

    return QueueSnapshot(
        tickets=tuple(tickets),
        current_number=_optional_int(data.get("currentNumber"), "currentNumber"),
        last_number=last_number,
        calling_started_at=_optional_int(data.get("callingStartedAt"), "callingStartedAt"),
        room_config=room_config,
    )


def _decode_tickets(raw: Any) -> list[Ticket]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("stored tickets are not a list, ignoring them")
        return []

    tickets: list[Ticket] = []
    seen: set[str] = set()
    for item in raw:
        ticket = Ticket.from_dict(item)
        if ticket is None:
            logger.warning("dropping malformed stored ticket: %r", item)
            continue
        if ticket.id in seen:
            continue
        seen.add(ticket.id)
        tickets.append(ticket)
    return tickets


def _optional_int(value: Any, field_name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    logger.warning("ignoring malformed stored %s: %r", field_name, value)
    return None
