"""Queue snapshot: the whole replicated and persisted state.

A snapshot is always handled as one unit. It is never diffed, never
partially saved and never partially published.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .ticket import Ticket


@dataclass(frozen=True)
class RoomConfig:
    """Connection parameters for the room broadcast channel."""

    endpoint: str = ""
    credential: str = ""
    room_id: str = ""

    @property
    def is_complete(self) -> bool:
        """All three fields present. Anything less means local-only mode."""
        return bool(self.endpoint and self.credential and self.room_id)

    def to_dict(self) -> dict[str, str]:
        return {"endpoint": self.endpoint, "credential": self.credential, "roomId": self.room_id}

    @classmethod
    def from_dict(cls, data: Any) -> "RoomConfig | None":
        if not isinstance(data, dict):
            return None
        values = {key: data.get(key, "") for key in ("endpoint", "credential", "roomId")}
        if not all(isinstance(v, str) for v in values.values()):
            return None
        return cls(endpoint=values["endpoint"], credential=values["credential"], room_id=values["roomId"])


@dataclass(frozen=True)
class QueueSnapshot:
    tickets: tuple[Ticket, ...] = field(default_factory=tuple)
    current_number: int | None = None
    last_number: int = 0
    calling_started_at: int | None = None
    room_config: RoomConfig | None = None

    @classmethod
    def empty(cls, *, room_config: RoomConfig | None = None) -> "QueueSnapshot":
        return cls(room_config=room_config)

    @property
    def has_tickets(self) -> bool:
        return bool(self.tickets)

    def with_room_config(self, room_config: RoomConfig | None) -> "QueueSnapshot":
        return replace(self, room_config=room_config)

    def same_queue(self, other: "QueueSnapshot") -> bool:
        """Compare queue state only (room configuration is device-local)."""
        return (
            self.tickets == other.tickets
            and self.current_number == other.current_number
            and self.last_number == other.last_number
            and self.calling_started_at == other.calling_started_at
        )

    def queue_fields(self) -> dict[str, Any]:
        """The replicated part of the snapshot, JSON-ready."""
        return {
            "tickets": [t.to_dict() for t in self.tickets],
            "currentNumber": self.current_number,
            "lastNumber": self.last_number,
            "callingStartedAt": self.calling_started_at,
        }

    def to_storage(self) -> dict[str, Any]:
        data = self.queue_fields()
        data["roomConfig"] = self.room_config.to_dict() if self.room_config is not None else None
        return data
