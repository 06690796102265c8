from __future__ import annotations

# Ticket model.
#
# A ticket is one visitor's place in the queue. Everything but `status` is
# fixed at registration. Timestamps are epoch milliseconds so snapshots stay
# plain JSON on disk and on the wire.

import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class TicketStatus(str, Enum):
    WAITING = "WAITING"
    CALLING = "CALLING"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


# Allowed status changes. COMPLETED and SKIPPED are terminal.
TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.WAITING: frozenset({TicketStatus.CALLING}),
    TicketStatus.CALLING: frozenset({TicketStatus.COMPLETED, TicketStatus.SKIPPED}),
    TicketStatus.COMPLETED: frozenset(),
    TicketStatus.SKIPPED: frozenset(),
}


def can_transition(current: TicketStatus, new: TicketStatus) -> bool:
    return new in TRANSITIONS[current]


@dataclass(frozen=True)
class Ticket:
    id: str
    number: int
    name: str
    contact: str
    created_at: int
    status: TicketStatus = TicketStatus.WAITING

    @classmethod
    def create(cls, *, number: int, name: str, contact: str, created_at: int) -> "Ticket":
        return cls(id=str(uuid.uuid4()), number=number, name=name, contact=contact, created_at=created_at)

    def with_status(self, status: TicketStatus) -> "Ticket":
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "name": self.name,
            "contact": self.contact,
            "createdAt": self.created_at,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Ticket | None":
        """Decode one ticket, returning None if any field is missing or has the wrong type."""
        if not isinstance(data, dict):
            return None

        ticket_id = data.get("id")
        number = data.get("number")
        name = data.get("name")
        contact = data.get("contact")
        created_at = data.get("createdAt")
        status_raw = data.get("status")

        if not isinstance(ticket_id, str) or not ticket_id:
            return None
        if not _is_int(number) or number < 1:
            return None
        if not isinstance(name, str) or not isinstance(contact, str):
            return None
        if not _is_int(created_at):
            return None
        try:
            status = TicketStatus(status_raw)
        except ValueError:
            return None

        return cls(
            id=ticket_id,
            number=number,
            name=name,
            contact=contact,
            created_at=created_at,
            status=status,
        )


def _is_int(value: Any) -> bool:
    # bool is an int subclass; JSON true/false is never a valid number here.
    return isinstance(value, int) and not isinstance(value, bool)
