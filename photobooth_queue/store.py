from __future__ import annotations

# The Ticket Store is the in-memory queue of one device.
#
# It is pure logic (no I/O, no MQTT) so it can be unit tested directly. The
# controller owns one store, persists and publishes after each change, and
# replaces the store's contents wholesale when a peer snapshot is adopted.

from typing import Callable

from .sequence import SequenceAllocator
from .snapshot import QueueSnapshot
from .ticket import Ticket, TicketStatus, can_transition
from .timer import now_ms


class TicketStore:
    """Tickets, the "now serving" number and the call start time."""

    def __init__(
        self,
        *,
        clock: Callable[[], int] = now_ms,
        allow_concurrent_calls: bool = False,
    ) -> None:
        self._clock = clock
        self._allow_concurrent_calls = allow_concurrent_calls
        self._tickets: list[Ticket] = []  # insertion order
        self._sequence = SequenceAllocator()
        self.current_number: int | None = None
        self.calling_started_at: int | None = None

    @property
    def last_number(self) -> int:
        return self._sequence.last_number

    @property
    def tickets(self) -> tuple[Ticket, ...]:
        return tuple(self._tickets)

    # -------------------- mutations --------------------

    def register(self, name: str, contact: str) -> Ticket:
        """Append a new WAITING ticket with the next number.

        Input validation happens before this call; the store accepts whatever
        it is given.
        """
        number = self._sequence.next()
        ticket = Ticket.create(number=number, name=name, contact=contact, created_at=self._clock())
        self._tickets.append(ticket)
        return ticket

    def set_status(self, ticket_id: str, new_status: TicketStatus) -> bool:
        """Move a ticket to `new_status`.

        Returns False (and changes nothing) for an unknown id, an illegal
        transition, or a second call while another ticket is being called.
        """
        index = self._index_of(ticket_id)
        if index is None:
            return False

        ticket = self._tickets[index]
        if not can_transition(ticket.status, new_status):
            return False

        if new_status is TicketStatus.CALLING:
            if not self._allow_concurrent_calls and self.calling():
                return False
            self._tickets[index] = ticket.with_status(new_status)
            self.current_number = ticket.number
            self.calling_started_at = self._clock()
            return True

        self._tickets[index] = ticket.with_status(new_status)
        if ticket.number == self.current_number:
            # Countdown stops; the number stays up as "last called".
            self.calling_started_at = None
        return True

    def call_next(self) -> Ticket | None:
        """Call the waiting ticket with the lowest number."""
        waiting = self.waiting()
        if not waiting:
            return None
        ticket = waiting[0]
        if not self.set_status(ticket.id, TicketStatus.CALLING):
            return None
        return self.find(ticket.id)

    def reset(self) -> None:
        self._tickets = []
        self._sequence.reset()
        self.current_number = None
        self.calling_started_at = None

    # -------------------- snapshots --------------------

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(
            tickets=tuple(self._tickets),
            current_number=self.current_number,
            last_number=self._sequence.last_number,
            calling_started_at=self.calling_started_at,
        )

    def restore(self, snapshot: QueueSnapshot) -> None:
        """Replace everything with the contents of `snapshot`."""
        self._tickets = list(snapshot.tickets)
        self._sequence.restore(snapshot.last_number)
        self.current_number = snapshot.current_number
        self.calling_started_at = snapshot.calling_started_at

    # -------------------- queries --------------------

    def find(self, ticket_id: str) -> Ticket | None:
        index = self._index_of(ticket_id)
        return self._tickets[index] if index is not None else None

    def find_by_number(self, number: int) -> Ticket | None:
        for t in self._tickets:
            if t.number == number:
                return t
        return None

    def waiting(self) -> list[Ticket]:
        return sorted(self._with_status(TicketStatus.WAITING), key=lambda t: t.number)

    def waiting_count(self) -> int:
        return len(self._with_status(TicketStatus.WAITING))

    def next_up(self, limit: int = 5) -> list[Ticket]:
        return self.waiting()[:limit]

    def calling(self) -> list[Ticket]:
        # Most recent first. Status changes carry no timestamp of their own,
        # so the ticket number stands in for call order.
        return sorted(self._with_status(TicketStatus.CALLING), key=lambda t: t.number, reverse=True)

    def completed(self, limit: int | None = 15) -> list[Ticket]:
        done = sorted(self._with_status(TicketStatus.COMPLETED), key=lambda t: t.number, reverse=True)
        return done if limit is None else done[:limit]

    def skipped(self) -> list[Ticket]:
        return sorted(self._with_status(TicketStatus.SKIPPED), key=lambda t: t.number)

    def _with_status(self, status: TicketStatus) -> list[Ticket]:
        return [t for t in self._tickets if t.status is status]

    def _index_of(self, ticket_id: str) -> int | None:
        for i, t in enumerate(self._tickets):
            if t.id == ticket_id:
                return i
        return None
