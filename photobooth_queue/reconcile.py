"""Reconciliation of inbound snapshots.

Policy: last writer wins. Any well-formed snapshot that arrives replaces the
local queue wholesale. There is no version or clock, so two operators acting
at the same moment on two devices can overwrite each other; every viewer ends
up with whichever snapshot it processed last. Malformed payloads are dropped
without touching local state.

Unlike loading from disk, inbound parsing is strict: one bad ticket makes the
whole payload malformed, because a partial remote queue must never replace a
complete local one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .snapshot import QueueSnapshot
from .ticket import Ticket

logger = logging.getLogger(__name__)


def parse_snapshot(message: Any) -> QueueSnapshot | None:
    """Decode the queue fields of a `queue-update` message (or storage payload)."""
    if not isinstance(message, dict):
        return None

    raw_tickets = message.get("tickets")
    if not isinstance(raw_tickets, list):
        return None
    tickets: list[Ticket] = []
    for item in raw_tickets:
        ticket = Ticket.from_dict(item)
        if ticket is None:
            return None
        tickets.append(ticket)

    last_number = message.get("lastNumber")
    if not _is_count(last_number):
        return None
    # Numbers are never reissued, so the counter cannot sit behind a ticket.
    highest = max((t.number for t in tickets), default=0)
    if last_number < highest:
        logger.warning("inbound lastNumber %s is behind ticket #%s, raising it", last_number, highest)
        last_number = highest

    current_number = message.get("currentNumber")
    calling_started_at = message.get("callingStartedAt")
    if current_number is not None and not _is_count(current_number):
        return None
    if calling_started_at is not None and not _is_count(calling_started_at):
        return None

    return QueueSnapshot(
        tickets=tuple(tickets),
        current_number=current_number,
        last_number=last_number,
        calling_started_at=calling_started_at,
    )


@dataclass(frozen=True)
class ReconciliationPolicy:
    """Decides whether an inbound snapshot becomes the new local truth.

    `skip_identical` is used for changes noticed in the shared storage slot:
    adopting a value equal to the current state would only feed back into
    another write.
    """

    skip_identical: bool = False

    def decide(self, incoming: QueueSnapshot | None, current: QueueSnapshot) -> QueueSnapshot | None:
        """Return the snapshot to adopt, or None to keep local state.

        The returned snapshot keeps the local room configuration.
        """
        if incoming is None:
            logger.debug("discarding malformed snapshot")
            return None
        if self.skip_identical and incoming.same_queue(current):
            return None
        return incoming.with_room_config(current.room_config)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
