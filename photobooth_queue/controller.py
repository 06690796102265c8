from __future__ import annotations

# The queue controller owns the one copy of queue state on this device.
#
# Every change goes through `_commit`, whatever its source:
# - LOCAL   (register / call / complete / skip / reset): persist + publish
# - REMOTE  (snapshot adopted from a peer):               persist only
# - STORAGE (slot rewritten by another local process):    neither
#
# Threading: MQTT callbacks only put events into `_inbox`. The owning thread
# (console loop or Tkinter tick) calls `process_pending()` to apply them, so
# all state changes happen one after another on that thread.

import logging
import queue
import threading
from enum import Enum
from typing import Any, Callable

from .config import resolve_room_config
from .errors import ValidationError
from .mqtt_topics import DEFAULT_NAMESPACE, QUEUE_UPDATE, REQUEST_SYNC
from .persistence import SnapshotSlot
from .reconcile import ReconciliationPolicy, parse_snapshot
from .snapshot import QueueSnapshot, RoomConfig
from .store import TicketStore
from .sync import DEFAULT_SYNC_DELAY, ConnectionStatus, SyncChannel, TransportFactory, mqtt_transport
from .ticket import Ticket, TicketStatus
from .timer import WINDOW_SECONDS, is_overdue, now_ms, remaining_seconds

logger = logging.getLogger(__name__)


class Origin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    STORAGE = "storage"


ChangeListener = Callable[[QueueSnapshot, Origin], None]
StatusListener = Callable[[ConnectionStatus], None]


class QueueController:
    def __init__(
        self,
        *,
        slot: SnapshotSlot,
        room_config: RoomConfig | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        client_id: str | None = None,
        transport_factory: TransportFactory = mqtt_transport,
        sync_delay: float = DEFAULT_SYNC_DELAY,
        clock: Callable[[], int] = now_ms,
        call_window: int = WINDOW_SECONDS,
        allow_concurrent_calls: bool = False,
        watch_storage: bool = True,
    ) -> None:
        self.slot = slot
        self.store = TicketStore(clock=clock, allow_concurrent_calls=allow_concurrent_calls)
        self.call_window = call_window
        self.watch_storage = watch_storage
        self._clock = clock
        self._explicit_room = room_config or RoomConfig()
        self.room_config: RoomConfig | None = None

        self.channel = SyncChannel(
            client_id=client_id,
            namespace=namespace,
            transport_factory=transport_factory,
            sync_delay=sync_delay,
            on_event=self._enqueue_event,
            on_status=self._enqueue_status,
        )

        self._inbox: "queue.Queue[tuple[str, Any]]" = queue.Queue()
        self._lock = threading.RLock()
        self._listeners: list[ChangeListener] = []
        self._status_listeners: list[StatusListener] = []
        self._remote_policy = ReconciliationPolicy()
        self._storage_policy = ReconciliationPolicy(skip_identical=True)

    # -------------------- lifecycle --------------------

    def start(self, *, connect: bool = True) -> None:
        """Restore the stored snapshot, then join the room if one is configured."""
        with self._lock:
            stored = self.slot.load()
            self.store.restore(stored)
            self.room_config = resolve_room_config(self._explicit_room, stored.room_config)
            if self.room_config != stored.room_config:
                self.slot.save(self.state)
            logger.info(
                "restored %d tickets (last number %d)", len(stored.tickets), stored.last_number
            )

        if connect:
            self._connect()

    def stop(self) -> None:
        self.channel.close()

    def join_room(self, room_config: RoomConfig, *, connect: bool = True) -> None:
        """Switch to another room configuration and remember it on this device."""
        with self._lock:
            self._explicit_room = room_config
            self.room_config = room_config
            self.slot.save(self.state)
        if connect:
            self._connect()

    def _connect(self) -> None:
        if self.room_config is None or not self.room_config.is_complete:
            logger.info("no complete room configuration, running local-only")
            return
        self.channel.connect(self.room_config)

    # -------------------- state --------------------

    @property
    def state(self) -> QueueSnapshot:
        with self._lock:
            return self.store.snapshot().with_room_config(self.room_config)

    @property
    def connection_status(self) -> ConnectionStatus | None:
        """None in local-only mode."""
        if self.room_config is None or not self.room_config.is_complete:
            return None
        return self.channel.status

    def remaining_seconds(self, *, now: int | None = None) -> int | None:
        return remaining_seconds(
            self.store.calling_started_at,
            now=self._clock() if now is None else now,
            window_seconds=self.call_window,
        )

    def is_overdue(self, *, now: int | None = None) -> bool:
        return is_overdue(
            self.store.calling_started_at,
            now=self._clock() if now is None else now,
            window_seconds=self.call_window,
        )

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    # -------------------- local mutations --------------------

    def register(self, name: str, contact: str) -> int:
        """Register a visitor and return their ticket number.

        Raises:
            ValidationError: if name or contact is blank.
        """
        name = (name or "").strip()
        contact = (contact or "").strip()
        if not name:
            raise ValidationError("name_required", "name is required")
        if not contact:
            raise ValidationError("contact_required", "contact is required")

        with self._lock:
            ticket = self.store.register(name, contact)
            self._commit(Origin.LOCAL)
        return ticket.number

    def call_next(self) -> Ticket | None:
        with self._lock:
            ticket = self.store.call_next()
            if ticket is not None:
                self._commit(Origin.LOCAL)
        return ticket

    def call(self, ticket_id: str) -> bool:
        return self.set_status(ticket_id, TicketStatus.CALLING)

    def complete(self, ticket_id: str) -> bool:
        return self.set_status(ticket_id, TicketStatus.COMPLETED)

    def skip(self, ticket_id: str) -> bool:
        return self.set_status(ticket_id, TicketStatus.SKIPPED)

    def set_status(self, ticket_id: str, status: TicketStatus) -> bool:
        with self._lock:
            changed = self.store.set_status(ticket_id, status)
            if changed:
                self._commit(Origin.LOCAL)
        return changed

    def reset(self) -> None:
        """Clear the whole queue. Confirmation is the caller's job."""
        with self._lock:
            self.store.reset()
            self._commit(Origin.LOCAL)
        logger.info("queue reset")

    # -------------------- inbound events --------------------

    def process_pending(self) -> int:
        """Apply everything received since the last call. Returns the number of events handled."""
        handled = 0
        while True:
            try:
                kind, payload = self._inbox.get_nowait()
            except queue.Empty:
                break
            handled += 1
            if kind == "status":
                self._notify_status(payload)
            elif kind == QUEUE_UPDATE:
                self.apply_remote(payload)
            elif kind == REQUEST_SYNC:
                self._answer_sync_request()

        if self.watch_storage:
            handled += self._check_storage()
        return handled

    def apply_remote(self, message: Any) -> bool:
        """Adopt a peer snapshot if it is well formed. Never re-published."""
        with self._lock:
            adopted = self._remote_policy.decide(parse_snapshot(message), self.state)
            if adopted is None:
                return False
            self.store.restore(adopted)
            self._commit(Origin.REMOTE)
        return True

    def _answer_sync_request(self) -> None:
        snapshot = self.state
        if not snapshot.has_tickets:
            return
        self.channel.publish(snapshot)

    def _check_storage(self) -> int:
        with self._lock:
            adopted = self._storage_policy.decide(self.slot.read_external_change(), self.state)
            if adopted is None:
                return 0
            self.store.restore(adopted)
            self._commit(Origin.STORAGE)
        return 1

    # -------------------- network thread --------------------

    def _enqueue_event(self, kind: str, message: dict[str, Any]) -> None:
        self._inbox.put((kind, message))

    def _enqueue_status(self, status: ConnectionStatus) -> None:
        self._inbox.put(("status", status))

    # -------------------- helpers --------------------

    def _commit(self, origin: Origin) -> None:
        snapshot = self.state
        if origin is not Origin.STORAGE:
            self.slot.save(snapshot)
        if origin is Origin.LOCAL:
            self.channel.publish(snapshot)
        for listener in list(self._listeners):
            try:
                listener(snapshot, origin)
            except Exception:
                logger.exception("change listener failed")

    def _notify_status(self, status: ConnectionStatus) -> None:
        for listener in list(self._status_listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("status listener failed")
