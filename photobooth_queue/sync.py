from __future__ import annotations

# Room sync channel.
#
# One MQTT topic per room carries two kinds of broadcast messages:
# - `queue-update`: a full snapshot, published after every local mutation
# - `request-sync`: "who has state?", sent once shortly after each connect
#
# Delivery is fire-and-forget. Nothing is buffered while disconnected: the
# local slot already holds the latest state, and peers ask for it again when
# they (re)connect. Ordering and deduplication are left to the receiver.
#
# Inbound messages and status changes are handed to callbacks on the MQTT
# network thread; the controller queues them for its own thread.

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol

from .mqtt_topics import DEFAULT_NAMESPACE, QUEUE_UPDATE, REQUEST_SYNC, room_topic
from .snapshot import QueueSnapshot, RoomConfig

if TYPE_CHECKING:
    from .mqtt_client import MessageHandler, StatusHandler

logger = logging.getLogger(__name__)

DEFAULT_SYNC_DELAY = 0.5


class ConnectionStatus(str, Enum):
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"


class Transport(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def subscribe(self, topic: str) -> None: ...

    def publish(self, topic: str, message: dict[str, Any]) -> None: ...

    def add_handler(self, handler: MessageHandler) -> None: ...

    def add_status_handler(self, handler: StatusHandler) -> None: ...


TransportFactory = Callable[[RoomConfig, str], Transport]
EventHandler = Callable[[str, dict[str, Any]], None]
StatusCallback = Callable[[ConnectionStatus], None]


def mqtt_transport(room_config: RoomConfig, client_id: str) -> Transport:
    # Imported here so the rest of the package works without paho-mqtt installed.
    from .mqtt_client import MqttClient

    return MqttClient.from_endpoint(room_config.endpoint, client_id=client_id, credential=room_config.credential)


@dataclass
class ConnectionHandle:
    """What `SyncChannel.connect` hands back to the caller."""

    room_id: str
    topic: str
    channel: "SyncChannel"

    @property
    def status(self) -> ConnectionStatus:
        return self.channel.status

    def close(self) -> None:
        self.channel.close()


class SyncChannel:
    """Broadcast pub/sub for one room."""

    def __init__(
        self,
        *,
        client_id: str | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        transport_factory: TransportFactory = mqtt_transport,
        sync_delay: float = DEFAULT_SYNC_DELAY,
        on_event: EventHandler | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.client_id = client_id or f"photobooth-{uuid.uuid4().hex[:12]}"
        self.namespace = namespace
        self.sync_delay = sync_delay
        self._transport_factory = transport_factory
        self._on_event = on_event
        self._on_status = on_status

        self._lock = threading.Lock()
        self._status = ConnectionStatus.DISCONNECTED
        self._transport: Transport | None = None
        self._topic: str | None = None
        self._sync_timer: threading.Timer | None = None

    @property
    def status(self) -> ConnectionStatus:
        with self._lock:
            return self._status

    # -------------------- lifecycle --------------------

    def connect(self, room_config: RoomConfig) -> ConnectionHandle | None:
        """Subscribe to the room topic. Returns None when no connection is attempted.

        Failures never raise: they leave the channel DISCONNECTED and the
        device keeps working locally.
        """
        if not room_config.is_complete:
            logger.info("room configuration incomplete, staying in local-only mode")
            return None

        self.close()
        try:
            topic = room_topic(room_config.room_id, self.namespace)
        except ValueError as e:
            logger.warning("cannot join room: %s", e)
            return None

        self._topic = topic
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            transport = self._transport_factory(room_config, self.client_id)
            transport.add_handler(self._handle_message)
            transport.add_status_handler(self._handle_transport_status)
            self._transport = transport
            transport.start()
        except Exception as e:
            logger.warning("could not connect to %s: %s", room_config.endpoint, e)
            self._transport = None
            self._set_status(ConnectionStatus.DISCONNECTED)
            return ConnectionHandle(room_id=room_config.room_id, topic=topic, channel=self)

        logger.info("joining room %s on %s", room_config.room_id, room_config.endpoint)
        return ConnectionHandle(room_id=room_config.room_id, topic=topic, channel=self)

    def close(self) -> None:
        self._cancel_sync_timer()
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                transport.stop()
            except Exception as e:
                logger.warning("error while closing connection: %s", e)
        self._set_status(ConnectionStatus.DISCONNECTED)

    # -------------------- outbound --------------------

    def publish(self, snapshot: QueueSnapshot) -> bool:
        """Broadcast a full snapshot. Dropped silently unless CONNECTED."""
        message = {"type": QUEUE_UPDATE, "sender": self.client_id, **snapshot.queue_fields()}
        return self._send(message)

    def request_sync(self) -> bool:
        return self._send({"type": REQUEST_SYNC, "sender": self.client_id})

    def _send(self, message: dict[str, Any]) -> bool:
        transport = self._transport
        if transport is None or self._topic is None or self.status is not ConnectionStatus.CONNECTED:
            logger.debug("not connected, dropping %s", message.get("type"))
            return False
        try:
            transport.publish(self._topic, message)
        except Exception as e:
            logger.warning("publish of %s failed: %s", message.get("type"), e)
            return False
        return True

    # -------------------- transport callbacks (network thread) --------------------

    def _handle_transport_status(self, connected: bool) -> None:
        if not connected:
            self._cancel_sync_timer()
            self._set_status(ConnectionStatus.DISCONNECTED)
            return

        transport = self._transport
        if transport is None or self._topic is None:
            return
        # Clean sessions lose subscriptions, so subscribe on every connect.
        transport.subscribe(self._topic)
        self._set_status(ConnectionStatus.CONNECTED)
        self._schedule_sync_request()

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        if topic != self._topic:
            return
        if msg.get("sender") == self.client_id:
            return  # our own broadcast echoed back by the broker

        mtype = msg.get("type")
        if mtype not in (QUEUE_UPDATE, REQUEST_SYNC):
            return
        if self._on_event is not None:
            self._on_event(mtype, msg)

    # -------------------- helpers --------------------

    def _schedule_sync_request(self) -> None:
        self._cancel_sync_timer()
        if self.sync_delay <= 0:
            self.request_sync()
            return
        timer = threading.Timer(self.sync_delay, self.request_sync)
        timer.daemon = True
        with self._lock:
            self._sync_timer = timer
        timer.start()

    def _cancel_sync_timer(self) -> None:
        with self._lock:
            timer, self._sync_timer = self._sync_timer, None
        if timer is not None:
            timer.cancel()

    def _set_status(self, status: ConnectionStatus) -> None:
        with self._lock:
            if status is self._status:
                return
            self._status = status
        logger.debug("channel status %s", status.value)
        if self._on_status is not None:
            self._on_status(status)
