"""Small MQTT helper built on top of paho-mqtt.

Why this exists:
- paho-mqtt is callback-based and reports connection changes through several
  different callbacks.
- The sync layer only wants three things: JSON in, JSON out, and a simple
  "connected yes/no" signal.

Design:
- `MqttClient` manages the connection and paho's background network loop.
- Connecting is asynchronous (`connect_async` + `loop_start`), so a broker
  that is down never blocks or raises; paho keeps retrying with back-off.
- Handlers run on paho's network thread. They must not touch UI or queue
  state directly.

QoS is kept at 0: delivery is best effort by design.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]
StatusHandler = Callable[[bool], None]

_DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883, "ws": 80, "wss": 443}


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int
    transport: str = "tcp"  # "tcp" or "websockets"
    tls: bool = False
    path: str | None = None


def parse_endpoint(endpoint: str) -> Endpoint:
    """Parse `mqtt://host:port`, `mqtts://`, `ws://`, `wss://` or bare `host[:port]`."""
    text = endpoint.strip()
    if not text:
        raise ValueError("endpoint required")
    if "://" not in text:
        text = f"mqtt://{text}"

    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValueError(f"unsupported endpoint scheme: {scheme}")
    if not parts.hostname:
        raise ValueError(f"endpoint has no host: {endpoint}")

    websockets = scheme in ("ws", "wss")
    return Endpoint(
        host=parts.hostname,
        port=parts.port or _DEFAULT_PORTS[scheme],
        transport="websockets" if websockets else "tcp",
        tls=scheme in ("mqtts", "ssl", "wss"),
        path=(parts.path or "/mqtt") if websockets else None,
    )


def split_credential(credential: str) -> tuple[str, str | None]:
    """`user:secret` becomes (user, secret); a bare token is sent as the username."""
    username, sep, password = credential.partition(":")
    return (username, password) if sep else (credential, None)


class MqttClient:
    """Thin wrapper around paho-mqtt with JSON convenience APIs."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
        transport: str = "tcp",
        tls: bool = False,
        ws_path: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
            transport=transport,
        )
        if transport == "websockets" and ws_path:
            self._client.ws_set_options(path=ws_path)
        if tls:
            self._client.tls_set()
        if username:
            self._client.username_pw_set(username, password)
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)

        self._client.on_message = self._on_message
        self._client.on_connect = self._on_connect
        self._client.on_connect_fail = self._on_connect_fail
        self._client.on_disconnect = self._on_disconnect

        # External subscribers. Called with (topic, json_message).
        self._handlers: list[MessageHandler] = []
        # Called with True on connect, False on disconnect / failed attempt.
        self._status_handlers: list[StatusHandler] = []
        self._lock = threading.Lock()

        self._started = False

    @classmethod
    def from_endpoint(cls, endpoint: str, *, client_id: str, credential: str = "") -> "MqttClient":
        ep = parse_endpoint(endpoint)
        username, password = split_credential(credential) if credential else (None, None)
        return cls(
            client_id=client_id,
            host=ep.host,
            port=ep.port,
            transport=ep.transport,
            tls=ep.tls,
            ws_path=ep.path,
            username=username,
            password=password,
        )

    def start(self) -> None:
        """Start connecting in the background network loop."""
        if self._started:
            return
        self._client.connect_async(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        """Disconnect and stop the network loop."""
        if not self._started:
            return
        self._client.disconnect()
        self._client.loop_stop()
        self._started = False

    def add_handler(self, handler: MessageHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def add_status_handler(self, handler: StatusHandler) -> None:
        with self._lock:
            self._status_handlers.append(handler)

    def subscribe(self, topic: str) -> None:
        self._client.subscribe(topic, qos=0)

    def publish(self, topic: str, message: dict[str, Any]) -> None:
        payload = json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        self._client.publish(topic, payload=payload, qos=0)

    # -------------------- internal callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            logger.warning("broker %s:%s refused connection: %s", self.host, self.port, reason_code)
            self._notify_status(False)
            return
        logger.info("connected to broker %s:%s as %s", self.host, self.port, self.client_id)
        self._notify_status(True)

    def _on_connect_fail(self, client: mqtt.Client, userdata: Any) -> None:
        logger.warning("could not reach broker %s:%s, retrying", self.host, self.port)
        self._notify_status(False)

    def _on_disconnect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        logger.info("disconnected from broker %s:%s: %s", self.host, self.port, reason_code)
        self._notify_status(False)

    def _notify_status(self, connected: bool) -> None:
        with self._lock:
            handlers = list(self._status_handlers)
        for h in handlers:
            try:
                h(connected)
            except Exception:
                logger.exception("status handler failed")

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        # Decode JSON and ignore anything malformed.
        #
        # Depending on paho-mqtt version / type stubs, msg.payload may be `bytes` (typical)
        # or a `str`. We normalize to text before JSON parsing.
        try:
            raw = msg.payload
            if isinstance(raw, bytes):
                payload = raw.decode("utf-8")
            else:
                payload = str(raw)
            data = json.loads(payload)
        except ValueError:
            logger.debug("dropping non-JSON message on %s", msg.topic)
            return
        if not isinstance(data, dict):
            return

        with self._lock:
            handlers = list(self._handlers)
        for h in handlers:
            try:
                h(msg.topic, data)
            except Exception:
                # Keep the network loop alive whatever a handler does.
                logger.exception("message handler failed for topic %s", msg.topic)
