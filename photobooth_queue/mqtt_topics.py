"""MQTT topic helpers.

We keep topic construction in one place so all devices agree on naming.

Topic layout under a configurable namespace (default: `photobooth/v0`):

- `<ns>/room-<roomId>`
    The room broadcast topic. Every device in the room subscribes and
    publishes `queue-update` and `request-sync` messages here.

Any two devices configured with the same namespace and room id (and a
credential the broker accepts) end up in the same logical room.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "photobooth/v0"

QUEUE_UPDATE = "queue-update"
REQUEST_SYNC = "request-sync"


def room_topic(room_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    if not room_id:
        raise ValueError("room_id required")
    # MQTT wildcards and separators would change which topic we land on.
    if any(ch in room_id for ch in "/+#"):
        raise ValueError(f"invalid room id: {room_id!r}")
    return f"{namespace}/room-{room_id}"
