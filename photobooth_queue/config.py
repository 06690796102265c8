"""Runtime configuration from the environment.

Command-line flags override these values; see `app.py`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .mqtt_topics import DEFAULT_NAMESPACE
from .snapshot import RoomConfig
from .sync import DEFAULT_SYNC_DELAY
from .timer import WINDOW_SECONDS


@dataclass(frozen=True)
class Settings:
    storage_dir: Path
    endpoint: str
    credential: str
    room_id: str
    namespace: str
    call_window: int
    sync_delay: float

    def room_config(self) -> RoomConfig:
        return RoomConfig(endpoint=self.endpoint, credential=self.credential, room_id=self.room_id)


def default_storage_dir() -> Path:
    return Path.home() / ".photobooth_queue"


def load_settings() -> Settings:
    storage_raw = os.getenv("PHOTOBOOTH_STORAGE_DIR")
    return Settings(
        storage_dir=Path(storage_raw) if storage_raw else default_storage_dir(),
        endpoint=os.getenv("PHOTOBOOTH_ENDPOINT", ""),
        credential=os.getenv("PHOTOBOOTH_CREDENTIAL", ""),
        room_id=os.getenv("PHOTOBOOTH_ROOM_ID", ""),
        namespace=os.getenv("PHOTOBOOTH_NAMESPACE", DEFAULT_NAMESPACE),
        call_window=int(os.getenv("PHOTOBOOTH_CALL_WINDOW", str(WINDOW_SECONDS))),
        sync_delay=float(os.getenv("PHOTOBOOTH_SYNC_DELAY", str(DEFAULT_SYNC_DELAY))),
    )


def resolve_room_config(explicit: RoomConfig, stored: RoomConfig | None) -> RoomConfig | None:
    """Merge explicit settings over the room configuration saved on this device.

    Each field is taken from `explicit` when set there, otherwise from
    `stored`. Returns None when nothing is configured at all.
    """
    base = stored or RoomConfig()
    merged = RoomConfig(
        endpoint=explicit.endpoint or base.endpoint,
        credential=explicit.credential or base.credential,
        room_id=explicit.room_id or base.room_id,
    )
    if not (merged.endpoint or merged.credential or merged.room_id):
        return None
    return merged
