from __future__ import annotations

# Join-by-link.
#
# A shareable URL carries the room id (and optionally which view to open):
#   https://booth.example/queue?room=summer-fair&view=display
# Links never carry the endpoint credential; each device supplies that once
# through its own configuration.

from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

VIEWS = ("register", "display", "admin")


@dataclass(frozen=True)
class JoinLink:
    room_id: str
    view: str | None = None


def build_join_link(base_url: str, room_id: str, view: str | None = None) -> str:
    if not room_id:
        raise ValueError("room_id required")
    if view is not None and view not in VIEWS:
        raise ValueError(f"unknown view: {view}")

    parts = urlsplit(base_url)
    # Keep unrelated query parameters, replace ours.
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in ("room", "view")]
    query.append(("room", room_id))
    if view is not None:
        query.append(("view", view))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def parse_join_link(url: str) -> JoinLink | None:
    """Extract room id and view, or None when the link has no room."""
    params = dict(parse_qsl(urlsplit(url).query))
    room_id = params.get("room", "").strip()
    if not room_id:
        return None
    view = params.get("view", "").lower() or None
    if view not in VIEWS:
        view = None
    return JoinLink(room_id=room_id, view=view)
