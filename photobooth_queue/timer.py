from __future__ import annotations

# Call timer helpers.
#
# The countdown shown on displays is derived, never stored:
#   remaining = max(0, window_seconds - floor((now - calling_started_at) / 1000))
# Displays simply recompute it on every tick. Reaching zero does not change
# any ticket status; it only tells the display that the call is overdue.

import time

WINDOW_SECONDS = 120


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def remaining_seconds(
    calling_started_at: int | None,
    *,
    now: int | None = None,
    window_seconds: int = WINDOW_SECONDS,
) -> int | None:
    """Seconds left in the call window, or None when nothing is being called.

    Args:
        calling_started_at: epoch ms when the current ticket was called.
        now: epoch ms to evaluate at (defaults to the wall clock).
        window_seconds: length of the call window.

    Elapsed time is clamped at zero, so a call time in the future (a peer
    clock running ahead) shows the full window rather than more than it.
    """
    if calling_started_at is None:
        return None
    if now is None:
        now = now_ms()
    # A caller clock running ahead of ours must not push the countdown past the window.
    elapsed = max(0, (now - calling_started_at) // 1000)
    return max(0, window_seconds - elapsed)


def is_overdue(
    calling_started_at: int | None,
    *,
    now: int | None = None,
    window_seconds: int = WINDOW_SECONDS,
) -> bool:
    left = remaining_seconds(calling_started_at, now=now, window_seconds=window_seconds)
    return left == 0


def format_countdown(seconds: int | None) -> str:
    if seconds is None:
        return "--:--"
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
