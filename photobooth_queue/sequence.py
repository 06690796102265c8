from __future__ import annotations

# Ticket number allocation.
#
# Numbers start at 1 and only ever go up within one queue epoch. A reset
# starts a new epoch at 0. Skipped and completed numbers are never reused.


class SequenceAllocator:
    def __init__(self, last_number: int = 0) -> None:
        if last_number < 0:
            raise ValueError("last_number must be >= 0")
        self._last_number = last_number

    @property
    def last_number(self) -> int:
        return self._last_number

    def next(self) -> int:
        self._last_number += 1
        return self._last_number

    def reset(self) -> None:
        self._last_number = 0

    def restore(self, last_number: int) -> None:
        """Take over the counter from an adopted snapshot."""
        if last_number < 0:
            raise ValueError("last_number must be >= 0")
        self._last_number = last_number
