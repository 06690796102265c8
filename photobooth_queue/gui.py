from __future__ import annotations

# Public display window (Tkinter).
#
# Shows the number being served, the call countdown, the next few waiting
# numbers and the room connection state.
#
# Architecture:
# - MQTT callbacks run on a background thread managed by paho-mqtt and only
#   queue events inside the controller.
# - Tkinter must be updated from the main UI thread, so a `root.after(...)`
#   tick drains the controller's inbox and redraws. The countdown is derived
#   from the stored call time on every tick.

import time
import tkinter as tk
from tkinter import ttk
from typing import Any, cast

from .controller import QueueController
from .timer import format_countdown


class DisplayApp:
    def __init__(self, *, controller: QueueController, refresh_ms: int = 250, next_up: int = 5) -> None:
        self.controller = controller
        self.refresh_ms = refresh_ms
        self.next_up = next_up

        self.root = tk.Tk()
        self.root.title("Photobooth Queue")
        self.root.geometry("720x480")

        self.status_var = tk.StringVar(value="")
        ttk.Label(self.root, textvariable=self.status_var).pack(fill=cast(Any, tk.X), padx=10, pady=(10, 5))

        ttk.Label(self.root, text="NOW SERVING", font=("TkDefaultFont", 16, "bold")).pack(pady=(10, 0))
        self.number_var = tk.StringVar(value="-")
        ttk.Label(self.root, textvariable=self.number_var, font=("TkDefaultFont", 96, "bold")).pack()

        self.countdown_var = tk.StringVar(value=format_countdown(None))
        self.countdown_label = ttk.Label(self.root, textvariable=self.countdown_var, font=("TkDefaultFont", 28))
        self.countdown_label.pack(pady=(0, 10))

        cols = ("number", "name")
        self.tree = ttk.Treeview(self.root, columns=cols, show="headings", height=next_up)
        self.tree.heading("number", text="Next")
        self.tree.heading("name", text="Name")
        self.tree.column("number", width=100, anchor=cast(Any, tk.E))
        self.tree.column("name", width=300, anchor=cast(Any, tk.W))
        self.tree.pack(fill=cast(Any, tk.BOTH), expand=True, padx=10, pady=10)

        self.waiting_var = tk.StringVar(value="")
        ttk.Label(self.root, textvariable=self.waiting_var).pack(fill=cast(Any, tk.X), padx=10, pady=(0, 10))

        self._last_rows: list[tuple[str, str]] | None = None
        self.root.protocol("WM_DELETE_WINDOW", self.close)

    def start(self) -> None:
        self._tick()
        self.root.mainloop()

    def close(self) -> None:
        try:
            self.controller.stop()
        finally:
            self.root.destroy()

    # -------------------- UI thread polling --------------------

    def _tick(self) -> None:
        self.controller.process_pending()
        self._render()
        self.root.after(cast(Any, self.refresh_ms), self._tick)

    def _render(self) -> None:
        snap = self.controller.state
        store = self.controller.store

        self.number_var.set(str(snap.current_number) if snap.current_number is not None else "-")

        remaining = self.controller.remaining_seconds()
        text = format_countdown(remaining)
        if self.controller.is_overdue():
            text += "  (overdue)"
        self.countdown_var.set(text)

        status = self.controller.connection_status
        room = self.controller.room_config.room_id if self.controller.room_config else ""
        if status is None:
            self.status_var.set(f"Local only | {time.strftime('%H:%M:%S')}")
        else:
            self.status_var.set(f"Room {room}: {status.value} | {time.strftime('%H:%M:%S')}")

        self.waiting_var.set(f"Waiting: {store.waiting_count()}")

        rows = [(str(t.number), t.name) for t in store.next_up(self.next_up)]
        if rows == self._last_rows:
            return
        self._last_rows = rows

        for item in self.tree.get_children():
            self.tree.delete(item)
        if not rows:
            # Show an explicit empty state so the display doesn't look frozen.
            self.tree.insert("", cast(Any, tk.END), values=("-", "(nobody waiting)"))
            return
        for r in rows:
            self.tree.insert("", cast(Any, tk.END), values=r)
