from __future__ import annotations

# Single entrypoint.
#
#     python -m photobooth_queue.app <command> [options]
#
# Long-running devices:
# - `operator`: interactive console for the person running the counter
# - `display`:  public screen (console ticker, or a Tkinter window with --gui)
#
# One-shot commands (`register`, `call-next`, `complete`, `skip`, `reset`,
# `status`) act on this device's stored queue. When a room is configured they
# first catch up with the room, then publish their change.
#
# Room settings come from flags, then PHOTOBOOTH_* environment variables, then
# whatever room this device joined last (`join`).

import argparse
import logging
import queue
import sys
import threading
import time
from typing import Callable

from .config import Settings, load_settings
from .controller import Origin, QueueController
from .errors import ErrorResponse, ValidationError
from .links import build_join_link, parse_join_link
from .persistence import SnapshotSlot
from .snapshot import QueueSnapshot, RoomConfig
from .sync import ConnectionStatus
from .ticket import Ticket, TicketStatus
from .timer import format_countdown

# How long one-shot commands wait for the room before acting anyway.
CONNECT_TIMEOUT = 5.0
SETTLE_SECONDS = 1.0


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Photobooth queue tracker - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_common_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--storage-dir", default=str(settings.storage_dir))
        p.add_argument("--endpoint", default=settings.endpoint, help="broker address, e.g. mqtts://host:8883")
        p.add_argument("--credential", default=settings.credential, help="user:password or access token")
        p.add_argument("--room", default=settings.room_id, help="room id shared by all devices")
        p.add_argument("--namespace", default=settings.namespace)
        p.add_argument("--sync-delay", type=float, default=settings.sync_delay)
        p.add_argument("--local-only", action="store_true", help="do not connect to the room")
        p.add_argument("--log-level", default="WARNING")

    p_reg = sub.add_parser("register", help="Register a visitor and print their number")
    add_common_args(p_reg)
    p_reg.add_argument("--name", required=True)
    p_reg.add_argument("--contact", required=True, help="phone number or other contact")

    p_next = sub.add_parser("call-next", help="Call the lowest waiting number")
    add_common_args(p_next)

    for cmd, help_text in (("complete", "Mark a called number as served"), ("skip", "Skip a called number")):
        p = sub.add_parser(cmd, help=help_text)
        add_common_args(p)
        p.add_argument("--number", type=int, required=True)

    p_reset = sub.add_parser("reset", help="Delete every ticket and restart numbering at 1")
    add_common_args(p_reset)
    p_reset.add_argument("--yes", action="store_true", help="confirm the reset")

    p_status = sub.add_parser("status", help="Print the stored queue")
    add_common_args(p_status)

    p_op = sub.add_parser("operator", help="Interactive operator console")
    add_common_args(p_op)

    p_disp = sub.add_parser("display", help="Show the called number and countdown")
    add_common_args(p_disp)
    p_disp.add_argument("--gui", action="store_true", help="open Tkinter display window")
    p_disp.add_argument("--call-window", type=int, default=settings.call_window, help="seconds per call")

    p_link = sub.add_parser("join-link", help="Print a link other devices can use to join this room")
    add_common_args(p_link)
    p_link.add_argument("--base-url", required=True)
    p_link.add_argument("--view", choices=["register", "display", "admin"], default=None)

    p_join = sub.add_parser("join", help="Remember the room from a join link on this device")
    add_common_args(p_join)
    p_join.add_argument("url")

    return parser


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    args = build_parser(settings).parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    controller = _make_controller(args, settings)
    try:
        return _dispatch(args, controller)
    except ValidationError as e:
        print(f"[error] {ErrorResponse.from_exception(e)}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 0
    finally:
        controller.stop()


def _make_controller(args: argparse.Namespace, settings: Settings) -> QueueController:
    room = RoomConfig(endpoint=args.endpoint, credential=args.credential, room_id=args.room)
    return QueueController(
        slot=SnapshotSlot(args.storage_dir),
        room_config=room,
        namespace=args.namespace,
        sync_delay=args.sync_delay,
        call_window=getattr(args, "call_window", settings.call_window),
    )


def _dispatch(args: argparse.Namespace, controller: QueueController) -> int:
    connect = not args.local_only

    if args.cmd == "join":
        link = parse_join_link(args.url)
        if link is None:
            print("[join] link has no room id", file=sys.stderr)
            return 2
        controller.start(connect=False)
        base = controller.room_config or RoomConfig()
        controller.join_room(
            RoomConfig(endpoint=base.endpoint, credential=base.credential, room_id=link.room_id), connect=False
        )
        print(f"[join] this device now uses room {link.room_id!r}")
        if link.view:
            print(f"[join] suggested view: {link.view}")
        if not controller.room_config or not controller.room_config.is_complete:
            print("[join] endpoint and credential still need to be configured on this device")
        return 0

    if args.cmd == "join-link":
        controller.start(connect=False)
        room_id = controller.room_config.room_id if controller.room_config else ""
        if not room_id:
            print("[join-link] no room configured (use --room)", file=sys.stderr)
            return 2
        print(build_join_link(args.base_url, room_id, args.view))
        return 0

    if args.cmd == "operator":
        controller.start(connect=connect)
        run_operator_console(controller)
        return 0

    if args.cmd == "display":
        controller.start(connect=connect)
        if args.gui:
            from .gui import DisplayApp

            DisplayApp(controller=controller).start()
        else:
            run_console_display(controller)
        return 0

    # ---- one-shot commands ----
    connect = connect and args.cmd != "status"
    controller.start(connect=connect)
    if connect and controller.connection_status is not None:
        _catch_up(controller)

    if args.cmd == "status":
        print(render_status(controller))
        return 0

    if args.cmd == "register":
        number = controller.register(args.name, args.contact)
        print(f"[register] {args.name} is number {number}")
        return 0

    if args.cmd == "call-next":
        ticket = controller.call_next()
        if ticket is None:
            print("[call-next] nobody to call (queue empty or a number is still being called)")
            return 1
        print(f"[call-next] now calling {ticket.number} ({ticket.name})")
        return 0

    if args.cmd in ("complete", "skip"):
        ticket = controller.store.find_by_number(args.number)
        finish = controller.complete if args.cmd == "complete" else controller.skip
        if ticket is None or not finish(ticket.id):
            print(f"[{args.cmd}] number {args.number} is not being called", file=sys.stderr)
            return 1
        print(f"[{args.cmd}] number {args.number} done")
        return 0

    if args.cmd == "reset":
        if not args.yes:
            print("[reset] refusing without --yes", file=sys.stderr)
            return 2
        controller.reset()
        print("[reset] queue cleared")
        return 0

    return 2


def _catch_up(controller: QueueController) -> None:
    """Wait for the room and adopt whatever peers answer to our sync request."""
    deadline = time.time() + CONNECT_TIMEOUT
    while time.time() < deadline and controller.channel.status is not ConnectionStatus.CONNECTED:
        controller.process_pending()
        time.sleep(0.1)
    if controller.channel.status is not ConnectionStatus.CONNECTED:
        print("[sync] room unreachable, using local state only", file=sys.stderr)
        return

    settle_until = time.time() + controller.channel.sync_delay + SETTLE_SECONDS
    while time.time() < settle_until:
        controller.process_pending()
        time.sleep(0.1)


# -------------------- rendering helpers --------------------


def render_status(controller: QueueController) -> str:
    snap = controller.state
    store = controller.store
    lines = [
        f"now serving: {snap.current_number if snap.current_number is not None else '-'}"
        f"   countdown: {format_countdown(controller.remaining_seconds())}",
        f"last number: {snap.last_number}   waiting: {store.waiting_count()}",
        f"room: {_room_label(controller)}",
    ]
    calling = store.calling()
    if calling:
        lines.append("calling:   " + ", ".join(_ticket_label(t) for t in calling))
    waiting = store.waiting()
    if waiting:
        lines.append("waiting:   " + ", ".join(_ticket_label(t) for t in waiting))
    completed = store.completed(limit=5)
    if completed:
        lines.append("recent:    " + ", ".join(_ticket_label(t) for t in completed))
    skipped = store.skipped()
    if skipped:
        lines.append("skipped:   " + ", ".join(_ticket_label(t) for t in skipped))
    return "\n".join(lines)


def display_line(controller: QueueController) -> str:
    snap = controller.state
    current = snap.current_number if snap.current_number is not None else "-"
    next_up = " ".join(str(t.number) for t in controller.store.next_up())
    remaining = controller.remaining_seconds()
    overdue = "  OVERDUE" if controller.is_overdue() else ""
    return (
        f"NOW {current}  [{format_countdown(remaining)}]{overdue}  next: {next_up or '-'}"
        f"  ({_room_label(controller)})"
    )


def _ticket_label(t: Ticket) -> str:
    return f"{t.number}:{t.name}"


def _room_label(controller: QueueController) -> str:
    status = controller.connection_status
    if status is None:
        return "local only"
    room_id = controller.room_config.room_id if controller.room_config else "?"
    return f"{room_id} {status.value}"


# -------------------- long-running modes --------------------


def run_console_display(controller: QueueController, *, tick: float = 1.0) -> None:
    last = ""
    while True:
        controller.process_pending()
        line = display_line(controller)
        if line != last:
            print(line, flush=True)
            last = line
        time.sleep(tick)


OPERATOR_HELP = """commands:
  next                 call the lowest waiting number
  call N               call number N
  done N | skip N      finish or skip a called number
  add NAME CONTACT     register a visitor
  list                 show the queue
  reset                clear everything (asks to confirm)
  quit"""


def run_operator_console(controller: QueueController, *, tick: float = 0.2) -> None:
    # stdin is read on a helper thread so room updates keep flowing while the
    # operator is idle at the prompt.
    lines: "queue.Queue[str | None]" = queue.Queue()

    def read_stdin() -> None:
        for raw in sys.stdin:
            lines.put(raw.strip())
        lines.put(None)

    threading.Thread(target=read_stdin, daemon=True).start()

    def on_change(snapshot: QueueSnapshot, origin: Origin) -> None:
        if origin is not Origin.LOCAL:
            print(f"[operator] queue updated ({origin.value}): now serving {snapshot.current_number or '-'}")

    controller.add_listener(on_change)
    controller.add_status_listener(lambda status: print(f"[operator] room {status.value}"))

    print(OPERATOR_HELP)
    print(render_status(controller))
    while True:
        controller.process_pending()
        try:
            line = lines.get(timeout=tick)
        except queue.Empty:
            continue
        if line is None or line in ("quit", "exit"):
            return
        if line:
            reply = handle_operator_command(controller, line, confirm=lambda: _confirm(lines))
            print(reply)


def handle_operator_command(
    controller: QueueController, line: str, *, confirm: Callable[[], bool] = lambda: False
) -> str:
    """Run one operator console command and return the text to show."""
    parts = line.split()
    cmd, rest = parts[0].lower(), parts[1:]

    if cmd == "next":
        ticket = controller.call_next()
        if ticket is None:
            return "nobody to call"
        return f"calling {ticket.number} ({ticket.name}, {ticket.contact})"

    if cmd in ("call", "done", "skip"):
        if len(rest) != 1 or not rest[0].isdigit():
            return f"usage: {cmd} N"
        ticket = controller.store.find_by_number(int(rest[0]))
        if ticket is None:
            return f"no ticket {rest[0]}"
        action = {"call": controller.call, "done": controller.complete, "skip": controller.skip}[cmd]
        if not action(ticket.id):
            busy = [t for t in controller.store.calling() if t.id != ticket.id]
            if cmd == "call" and ticket.status is TicketStatus.WAITING and busy:
                return f"cannot call {ticket.number} while {busy[0].number} is being called"
            return f"cannot {cmd} {ticket.number} while it is {ticket.status.value}"
        return f"{cmd} {ticket.number} ok"

    if cmd == "add":
        if len(rest) < 2:
            return "usage: add NAME CONTACT"
        try:
            number = controller.register(" ".join(rest[:-1]), rest[-1])
        except ValidationError as e:
            return str(ErrorResponse.from_exception(e))
        return f"registered as {number}"

    if cmd == "list":
        return render_status(controller)

    if cmd == "reset":
        if not confirm():
            return "reset cancelled"
        controller.reset()
        return "queue cleared"

    if cmd in ("help", "?"):
        return OPERATOR_HELP

    return f"unknown command {cmd!r} (try help)"


def _confirm(lines: "queue.Queue[str | None]") -> bool:
    print("type 'yes' to delete every ticket: ", end="", flush=True)
    answer = lines.get()
    return answer == "yes"


if __name__ == "__main__":
    sys.exit(main())
