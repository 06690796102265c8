"""Shared photobooth queue tracker (MQTT-synchronized).

Every device (operator console, public display, registration kiosk) keeps its
own full copy of the queue and a local JSON snapshot. Devices that share a
room exchange whole snapshots over an MQTT topic:
- every local mutation is persisted and published
- every inbound snapshot replaces local state (last writer wins)
- a device that (re)connects asks its peers for their state

See `python -m photobooth_queue.app -h` for how to run.
"""
