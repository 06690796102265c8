from photobooth_queue.snapshot import QueueSnapshot, RoomConfig
from photobooth_queue.store import TicketStore
from photobooth_queue.sync import ConnectionStatus, SyncChannel

ROOM = RoomConfig(endpoint="mqtt://broker", credential="token", room_id="fair")


def _channel(broker, **kw):
    events = []
    statuses = []
    ch = SyncChannel(
        client_id=kw.pop("client_id", "me"),
        namespace="test/v0",
        transport_factory=broker.transport_factory,
        sync_delay=0,
        on_event=lambda kind, msg: events.append((kind, msg)),
        on_status=statuses.append,
        **kw,
    )
    return ch, events, statuses


def test_incomplete_room_config_does_not_connect(broker):
    ch, _events, _statuses = _channel(broker)
    assert ch.connect(RoomConfig(endpoint="mqtt://broker", room_id="fair")) is None
    assert broker.transports == []
    assert ch.status is ConnectionStatus.DISCONNECTED


def test_connect_status_flow_and_bootstrap_request(broker):
    ch, _events, statuses = _channel(broker)
    handle = ch.connect(ROOM)
    assert handle.topic == "test/v0/room-fair"
    assert handle.status is ConnectionStatus.CONNECTING

    transport = broker.transports[0]
    transport.connect()

    assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
    assert transport.subscribed == ["test/v0/room-fair"]
    assert transport.published_types() == ["request-sync"]


def test_failed_connect_reports_disconnected(broker):
    def failing_factory(room_config, client_id):
        raise OSError("no route to host")

    ch, _events, statuses = _channel(broker)
    ch._transport_factory = failing_factory
    handle = ch.connect(ROOM)
    assert handle.status is ConnectionStatus.DISCONNECTED
    assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.DISCONNECTED]


def test_publish_dropped_unless_connected(broker):
    ch, _events, _statuses = _channel(broker)
    snap = QueueSnapshot.empty()
    assert ch.publish(snap) is False

    ch.connect(ROOM)
    transport = broker.transports[0]
    assert ch.publish(snap) is False

    transport.connect()
    assert ch.publish(snap) is True

    transport.drop()
    assert ch.status is ConnectionStatus.DISCONNECTED
    assert ch.publish(snap) is False
    assert transport.published_types() == ["request-sync", "queue-update"]


def test_published_snapshot_is_full_and_omits_room_config(broker):
    ch, _events, _statuses = _channel(broker)
    ch.connect(ROOM)
    broker.transports[0].connect()

    s = TicketStore()
    s.register("Alice", "081")
    ch.publish(s.snapshot().with_room_config(ROOM))

    _topic, msg = broker.transports[0].published[-1]
    assert msg["type"] == "queue-update"
    assert msg["sender"] == "me"
    assert msg["lastNumber"] == 1
    assert msg["tickets"][0]["name"] == "Alice"
    assert "roomConfig" not in msg


def test_reconnect_requests_sync_again(broker):
    ch, _events, _statuses = _channel(broker)
    ch.connect(ROOM)
    transport = broker.transports[0]
    transport.connect()
    transport.drop()
    transport.connect()
    assert transport.published_types() == ["request-sync", "request-sync"]
    assert transport.subscribed == ["test/v0/room-fair", "test/v0/room-fair"]


def test_inbound_dispatch_ignores_own_echo_and_other_topics(broker):
    ch, events, _statuses = _channel(broker)
    ch.connect(ROOM)
    transport = broker.transports[0]
    transport.connect()

    transport.deliver("test/v0/room-fair", {"type": "request-sync", "sender": "peer"})
    transport.deliver("test/v0/room-fair", {"type": "request-sync", "sender": "me"})
    transport.deliver("test/v0/room-other", {"type": "request-sync", "sender": "peer"})
    transport.deliver("test/v0/room-fair", {"type": "chat", "sender": "peer"})

    assert events == [("request-sync", {"type": "request-sync", "sender": "peer"})]


def test_close_stops_transport(broker):
    ch, _events, _statuses = _channel(broker)
    handle = ch.connect(ROOM)
    broker.transports[0].connect()
    handle.close()
    assert broker.transports[0].stopped
    assert ch.status is ConnectionStatus.DISCONNECTED
