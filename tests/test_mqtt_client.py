from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.reasoncodes import ReasonCode

from photobooth_queue.mqtt_client import MqttClient


class _Message:
    def __init__(self, topic, payload):
        self.topic = topic
        self.payload = payload


def _client():
    c = MqttClient(client_id="booth-1", host="broker.local", port=1883)
    statuses, messages = [], []
    c.add_status_handler(statuses.append)
    c.add_handler(lambda topic, msg: messages.append((topic, msg)))
    return c, statuses, messages


def test_connack_maps_to_connection_status():
    c, statuses, _ = _client()
    c._on_connect(c._client, None, None, ReasonCode(PacketTypes.CONNACK, "Success"), None)
    c._on_connect(c._client, None, None, ReasonCode(PacketTypes.CONNACK, "Not authorized"), None)
    assert statuses == [True, False]


def test_connect_failure_and_disconnect_report_down():
    c, statuses, _ = _client()
    c._on_connect_fail(c._client, None)
    c._on_disconnect(c._client, None, None, ReasonCode(PacketTypes.DISCONNECT, "Normal disconnection"), None)
    assert statuses == [False, False]


def test_json_messages_reach_handlers():
    c, _, messages = _client()
    c._on_message(c._client, None, _Message("photobooth/v0/room-fair", b'{"type":"request-sync"}'))
    assert messages == [("photobooth/v0/room-fair", {"type": "request-sync"})]


def test_undecodable_payloads_are_dropped():
    c, _, messages = _client()
    for payload in (b"not json", b"\xff\xfe", b"[1, 2]"):
        c._on_message(c._client, None, _Message("t", payload))
    assert messages == []


def test_failing_handlers_are_contained():
    c, statuses, messages = _client()

    def boom(*args):
        raise RuntimeError("handler bug")

    c.add_handler(boom)
    c.add_status_handler(boom)
    c._on_message(c._client, None, _Message("t", b"{}"))
    c._on_connect_fail(c._client, None)
    assert messages == [("t", {})]
    assert statuses == [False]
