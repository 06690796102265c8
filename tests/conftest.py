import pytest


class FakeBroker:
    """In-process stand-in for an MQTT broker: every publish reaches every subscriber."""

    def __init__(self):
        self.transports = []

    def transport_factory(self, room_config, client_id):
        t = FakeTransport(client_id, broker=self)
        self.transports.append(t)
        return t

    def publish(self, topic, message):
        for t in list(self.transports):
            if topic in t.subscribed and not t.stopped:
                t.deliver(topic, message)

    def connect_all(self):
        for t in list(self.transports):
            t.connect()


class FakeTransport:
    def __init__(self, client_id, broker=None):
        self.client_id = client_id
        self.broker = broker
        self.handlers = []
        self.status_handlers = []
        self.subscribed = []
        self.published = []
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def subscribe(self, topic):
        self.subscribed.append(topic)

    def publish(self, topic, message):
        self.published.append((topic, message))
        if self.broker is not None:
            self.broker.publish(topic, message)

    def add_handler(self, handler):
        self.handlers.append(handler)

    def add_status_handler(self, handler):
        self.status_handlers.append(handler)

    # test controls
    def connect(self):
        for h in self.status_handlers:
            h(True)

    def drop(self):
        for h in self.status_handlers:
            h(False)

    def deliver(self, topic, message):
        for h in self.handlers:
            h(topic, message)

    def published_types(self):
        return [m["type"] for _topic, m in self.published]


class FakeClock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def clock():
    return FakeClock()
