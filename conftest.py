"""
Shared fixtures: a scripted stand-in for paho's Client so the publisher can
be exercised without a running broker.
"""

import threading
import time

import pytest

from mqtt_levels import LevelPublisher, PublisherConfig, create_logger
from mqtt_levels.config import ENV_VARIABLES
from mqtt_levels.publishers import connection as connection_module


class FakeReasonCode:
    def __init__(self, value: int, name: str):
        self.value = value
        self.name = name

    @property
    def is_failure(self) -> bool:
        return self.value >= 0x80

    def __str__(self) -> str:
        return self.name


SUCCESS = FakeReasonCode(0, "Success")
NOT_AUTHORIZED = FakeReasonCode(0x87, "Not authorized")
UNSPECIFIED_ERROR = FakeReasonCode(0x80, "Unspecified error")


class FakeMessageInfo:
    def __init__(self, mid: int, rc: int, published: bool):
        self.mid = mid
        self.rc = rc
        self._published = published

    def wait_for_publish(self, timeout=None):
        pass

    def is_published(self) -> bool:
        return self._published


class FakeBroker:
    """Knobs controlling how every FakeClient behaves, plus what they did."""

    def __init__(self):
        self.clients = []
        self.published = []
        self.connack = SUCCESS          # None: never answer
        self.connect_error = None       # raised from Client.connect()
        self.connect_delay = 0.0        # seconds before CONNACK
        self.connect_blocking = 0.0     # seconds Client.connect() blocks
        self.publish_rc = 0
        self.ack = True
        self.lock = threading.Lock()

    @property
    def topics(self):
        return [topic for topic, _, _, _ in self.published]


class FakeClient:
    def __init__(self, broker: FakeBroker, callback_api_version=None, client_id="",
                 clean_session=None, protocol=None, **kwargs):
        self.broker = broker
        self.callback_api_version = callback_api_version
        self.client_id = client_id
        self.clean_session = clean_session
        self.protocol = protocol
        self.on_connect = None
        self.on_disconnect = None
        self.connect_timeout = None
        self.credentials = None
        self.reconnect_delay = None
        self.connect_args = None
        self.loop_running = False
        self.disconnected = False
        self._connected = False
        with broker.lock:
            broker.clients.append(self)

    def username_pw_set(self, username, password=None):
        self.credentials = (username, password)

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        self.reconnect_delay = (min_delay, max_delay)

    def connect(self, host, port=1883, keepalive=60):
        self.connect_args = (host, port, keepalive)
        time.sleep(self.broker.connect_blocking)
        if self.broker.connect_error is not None:
            raise self.broker.connect_error

    def loop_start(self):
        self.loop_running = True
        connack = self.broker.connack
        if connack is None:
            return

        def answer():
            time.sleep(self.broker.connect_delay)
            self._connected = not connack.is_failure
            self.on_connect(self, None, {}, connack, None)

        threading.Thread(target=answer, daemon=True).start()

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        self._connected = False
        self.disconnected = True

    def is_connected(self) -> bool:
        return self._connected

    def publish(self, topic, payload=None, qos=0, retain=False):
        with self.broker.lock:
            self.broker.published.append((topic, payload, qos, retain))
            mid = len(self.broker.published)
        return FakeMessageInfo(mid, rc=self.broker.publish_rc, published=self.broker.ack)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep MQTT_* variables from the developer's shell out of the tests."""
    for variable in ENV_VARIABLES:
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture
def broker(monkeypatch):
    fake = FakeBroker()
    monkeypatch.setattr(
        connection_module.mqtt,
        "Client",
        lambda *args, **kwargs: FakeClient(fake, *args, **kwargs),
    )
    return fake


@pytest.fixture
def make_publisher():
    created = []

    def factory(error_listeners=None, **overrides):
        publisher = LevelPublisher(
            PublisherConfig(**overrides),
            logger=create_logger("test"),
            error_listeners=error_listeners,
        )
        created.append(publisher)
        return publisher

    yield factory

    for publisher in created:
        publisher.close()
