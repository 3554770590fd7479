"""
Leveled publisher tests (no broker required).

Usage:
    pytest test_mqtt_publish.py
"""

import json
import logging
import threading
import time

import pytest

from conftest import NOT_AUTHORIZED, SUCCESS, UNSPECIFIED_ERROR
from mqtt_levels import (
    ConnectError,
    LevelPublisher,
    LogEvent,
    OutboundMessage,
    PublishError,
    PublisherConfig,
    Severity,
    create_logger,
)
from mqtt_levels.publishers import BrokerConnection, leveled


def _events(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records
            if record.name.startswith("mqtt_levels.")]


def test_every_severity_publishes_to_environment_topic(broker, make_publisher):
    publisher = make_publisher(environment="prod")

    for severity in Severity:
        method = getattr(publisher, severity.value)
        assert method(f"{severity.value} message").result(timeout=2) is True

    assert broker.published == [
        (f"prod-{severity.value}", f"{severity.value} message", 0, False)
        for severity in Severity
    ]


def test_error_in_prod_targets_prod_error(broker, make_publisher):
    publisher = make_publisher(environment="prod")

    assert publisher.error("disk full", qos=1, retain=True).result(timeout=2)

    assert broker.published == [("prod-error", "disk full", 1, True)]
    assert publisher.topic_for(Severity.ERROR) == "prod-error"


def test_construction_does_not_connect(broker, caplog):
    caplog.set_level(logging.INFO)

    publisher = LevelPublisher(PublisherConfig(environment="staging"))
    publisher.close()

    assert broker.clients == []
    created = [e for e in _events(caplog) if e['event'] == LogEvent.PUBLISHER_CREATED.value]
    assert created[0]['metadata']['environment'] == "staging"
    assert "staging" in created[0]['message']


def test_first_publish_connects_exactly_once(broker, make_publisher):
    publisher = make_publisher()

    assert publisher.info("one").result(timeout=2)
    assert len(broker.clients) == 1

    assert publisher.notice("two").result(timeout=2)
    assert len(broker.clients) == 1
    assert publisher.get_stats()['connect_attempts'] == 1
    assert publisher.get_stats()['published'] == 2


def test_dropped_connection_is_replaced(broker, make_publisher):
    publisher = make_publisher()
    assert publisher.info("before").result(timeout=2)

    broker.clients[0]._connected = False
    assert publisher.info("after").result(timeout=2)

    assert len(broker.clients) == 2
    assert broker.clients[0].disconnected
    assert not broker.clients[0].loop_running
    assert publisher.is_connected()


def test_concurrent_calls_share_one_connect(broker, make_publisher):
    broker.connect_delay = 0.2
    publisher = make_publisher(max_workers=4)

    futures = [publisher.info("a"), publisher.error("b"), publisher.debug("c"), publisher.usage("d")]

    assert all(f.result(timeout=5) for f in futures)
    assert len(broker.clients) == 1
    assert publisher.get_stats()['connect_attempts'] == 1
    assert sorted(broker.topics) == ["dev-debug", "dev-error", "dev-info", "dev-usage"]


def test_unreachable_broker_does_not_raise(broker, make_publisher, caplog):
    caplog.set_level(logging.INFO)
    broker.connect_error = ConnectionRefusedError("Connection refused")
    errors = []
    publisher = make_publisher(error_listeners=[errors.append])

    assert publisher.critical("cpu on fire").result(timeout=2) is False

    assert broker.published == []
    assert isinstance(errors[0], ConnectError)
    assert isinstance(errors[1], PublishError)
    assert broker.clients[0].disconnected

    stats = publisher.get_stats()
    assert stats['connect_failures'] == 1
    assert stats['failed'] == 1
    assert not stats['connected']

    logged = {e['event'] for e in _events(caplog)}
    assert LogEvent.MQTT_CONNECTION_ERROR.value in logged
    assert LogEvent.MQTT_PUBLISH_FAILED.value in logged


def test_refused_connack_does_not_raise(broker, make_publisher):
    broker.connack = NOT_AUTHORIZED
    errors = []
    publisher = make_publisher(error_listeners=[errors.append])

    assert publisher.alert("intrusion").result(timeout=2) is False

    assert "Not authorized" in str(errors[0])
    assert not broker.clients[0].loop_running


def test_missing_connack_times_out(broker, make_publisher):
    broker.connack = None
    errors = []
    publisher = make_publisher(connect_timeout_ms=50, error_listeners=[errors.append])

    assert publisher.emergency("power loss").result(timeout=2) is False

    assert isinstance(errors[0], ConnectError)
    assert "50ms" in str(errors[0])
    assert not broker.clients[0].loop_running


def test_connect_timeout_includes_socket_connect(broker, make_publisher):
    broker.connect_blocking = 0.3
    broker.connack = None
    publisher = make_publisher(connect_timeout_ms=400)

    started = time.monotonic()
    assert publisher.connect() is False

    assert time.monotonic() - started < 0.6
    assert not broker.clients[0].loop_running


def test_rejected_publish_does_not_raise(broker, make_publisher):
    broker.publish_rc = 4
    errors = []
    publisher = make_publisher(error_listeners=[errors.append])

    assert publisher.warning("queue backlog").result(timeout=2) is False

    assert isinstance(errors[0], PublishError)
    assert errors[0].topic == "dev-warning"
    assert publisher.get_stats()['failed'] == 1


def test_unacknowledged_publish_does_not_raise(broker, make_publisher):
    broker.ack = False
    publisher = make_publisher(publish_timeout_ms=10)

    assert publisher.info("lost").result(timeout=2) is False
    assert broker.topics == ["dev-info"]


def test_failing_listener_is_contained(broker, make_publisher, caplog):
    caplog.set_level(logging.INFO)
    broker.publish_rc = 4

    def explode(error):
        raise RuntimeError("listener bug")

    publisher = make_publisher(error_listeners=[explode])

    assert publisher.info("x").result(timeout=2) is False
    assert LogEvent.LISTENER_ERROR.value in {e['event'] for e in _events(caplog)}


def test_close_disconnects_and_drops_later_messages(broker, make_publisher):
    publisher = make_publisher()
    assert publisher.info("hello").result(timeout=2)

    publisher.close()
    publisher.close()

    assert broker.clients[0].disconnected
    assert not broker.clients[0].loop_running
    assert publisher.info("too late").result(timeout=1) is False
    assert publisher.connect() is False
    assert broker.topics == ["dev-info"]


def test_close_flushes_scheduled_messages(broker, make_publisher):
    broker.connect_delay = 0.1
    publisher = make_publisher()

    futures = [publisher.debug(str(i)) for i in range(5)]
    publisher.close()

    assert all(f.done() and f.result() for f in futures)
    assert len(broker.published) == 5


def test_close_from_done_callback_releases_connection(broker, make_publisher):
    broker.connect_delay = 0.1
    publisher = make_publisher()
    closed = threading.Event()

    def close_when_done(future):
        publisher.close()
        closed.set()

    publisher.notice("shutting down").add_done_callback(close_when_done)

    assert closed.wait(timeout=2)
    assert broker.clients[0].disconnected
    assert not broker.clients[0].loop_running
    assert publisher.notice("after close").result(timeout=1) is False


def test_close_during_handshake_discards_new_connection(broker, make_publisher):
    broker.connect_delay = 0.3
    publisher = make_publisher()
    results = []

    connecting = threading.Thread(target=lambda: results.append(publisher.connect()))
    connecting.start()
    deadline = time.monotonic() + 2
    while not broker.clients and time.monotonic() < deadline:
        time.sleep(0.01)

    publisher.close()
    connecting.join(timeout=2)

    assert results == [False]
    assert broker.clients[0].disconnected
    assert not publisher.is_connected()


def test_removed_listener_is_not_notified(broker, make_publisher):
    broker.publish_rc = 4
    kept, removed = [], []

    def keep(error):
        kept.append(error)

    def drop(error):
        removed.append(error)

    publisher = make_publisher(error_listeners=[keep, drop])
    publisher.remove_error_listener(drop)

    assert publisher.info("x").result(timeout=2) is False

    assert len(kept) == 1
    assert removed == []


def test_full_backlog_drops_messages(broker, make_publisher):
    broker.connack = None
    errors = []
    publisher = make_publisher(
        connect_timeout_ms=300, max_workers=1, max_backlog=2, error_listeners=[errors.append]
    )

    first = publisher.info("one")
    second = publisher.info("two")
    third = publisher.info("three")

    assert third.done() and third.result() is False
    assert isinstance(errors[0], PublishError)
    assert "Backlog full" in str(errors[0])
    assert errors[0].topic == "dev-info"
    stats = publisher.get_stats()
    assert stats['backlog_dropped'] == 1
    assert stats['failed'] == 1

    assert first.result(timeout=2) is False
    assert second.result(timeout=2) is False

    broker.connack = SUCCESS
    assert publisher.info("four").result(timeout=2) is True


def test_context_manager_closes(broker):
    with LevelPublisher(PublisherConfig()) as publisher:
        publisher.usage("42 requests").result(timeout=2)

    assert broker.clients[0].disconnected


def test_argument_errors_raise_immediately(broker, make_publisher):
    publisher = make_publisher()

    with pytest.raises(ValueError):
        publisher.info("x", qos=3)
    with pytest.raises(ValueError):
        publisher.log("verbose", "x")
    with pytest.raises(TypeError):
        publisher.info(42)

    assert broker.clients == []


def test_log_accepts_severity_names(broker, make_publisher):
    publisher = make_publisher(environment="qa")

    assert publisher.log("notice", "maintenance at 02:00").result(timeout=2)
    assert broker.topics == ["qa-notice"]


def test_dict_payload_is_sent_as_json(broker, make_publisher):
    publisher = make_publisher()

    assert publisher.usage({'endpoint': '/search', 'calls': 3}).result(timeout=2)

    _, payload, _, _ = broker.published[0]
    assert json.loads(payload) == {'endpoint': '/search', 'calls': 3}


def test_publish_runs_on_calling_thread(broker, make_publisher):
    publisher = make_publisher()

    assert publisher.publish("custom-topic", b"\x00\x01", qos=2) is True
    assert broker.published == [("custom-topic", b"\x00\x01", 2, False)]


def test_connection_applies_configuration(broker, make_publisher):
    publisher = make_publisher(
        host="broker.internal",
        port=8883,
        keepalive=30,
        connect_timeout_ms=2500,
        reconnect_period_ms=1500,
        username="logger",
        password="secret",
    )
    assert publisher.connect() is True

    client = broker.clients[0]
    assert client.client_id == ""
    assert client.clean_session is True
    assert client.connect_args == ("broker.internal", 8883, 30)
    assert client.credentials == ("logger", "secret")
    assert client.connect_timeout == 2.5
    assert client.reconnect_delay == (1.5, 1.5)


def test_unexpected_disconnect_is_logged(broker, caplog):
    caplog.set_level(logging.INFO)
    connection = BrokerConnection(PublisherConfig(), create_logger("test"))

    connection._on_disconnect(connection.client, None, None, UNSPECIFIED_ERROR, None)

    events = _events(caplog)
    assert events[-1]['event'] == LogEvent.MQTT_DISCONNECTED.value
    assert events[-1]['level'] == "WARNING"


def test_outbound_message_for_severity():
    message = OutboundMessage.for_severity("prod", Severity.ERROR, "disk full")

    assert message.topic == "prod-error"
    assert message.encoded_payload() == "disk full"
    with pytest.raises(ValueError):
        OutboundMessage(topic="", payload="x")
    with pytest.raises(ValueError):
        OutboundMessage(topic="t", payload="x", qos=True)


def test_get_publisher_is_shared(broker, monkeypatch):
    monkeypatch.setenv("MQTT_ENV", "staging")
    monkeypatch.setattr(leveled, "_default_publisher", None)
    registered = []
    monkeypatch.setattr(leveled.atexit, "register", registered.append)

    first = leveled.get_publisher()
    second = leveled.get_publisher()

    assert first is second
    assert first.config.environment == "staging"
    assert registered == [first.close]
    first.close()
