from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import paho.mqtt.client as mqtt
import pytest

from weatherly.clients.mqtt import DeviceCommandDispatcher, Topic, decode_payload
from weatherly.core.errors import BrokerUnavailableError


class FakePahoClient:
    def __init__(self) -> None:
        self.connected = False
        self.publish_rc = mqtt.MQTT_ERR_SUCCESS
        self.published: list[tuple[str, str, int, bool]] = []
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []
        self.loop_running = False
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None

    def is_connected(self) -> bool:
        return self.connected

    def connect_async(self, host, port, keepalive=60) -> None:
        self.target = (host, port, keepalive)

    def loop_start(self) -> None:
        self.loop_running = True

    def loop_stop(self) -> None:
        self.loop_running = False

    def disconnect(self) -> None:
        self.connected = False

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, payload, qos, retain))
        return SimpleNamespace(rc=self.publish_rc)

    def subscribe(self, topic) -> None:
        self.subscribed.append(topic)

    def unsubscribe(self, topic) -> None:
        self.unsubscribed.append(topic)


def _dispatcher() -> tuple[DeviceCommandDispatcher, FakePahoClient]:
    fake = FakePahoClient()
    dispatcher = DeviceCommandDispatcher(
        host="broker", port=1883, client_id="test", client_factory=lambda: fake
    )
    return dispatcher, fake


def _connect(dispatcher: DeviceCommandDispatcher, fake: FakePahoClient) -> None:
    fake.connected = True
    fake.on_connect(fake, None, None, SimpleNamespace(is_failure=False), None)


def test_publish_requires_connection() -> None:
    dispatcher, fake = _dispatcher()

    with pytest.raises(BrokerUnavailableError):
        asyncio.run(dispatcher.publish(Topic.SENSOR_COMMANDS, {"command": "x"}))
    assert fake.published == []


def test_publish_serializes_json_at_qos0() -> None:
    dispatcher, fake = _dispatcher()
    fake.connected = True

    asyncio.run(dispatcher.publish(Topic.SENSOR_COMMANDS, {"command": "read_now"}))

    topic, payload, qos, retain = fake.published[0]
    assert topic == "sensors/commands"
    assert json.loads(payload) == {"command": "read_now"}
    assert (qos, retain) == (0, False)


def test_rejected_publish_raises() -> None:
    dispatcher, fake = _dispatcher()
    fake.connected = True
    fake.publish_rc = mqtt.MQTT_ERR_NO_CONN

    with pytest.raises(BrokerUnavailableError):
        asyncio.run(dispatcher.publish("sensors/config", "{}"))


def test_start_and_stop_drive_network_loop() -> None:
    dispatcher, fake = _dispatcher()

    dispatcher.start()
    assert fake.loop_running
    assert fake.target == ("broker", 1883, 60)

    dispatcher.stop()
    assert not fake.loop_running


def test_handlers_survive_reconnect_and_bad_payloads() -> None:
    dispatcher, fake = _dispatcher()
    received: list[tuple[dict, str]] = []

    def broken(message, topic):
        raise RuntimeError("boom")

    asyncio.run(dispatcher.subscribe(Topic.DEVICE_STATUS, broken))
    asyncio.run(dispatcher.subscribe(Topic.DEVICE_STATUS, lambda m, t: received.append((m, t))))
    assert fake.subscribed == []

    _connect(dispatcher, fake)
    assert fake.subscribed == ["devices/status"]

    fake.on_message(fake, None, SimpleNamespace(topic="devices/status", payload=b'{"deviceId": "a"}'))
    fake.on_message(fake, None, SimpleNamespace(topic="devices/status", payload=b"not json"))

    assert received == [
        ({"deviceId": "a"}, "devices/status"),
        ({"raw": "not json"}, "devices/status"),
    ]


def test_unsubscribe_drops_topic_when_last_handler_removed() -> None:
    dispatcher, fake = _dispatcher()
    _connect(dispatcher, fake)

    def handler(message, topic):
        return None

    asyncio.run(dispatcher.subscribe("devices/heartbeat", handler))
    asyncio.run(dispatcher.unsubscribe("devices/heartbeat", handler))

    assert fake.unsubscribed == ["devices/heartbeat"]


def test_decode_payload_wraps_non_objects() -> None:
    assert decode_payload(b"[1, 2]") == {"raw": [1, 2]}
    assert decode_payload(b'{"a": 1}') == {"a": 1}
