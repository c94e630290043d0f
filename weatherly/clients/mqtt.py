from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from typing import Any, Callable

import paho.mqtt.client as mqtt

from weatherly.core.config import Settings
from weatherly.core.errors import BrokerUnavailableError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any], str], None]


class Topic(str, Enum):
    SENSOR_DATA = "sensors/data"
    SENSOR_COMMANDS = "sensors/commands"
    SENSOR_CONFIG = "sensors/config"
    DEVICE_STATUS = "devices/status"
    DEVICE_HEARTBEAT = "devices/heartbeat"


def decode_payload(payload: bytes) -> dict[str, Any]:
    text = payload.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}
    if not isinstance(parsed, dict):
        return {"raw": parsed}
    return parsed


class DeviceCommandDispatcher:
    """Fire-and-forget publish/subscribe over one broker connection.

    The paho network loop runs on its own thread; handlers are invoked from
    that thread.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        client_id: str,
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 60,
        client_factory: Callable[[], mqtt.Client] | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._keepalive = keepalive
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._lock = threading.Lock()
        self._started = False

        if client_factory is not None:
            self._client = client_factory()
        else:
            self._client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=client_id,
                clean_session=True,
            )
            self._client.reconnect_delay_set(min_delay=1, max_delay=30)
            if username:
                self._client.username_pw_set(username, password)

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected()

    def start(self) -> None:
        if self._started:
            return
        try:
            self._client.connect_async(self._host, self._port, keepalive=self._keepalive)
            self._client.loop_start()
        except (OSError, ValueError) as e:
            logger.warning("MQTT broker unavailable at startup: %s", e)
            return
        self._started = True
        logger.info("Connecting to MQTT broker %s:%s", self._host, self._port)

    def stop(self) -> None:
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    async def publish(
        self, topic: str, message: dict[str, Any] | str, *, qos: int = 0, retain: bool = False
    ) -> None:
        topic = str(getattr(topic, "value", topic))
        if not self.is_connected:
            raise BrokerUnavailableError()
        payload = message if isinstance(message, str) else json.dumps(message, default=str)
        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("MQTT publish rejected", extra={"topic": topic, "status": info.rc})
            raise BrokerUnavailableError(f"Failed to publish to {topic}")
        logger.debug("Published message", extra={"topic": topic})

    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        topic = str(getattr(topic, "value", topic))
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)
        if self.is_connected:
            self._client.subscribe(topic)

    async def unsubscribe(self, topic: str, handler: MessageHandler | None = None) -> None:
        topic = str(getattr(topic, "value", topic))
        with self._lock:
            handlers = self._handlers.get(topic, [])
            if handler is not None and handler in handlers:
                handlers.remove(handler)
            if handler is None or not handlers:
                self._handlers.pop(topic, None)
            remaining = topic in self._handlers
        if not remaining and self.is_connected:
            self._client.unsubscribe(topic)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.warning("MQTT connection refused: %s", reason_code)
            return
        logger.info("Connected to MQTT broker %s:%s", self._host, self._port)
        with self._lock:
            topics = list(self._handlers)
        for topic in topics:
            client.subscribe(topic)
            logger.info("Subscribed to topic", extra={"topic": topic})

    def _on_disconnect(
        self, client, userdata, disconnect_flags=None, reason_code=None, properties=None
    ) -> None:
        logger.warning("MQTT connection lost: %s", reason_code)

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        message = decode_payload(msg.payload)
        with self._lock:
            handlers = list(self._handlers.get(msg.topic, []))
        for handler in handlers:
            try:
                handler(message, msg.topic)
            except Exception:
                logger.exception("MQTT message handler failed", extra={"topic": msg.topic})


def create_dispatcher(settings: Settings) -> DeviceCommandDispatcher:
    return DeviceCommandDispatcher(
        host=settings.mqtt_host,
        port=settings.mqtt_port,
        client_id=settings.mqtt_client_id,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
        keepalive=settings.mqtt_keepalive_seconds,
    )
