# gatekeeper/services/mqtt_bus.py
"""
MQTT connection shared by the consumer and the publisher side.

paho runs its network loop on its own thread. Inbound messages are handed
to the asyncio loop with run_coroutine_threadsafe; the handler (normally
AccessEngine.handle_message) decides what to do with them. Outbound
replies go out on the same client.
"""

import asyncio
import threading
from typing import Awaitable, Callable, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from gatekeeper.config import settings
from gatekeeper.services.topic_router import subscription_topics
from gatekeeper.utils.logger import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[str, bytes], Awaitable[object]]

_PROTOCOLS = {"v31": mqtt.MQTTv31, "v311": mqtt.MQTTv311, "v5": mqtt.MQTTv5}


class MQTTBus:
    """MQTT subscriber for door input topics and publisher for door replies."""

    def __init__(self, client_id: Optional[str] = None) -> None:
        protocol_name = settings.MQTT_PROTOCOL.lower()
        protocol = _PROTOCOLS.get(protocol_name, mqtt.MQTTv311)
        client_id = client_id or settings.MQTT_CLIENT_ID
        logger.info(f"MQTT client_id={client_id} protocol={protocol_name}")

        kwargs = {} if protocol == mqtt.MQTTv5 else {"clean_session": True}
        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=protocol,
            **kwargs,
        )
        if settings.MQTT_USERNAME:
            self.client.username_pw_set(settings.MQTT_USERNAME, settings.MQTT_PASSWORD)
        self.client.on_connect = self.on_connect
        self.client.on_message = self.on_message
        self.client.on_disconnect = self.on_disconnect
        self.client.reconnect_delay_set(min_delay=1, max_delay=10)

        self.topic_base = settings.MQTT_TOPIC_BASE
        self.qos = settings.MQTT_QOS
        self.publish_timeout = settings.MQTT_PUBLISH_TIMEOUT_SEC
        self._connected = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handler: Optional[MessageHandler] = None

    def on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error(
                f"MQTT connection to {settings.MQTT_BROKER_HOST}:{settings.MQTT_BROKER_PORT} "
                f"refused: {reason_code}"
            )
            return
        logger.info(f"Connected to MQTT broker {settings.MQTT_BROKER_HOST}:{settings.MQTT_BROKER_PORT}")
        topics = subscription_topics(self.topic_base)
        client.subscribe([(topic, self.qos) for topic in topics])
        logger.info(f"Subscribed: {', '.join(topics)}")
        self._connected.set()

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected.clear()
        logger.warning(f"MQTT disconnected: {reason_code}")

    def on_message(self, client, userdata, msg) -> None:
        if self._handler is None or self._loop is None:
            logger.warning(f"Message on {msg.topic} before handler was attached: dropped")
            return
        future = asyncio.run_coroutine_threadsafe(self._handler(msg.topic, msg.payload), self._loop)
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Unhandled error in message handler: {exc}", exc_info=exc)

    def publish(self, topic: str, payload: bytes = b"") -> None:
        """Publish and wait (bounded) for the broker to accept it."""
        info = self.client.publish(topic, payload, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
            return
        info.wait_for_publish(timeout=self.publish_timeout)
        if not info.is_published():
            logger.warning(f"Publish to {topic} not confirmed within {self.publish_timeout}s")

    def start(self, loop: asyncio.AbstractEventLoop, handler: MessageHandler) -> None:
        self._loop = loop
        self._handler = handler
        try:
            self.client.connect_async(settings.MQTT_BROKER_HOST, settings.MQTT_BROKER_PORT, keepalive=60)
            self.client.loop_start()
        except Exception as e:
            logger.error(
                f"MQTT connection failed for {settings.MQTT_BROKER_HOST}:{settings.MQTT_BROKER_PORT} ({e})"
            )

    def stop(self) -> None:
        try:
            self.client.disconnect()
            self.client.loop_stop()
        except Exception as e:
            logger.error(f"MQTT shutdown failed: {e}", exc_info=True)

    def is_connected(self) -> bool:
        return self._connected.is_set()
