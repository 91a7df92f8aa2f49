# sprinkler_bridge/network/mqtt_client.py

import json
import threading

from collections.abc import Callable
from typing import Optional

import paho.mqtt.client as mqtt

from sprinkler_bridge.config.bridge_config import MqttConfig
from sprinkler_bridge.core.enums import ProgramStatus
from sprinkler_bridge.core.status_models import ValveStatus
from sprinkler_bridge.utils.logger import get_logger
import sprinkler_bridge.utils.time_utils as time_utils


class MQTTBridge(threading.Thread):
    """
    Accessory side of the bridge over MQTT.

    Publishes every controller change as a retained JSON message and forwards messages
    received on the command topic to `handler(payload: str)`.

    Topics (prefix = `{base_topic}/{device_id}`):
    - `prefix/valve/<name>`     valve snapshot
    - `prefix/program_mode`     program mode
    - `prefix/rain_delay`       rain delay flag
    - `prefix/status`           full status, on request
    - `prefix/event`            command errors
    - `prefix/command`          subscribed, incoming commands
    """

    def __init__(self, config: MqttConfig, device_id: str,
                 handler: Optional[Callable[[str], None]] = None,
                 client: Optional[mqtt.Client] = None):
        super().__init__(daemon=True, name="MQTTBridge")
        self.config = config
        self.device_id = device_id
        self.handler = handler
        self.prefix = f"{config.base_topic}/{device_id}"
        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id or f"sprinkler_bridge_{device_id}",
        )
        self.logger = get_logger(self.__class__.__name__)
        self._stop_event = threading.Event()

        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

        self.logger.info(f"MQTTBridge initialized for device_id={device_id}, broker={config.host}:{config.port}")


    @property
    def command_topic(self) -> str:
        return f"{self.prefix}/command"

    def set_handler(self, handler: Callable[[str], None]) -> None:
        self.handler = handler


    # ===========================================================================================================
    # ControllerListener
    # ===========================================================================================================

    def on_valve_changed(self, status: ValveStatus) -> None:
        self._publish(f"valve/{status.name}", status.to_dict())

    def on_program_mode_changed(self, mode: ProgramStatus) -> None:
        self._publish("program_mode", {"program_mode": mode.value})

    def on_rain_delay_changed(self, enabled: bool) -> None:
        self._publish("rain_delay", {"enabled": enabled})


    # ===========================================================================================================
    # Publisher helpers
    # ===========================================================================================================

    def publish_status(self, payload: dict) -> None:
        self._publish("status", payload, retain=False)

    def publish_event(self, event: str, **details) -> None:
        payload = {"event": event, "timestamp": time_utils.now_iso(), **details}
        self._publish("event", payload, retain=False)

    def _publish(self, subtopic: str, payload: dict, retain: bool = True) -> None:
        topic = f"{self.prefix}/{subtopic}"
        self.client.publish(topic, json.dumps(payload), retain=retain)
        self.logger.debug(f"Published to {topic}")


    # ===========================================================================================================
    # MQTT callbacks
    # ===========================================================================================================

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            self.logger.info(f"Connected to broker. Subscribing to {self.command_topic}")
            client.subscribe(self.command_topic)
        else:
            self.logger.error(f"MQTT connection failed with code {reason_code}")

    def _on_message(self, client, userdata, msg):
        payload = msg.payload.decode("utf-8")
        self.logger.debug(f"Received message on {msg.topic}: {payload}")
        if self.handler is None:
            self.logger.warning("No command handler registered, dropping message.")
            return
        self.handler(payload)


    # ===========================================================================================================
    # Thread main loop
    # ===========================================================================================================

    def run(self):
        try:
            self.client.connect(self.config.host, self.config.port, keepalive=60)
        except Exception as e:
            self.logger.error(f"Failed to connect to MQTT broker: {e}")
            return

        self.client.loop_start()
        self.logger.info("MQTT loop started.")
        try:
            self._stop_event.wait()
        finally:
            self.client.loop_stop()
            self.client.disconnect()
            self.logger.info("MQTT client stopped.")

    def stop(self):
        self._stop_event.set()
