# sprinkler_bridge/network/command_handler.py

import json

from sprinkler_bridge.core.irrigation_controller import IrrigationController
from sprinkler_bridge.exceptions import WorkerThreadAlreadyExistsError
from sprinkler_bridge.network.mqtt_client import MQTTBridge
from sprinkler_bridge.utils.logger import get_logger


RAIN_DELAY_WORKER = "rain_delay"


class CommandHandler:
    """
    Turns JSON command messages into controller calls.

    Supported actions:
    - {"action": "set_valve", "valve": <name>, "active": <bool>}
    - {"action": "set_duration", "valve": <name>, "seconds": <int>}
    - {"action": "set_rain_delay", "enabled": <bool>}
    - {"action": "get_status"}

    Device commands run on a command worker, one per valve at a time, so a slow controller
    never blocks the MQTT network loop.
    """

    def __init__(self, irrigation_controller: IrrigationController, mqtt_client: MQTTBridge):
        self.irrigation_controller = irrigation_controller
        self.mqtt_client = mqtt_client
        self.thread_manager = irrigation_controller.thread_manager
        self.logger = get_logger(self.__class__.__name__)

    def handle(self, message: str):
        """Process incoming mqtt message (JSON)."""
        try:
            cmd = json.loads(message)
        except json.JSONDecodeError:
            self.logger.error("Failed to decode JSON message")
            return
        if not isinstance(cmd, dict):
            self.logger.error(f"Command must be a JSON object, got: {message}")
            return

        action = cmd.get("action")
        try:
            if action == "get_status":
                self._publish_status()
            elif action == "set_valve":
                self._set_valve(cmd)
            elif action == "set_duration":
                self._set_duration(cmd)
            elif action == "set_rain_delay":
                self._set_rain_delay(cmd)
            else:
                self.logger.warning(f"Unknown command action: {action}")
        except Exception as e:
            self.logger.error(f"Error handling command '{action}': {e}")
            self.mqtt_client.publish_event("command_failed", action=action, error=str(e))

    # ------------------- Private methods ------------------- #

    def _publish_status(self):
        status = self.irrigation_controller.get_status_message()
        self.mqtt_client.publish_status(status)
        self.logger.debug("Published current status.")

    def _set_valve(self, cmd: dict):
        name = cmd.get("valve")
        active = cmd.get("active")
        if not isinstance(name, str) or not isinstance(active, bool):
            self.logger.error(f"Invalid parameters in set_valve command: {cmd}")
            return
        # unknown names are rejected here, not on the worker
        self.irrigation_controller.get_valve_status(name)

        self.logger.info(f"Requested valve '{name}' {'on' if active else 'off'}.")
        self._run_command(
            name,
            "set_valve",
            lambda: self.irrigation_controller.set_valve_active(name, active),
        )

    def _set_duration(self, cmd: dict):
        name = cmd.get("valve")
        try:
            seconds = int(cmd.get("seconds"))
        except (TypeError, ValueError):
            self.logger.error(f"Invalid parameters in set_duration command: {cmd}")
            return
        if not isinstance(name, str):
            self.logger.error(f"Invalid parameters in set_duration command: {cmd}")
            return

        self.logger.info(f"Requested duration {seconds}s for valve '{name}'.")
        self.irrigation_controller.set_valve_duration(name, seconds)

    def _set_rain_delay(self, cmd: dict):
        enabled = cmd.get("enabled")
        if not isinstance(enabled, bool):
            self.logger.error(f"Invalid parameters in set_rain_delay command: {cmd}")
            return

        self.logger.info(f"Requested rain delay {'on' if enabled else 'off'}.")
        self._run_command(
            RAIN_DELAY_WORKER,
            "set_rain_delay",
            lambda: self.irrigation_controller.set_rain_delay(enabled),
        )

    def _run_command(self, worker_key: str, action: str, fn):
        def command_wrapper():
            try:
                fn()
            except Exception as e:
                self.logger.error(f"Command '{action}' failed: {e}")
                self.mqtt_client.publish_event("command_failed", action=action, error=str(e))

        try:
            self.thread_manager.start_command_worker(worker_key, command_wrapper)
        except WorkerThreadAlreadyExistsError:
            self.logger.warning(f"A command for '{worker_key}' is still running, ignoring '{action}'.")
            self.mqtt_client.publish_event("command_rejected", action=action, error="busy")
