# sprinkler_bridge/core/irrigation_controller.py

import threading

from collections.abc import Callable
from typing import Optional

import sprinkler_bridge.utils.time_utils as time_utils

from sprinkler_bridge.config.bridge_config import BridgeConfig
from sprinkler_bridge.controller.task_scheduler import TaskScheduler
from sprinkler_bridge.controller.thread_manager import TaskType, ThreadManager
from sprinkler_bridge.core.countdown_timer import CountdownTimer
from sprinkler_bridge.core.enums import ProgramStatus
from sprinkler_bridge.core.rain_delay import RainDelayState
from sprinkler_bridge.core.status_decoder import classify_program_status, decode_system_status
from sprinkler_bridge.core.status_models import DeviceInfo, SystemStatus, ValveStatus
from sprinkler_bridge.core.valve_state import ValveState
from sprinkler_bridge.interfaces import ControllerListener, DeviceClientLike
from sprinkler_bridge.utils.logger import get_logger


POLL_TASK_NAME = "poll_status"


class IrrigationController:
    """
    Owns every ValveState and the RainDelayState of one OpenSprinkler controller.

    Polls the controller periodically, reconciles the decoded status into local state, derives the
    program mode and forwards every change to the registered listeners. User intents enter through
    set_valve_active / set_valve_duration / set_rain_delay.
    """

    def __init__(self, config: BridgeConfig, client: DeviceClientLike, device_info: DeviceInfo,
                 listener: Optional[ControllerListener] = None,
                 countdown_factory: Callable[..., CountdownTimer] = CountdownTimer,
                 thread_manager: Optional[ThreadManager] = None,
                 clock: Callable[[], float] = time_utils.monotonic):
        self.logger = get_logger(self.__class__.__name__)
        self.config = config
        self.client = client
        self.device_info = device_info
        self.thread_manager = thread_manager or ThreadManager()
        self.task_scheduler: Optional[TaskScheduler] = None
        self._clock = clock

        self._listeners: list[ControllerListener] = []
        if listener is not None:
            self._listeners.append(listener)

        # insertion order = configuration order
        self.valves: dict[str, ValveState] = {}
        for valve_config in config.valves:
            valve = ValveState(valve_config, client, countdown_factory=countdown_factory, clock=clock)
            valve.add_listener(self._on_valve_changed)
            self.valves[valve.name] = valve

        self.rain_delay_state = RainDelayState(client, config.rain_delay.hours)
        self.rain_delay_state.add_listener(self._on_rain_delay_changed)

        self._mode_lock = threading.Lock()
        self._polled_manual = False
        self._polled_scheduled = False
        self._program_mode = ProgramStatus.OFF
        self._last_status: Optional[SystemStatus] = None

        self.logger.info(
            f"IrrigationController initialized for device '{device_info.device_identifier}' with {len(self.valves)} valves."
        )


    # ==================================================================================================================
    # Public API - Listeners
    # ==================================================================================================================

    def add_listener(self, listener: ControllerListener) -> None:
        self._listeners.append(listener)


    # ==================================================================================================================
    # Public API - Status and State retrieval
    # ==================================================================================================================

    @property
    def program_mode(self) -> ProgramStatus:
        with self._mode_lock:
            return self._program_mode

    @property
    def rain_delay(self) -> bool:
        return self.rain_delay_state.enabled

    @property
    def last_status(self) -> Optional[SystemStatus]:
        """Most recent successfully decoded poll, None before the first one."""
        return self._last_status

    def get_valve_status(self, name: str) -> ValveStatus:
        """
        :raises ValueError: if no valve with the given name is configured.
        """
        return self._get_valve(name).status

    def get_all_valve_statuses(self) -> list[ValveStatus]:
        return [valve.status for valve in self.valves.values()]

    def get_status_message(self) -> dict:
        """Full state as a JSON-serialisable dict."""
        return {
            "device": {
                "identifier": self.device_info.device_identifier,
                "firmware_version": self.device_info.firmware_version,
                "hardware_version": self.device_info.hardware_version,
                "manufacturer": self.device_info.manufacturer,
            },
            "program_mode": self.program_mode.value,
            "rain_delay": self.rain_delay,
            "valves": [status.to_dict() for status in self.get_all_valve_statuses()],
            "timestamp": time_utils.now_iso(),
        }


    # ==================================================================================================================
    # Public API - Polling
    # ==================================================================================================================

    def poll(self) -> Optional[SystemStatus]:
        """
        Run one poll iteration: fetch, decode and apply the controller status.

        Failures are logged and leave the local state untouched; the next iteration tries again.

        :return: the applied SystemStatus, or None if the iteration failed.
        """
        observed_at = self._clock()
        try:
            raw = self.client.get_system_status()
            status = decode_system_status(raw, self.config.valves, observed_at=observed_at)
        except Exception as e:
            self.logger.error(f"Failed to get valve statuses: {e}")
            return None

        try:
            self.apply_status(status)
        except Exception as e:
            self.logger.error(f"Failed to apply valve statuses: {e}")
            return None
        return status

    def apply_status(self, status: SystemStatus) -> None:
        """Reconcile a decoded poll into the valves, the rain delay and the program mode."""
        with self._mode_lock:
            self._polled_manual = status.is_manual
            self._polled_scheduled = status.is_scheduled

        for name, valve in self.valves.items():
            observed = status.valve_statuses.get(name)
            if observed is None:
                self.logger.warning(f"Valve '{name}' missing from polled status, skipping.")
                continue
            valve.reconcile(observed.is_active, observed.remaining_duration, observed_at=status.observed_at)

        if self.config.rain_delay.enabled:
            self.rain_delay_state.update(status.rain_delay)

        self._last_status = status
        self._recompute_program_mode()


    # ==================================================================================================================
    # Public API - Commands
    # ==================================================================================================================

    def set_valve_active(self, name: str, active: bool) -> None:
        """
        Turn a valve on (for its current duration) or off.

        :raises ValueError: if no valve with the given name is configured.
        :raises DeviceError: if the controller rejects the command or cannot be reached.
        """
        valve = self._get_valve(name)
        if active:
            valve.activate()
        else:
            valve.deactivate()

    def set_valve_duration(self, name: str, seconds: int) -> None:
        """
        Set the run duration used the next time the valve is turned on.

        :raises ValueError: if the valve is unknown or the duration is not positive.
        """
        self._get_valve(name).set_duration(seconds)

    def set_rain_delay(self, enabled: bool) -> None:
        """
        Start a rain delay of the configured length, or cancel it.

        :raises ValueError: if rain delay is not enabled in the configuration.
        :raises DeviceError: if the controller rejects the command or cannot be reached.
        """
        if not self.config.rain_delay.enabled:
            raise ValueError("Rain delay is not enabled in the configuration.")
        self.rain_delay_state.set_on(enabled)


    # ==================================================================================================================
    # Public API - Start & Shutdown
    # ==================================================================================================================

    def start(self) -> None:
        """Start polling the controller every `poll_interval` seconds. The first poll runs immediately."""
        if self.task_scheduler is not None:
            self.logger.warning("IrrigationController is already started.")
            return

        scheduler = TaskScheduler(self.thread_manager)
        scheduler.register_task(
            name=POLL_TASK_NAME,
            fn=self.poll,
            interval=self.config.poll_interval,
        )
        scheduler.start()
        self.task_scheduler = scheduler
        self.logger.info(f"Polling every {self.config.poll_interval} seconds.")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop polling, wait for the running poll and commands, then stop every countdown."""
        self.logger.info("Stopping IrrigationController...")
        if self.task_scheduler is not None:
            try:
                self.task_scheduler.stop(timeout=timeout)
            except TimeoutError as e:
                self.logger.error(f"Timeout while stopping the poll scheduler: {e}")
            self.task_scheduler = None

        for task_type in (TaskType.SCHEDULER, TaskType.COMMAND):
            try:
                self.thread_manager.join_all_workers(task_type, timeout=timeout)
            except TimeoutError as e:
                self.logger.error(f"Timeout while waiting for {task_type.value} workers: {e}")

        for valve in self.valves.values():
            valve.shutdown(timeout=timeout)
        self.logger.info("IrrigationController stopped.")


    # ==================================================================================================================
    # Private methods
    # ==================================================================================================================

    def _get_valve(self, name: str) -> ValveState:
        try:
            return self.valves[name]
        except KeyError:
            raise ValueError(f"Valve '{name}' is not configured.") from None

    def _recompute_program_mode(self) -> bool:
        with self._mode_lock:
            # a locally started run counts as manual even before the controller reports it
            local_manual = any(valve.has_manual_countdown for valve in self.valves.values())
            mode = classify_program_status(self._polled_manual or local_manual, self._polled_scheduled)
            if mode == self._program_mode:
                return False
            previous = self._program_mode
            self._program_mode = mode

        self.logger.info(f"Program mode changed: {previous.value} -> {mode.value}")
        for listener in list(self._listeners):
            try:
                listener.on_program_mode_changed(mode)
            except Exception as e:
                self.logger.error(f"Listener failed on program mode change: {e}")
        return True

    def _on_valve_changed(self, status: ValveStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_valve_changed(status)
            except Exception as e:
                self.logger.error(f"Listener failed on change of valve '{status.name}': {e}")
        self._recompute_program_mode()

    def _on_rain_delay_changed(self, enabled: bool) -> None:
        self.logger.info(f"Rain delay is {'on' if enabled else 'off'}.")
        for listener in list(self._listeners):
            try:
                listener.on_rain_delay_changed(enabled)
            except Exception as e:
                self.logger.error(f"Listener failed on rain delay change: {e}")
