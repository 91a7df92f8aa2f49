# sprinkler_bridge/interfaces.py

from typing import Protocol

from sprinkler_bridge.core.enums import ProgramStatus
from sprinkler_bridge.core.status_models import ValveStatus


# ==================================================================================================================
# DEVICE INTERFACES
# ==================================================================================================================

class ValveCommandClient(Protocol):
    """
    Valve's view of the device client.
    """

    def set_valve(self, enable: int, valve_index: int, duration_seconds: int) -> None:
        ...


class DeviceClientLike(ValveCommandClient, Protocol):
    """
    Controller's view of the device client.
    """

    def get_system_status(self) -> dict:
        ...

    def set_rain_delay(self, hours: int) -> None:
        ...


# ==================================================================================================================
# ACCESSORY INTERFACES
# ==================================================================================================================

class ControllerListener(Protocol):
    """
    Sink for state changes, implemented by the accessory side (MQTT bridge, dashboard, tests).
    Called from poll, countdown and command threads; implementations must not block for long.
    """

    def on_valve_changed(self, status: ValveStatus) -> None:
        ...

    def on_program_mode_changed(self, mode: ProgramStatus) -> None:
        ...

    def on_rain_delay_changed(self, enabled: bool) -> None:
        ...
