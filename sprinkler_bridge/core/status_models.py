"""
Data models describing device-observed and locally held state.

- `ObservedValve` / `SystemStatus` are produced from one poll by the status decoder
- `ValveStatus` is an immutable snapshot of a `ValveState`, handed to listeners
- `DeviceInfo` describes the controller itself
"""

from dataclasses import dataclass, field
from typing import Optional

from sprinkler_bridge.core.enums import ProgramStatus, ValvePhase


# ========================================
# Device-observed state (one poll)
# ========================================

@dataclass(frozen=True)
class ObservedValve:
    """State of one valve as reported by the controller."""
    is_active: bool
    remaining_duration: int


@dataclass(frozen=True)
class SystemStatus:
    """Decoded result of one status poll. Never persisted."""
    valve_statuses: dict[str, ObservedValve]
    rain_delay: bool
    program_status: ProgramStatus
    is_manual: bool = False
    is_scheduled: bool = False
    observed_at: Optional[float] = None     # monotonic time the poll request was issued


# ========================================
# Local valve state snapshot (ValveState)
# ========================================

@dataclass(frozen=True)
class ValveStatus:
    """Snapshot of a valve's locally held state."""
    name: str
    index: int
    active: bool
    in_use: bool
    remaining_duration: int
    manually_triggered: bool
    duration: int

    @property
    def phase(self) -> ValvePhase:
        if self.active and self.in_use:
            return ValvePhase.ACTIVE
        if self.active:
            return ValvePhase.OPENING
        if self.in_use:
            return ValvePhase.CLOSING
        return ValvePhase.INACTIVE

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "index": self.index,
            "active": self.active,
            "in_use": self.in_use,
            "remaining_duration": self.remaining_duration,
            "manually_triggered": self.manually_triggered,
            "duration": self.duration,
        }


# ========================================
# Controller identity
# ========================================

@dataclass(frozen=True)
class DeviceInfo:
    firmware_version: str
    hardware_version: str
    device_identifier: str
    mac_address: Optional[str] = None
    system_location: Optional[str] = None
    manufacturer: str = field(default="OpenSprinkler")
