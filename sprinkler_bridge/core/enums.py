from enum import Enum


class ProgramStatus(str, Enum):
    """Aggregate irrigation-program status of the controller."""
    OFF = "off"                             # Nothing is running or scheduled
    SCHEDULED = "scheduled"                 # A device-side program is enabled
    MANUAL = "manual"                       # A valve was triggered directly, no program enabled
    OVERRIDE = "override"                   # A valve was triggered directly while a program is enabled


class ValvePhase(Enum):
    INACTIVE = "inactive"                   # active=False, in_use=False, remaining=0
    OPENING = "opening"                     # Commanded on, waiting for the controller to confirm
    ACTIVE = "active"                       # Water is flowing, countdown running
    CLOSING = "closing"                     # Commanded off, waiting for the controller to confirm


class HardwareModel(Enum):
    OSPI = 64
    OSBO = 128
    LINUX = 192
    DEMO = 255

    @property
    def label(self) -> str:
        return {
            HardwareModel.OSPI: "OSPi",
            HardwareModel.OSBO: "OSBo",
            HardwareModel.LINUX: "Linux",
            HardwareModel.DEMO: "Demo",
        }[self]
