# sprinkler_bridge/core/status_decoder.py

"""
Pure functions turning the controller's raw status payload into a SystemStatus.

No state is kept here; the same payload and valve list always decode to the same result.
"""

from collections.abc import Sequence
from typing import Any, Optional

from sprinkler_bridge.config.bridge_config import ValveConfig
from sprinkler_bridge.core.enums import ProgramStatus
from sprinkler_bridge.core.status_models import ObservedValve, SystemStatus
from sprinkler_bridge.device.payloads import (
    MANUAL_PROGRAM_ID,
    PROGRAM_ENABLED_BIT,
    StatusPayload,
    parse_status_payload,
)
from sprinkler_bridge.exceptions import ProtocolError


def decode_system_status(raw: Any, valves: Sequence[ValveConfig],
                         observed_at: Optional[float] = None) -> SystemStatus:
    """
    Decode one raw poll payload.

    :param raw: JSON-decoded payload as returned by DeviceClient.get_system_status.
    :param valves: configured valves, in configuration order.
    :param observed_at: monotonic time the poll request was issued, carried through for reconciliation.
    :return: SystemStatus for the configured valves only.
    :raises ProtocolError: if the payload is malformed or lacks a configured valve.
    """
    payload = parse_status_payload(raw)
    manual = is_manual(payload)
    scheduled = is_scheduled(payload)
    return SystemStatus(
        valve_statuses=decode_valve_statuses(payload, valves),
        rain_delay=decode_rain_delay(payload),
        program_status=classify_program_status(manual, scheduled),
        is_manual=manual,
        is_scheduled=scheduled,
        observed_at=observed_at,
    )


def decode_valve_statuses(payload: StatusPayload, valves: Sequence[ValveConfig]) -> dict[str, ObservedValve]:
    """
    Map the device's station arrays onto the configured valves.

    The device may report more stations than are configured; the extra ones are ignored.
    Configuration order decides which station slot belongs to which name.
    """
    station_bits = payload.status.sn
    station_programs = payload.settings.ps

    statuses: dict[str, ObservedValve] = {}
    for position, valve in enumerate(valves):
        slot = valve.index if valve.index is not None else position
        if slot >= len(station_bits) or slot >= len(station_programs):
            raise ProtocolError(
                f"Controller reports {len(station_bits)} stations, valve '{valve.name}' expects station {slot}."
            )
        statuses[valve.name] = ObservedValve(
            is_active=station_bits[slot] != 0,
            remaining_duration=max(int(station_programs[slot][1]), 0),
        )
    return statuses


def is_manual(payload: StatusPayload) -> bool:
    """True if any station was started directly rather than by a program."""
    return any(entry[0] == MANUAL_PROGRAM_ID for entry in payload.settings.ps)


def is_scheduled(payload: StatusPayload) -> bool:
    """True if any program has its enabled bit set."""
    return any((flag & PROGRAM_ENABLED_BIT) != 0 for flag in payload.programs.flags)


def classify_program_status(manual: bool, scheduled: bool) -> ProgramStatus:
    if manual and scheduled:
        return ProgramStatus.OVERRIDE
    if manual:
        return ProgramStatus.MANUAL
    if scheduled:
        return ProgramStatus.SCHEDULED
    return ProgramStatus.OFF


def decode_rain_delay(payload: StatusPayload) -> bool:
    return payload.settings.rd != 0
