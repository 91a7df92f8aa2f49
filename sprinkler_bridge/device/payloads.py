# sprinkler_bridge/device/payloads.py

"""
Typed views of the controller's JSON payloads.

The controller answers `/ja` with one nested object; only the parts the bridge reads are modelled,
everything else is ignored. Shape problems surface as ProtocolError at this boundary instead of
as KeyError/IndexError deep inside the reconciliation code.
"""

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from sprinkler_bridge.exceptions import ProtocolError


MANUAL_PROGRAM_ID = 99          # program id the controller stores for directly triggered stations
PROGRAM_ENABLED_BIT = 0x01      # bit 0 of a program's flag byte


class OptionsPayload(BaseModel):
    fwv: int
    hwv: int | str | None = None


class SettingsPayload(BaseModel):
    ps: list[list[int]] = Field(default_factory=list)   # per station [program id, remaining seconds, start time]
    rd: int = 0                                         # rain delay active flag
    mac: str | None = None
    loc: str | None = None

    @field_validator("ps")
    @classmethod
    def _triples_have_remaining(cls, value: list[list[int]]) -> list[list[int]]:
        for position, entry in enumerate(value):
            if len(entry) < 2:
                raise ValueError(f"station entry {position} must hold at least [program id, remaining seconds]")
        return value


class StationStatusPayload(BaseModel):
    sn: list[int]                                       # station on/off bits


class ProgramsPayload(BaseModel):
    pd: list[list[Any]] = Field(default_factory=list)   # program data, first element is the flag byte

    @field_validator("pd")
    @classmethod
    def _programs_have_flag(cls, value: list[list[Any]]) -> list[list[Any]]:
        for position, program in enumerate(value):
            if not program or not isinstance(program[0], int) or isinstance(program[0], bool):
                raise ValueError(f"program {position} must start with an integer flag byte")
        return value

    @property
    def flags(self) -> list[int]:
        return [program[0] for program in self.pd]


class InfoPayload(BaseModel):
    options: OptionsPayload
    settings: SettingsPayload = Field(default_factory=SettingsPayload)


class StatusPayload(BaseModel):
    status: StationStatusPayload
    settings: SettingsPayload
    programs: ProgramsPayload = Field(default_factory=ProgramsPayload)


# ===========================================================================================================
# Parsing helpers
# ===========================================================================================================

def parse_info_payload(raw: Any) -> InfoPayload:
    """
    Validates a raw `/ja` answer for the fields needed by DeviceClient.get_info.

    :raises ProtocolError: if the payload does not have the expected shape.
    """
    return _parse(InfoPayload, raw, "device info")


def parse_status_payload(raw: Any) -> StatusPayload:
    """
    Validates a raw `/ja` answer for the fields needed by the status decoder.

    :raises ProtocolError: if the payload does not have the expected shape.
    """
    return _parse(StatusPayload, raw, "system status")


def _parse(model: type[BaseModel], raw: Any, what: str):
    if not isinstance(raw, dict):
        raise ProtocolError(f"Unexpected {what} payload: expected a JSON object, got {type(raw).__name__}.")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in item.get('loc', ()))}: {item.get('msg')}" for item in e.errors()
        )
        raise ProtocolError(f"Unexpected {what} payload: {problems}") from e
