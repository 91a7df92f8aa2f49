# sprinkler_bridge/config/bridge_config.py

import hashlib

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_POLL_INTERVAL = 15          # seconds
DEFAULT_REQUEST_TIMEOUT = 10.0      # seconds
DEFAULT_RAIN_DELAY_HOURS = 24
MAX_RAIN_DELAY_HOURS = 32767        # controller limit for 'rd'


class PasswordConfig(BaseModel):
    """Device password, given either in plain text or already md5-hashed."""
    model_config = ConfigDict(frozen=True)

    plain: str | None = None
    md5: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "PasswordConfig":
        if bool(self.plain) == bool(self.md5):
            raise ValueError("Exactly one of 'plain' or 'md5' password must be set.")
        return self

    def hashed(self) -> str:
        """Returns the md5 hex digest the controller expects in the 'pw' parameter."""
        if self.md5:
            return self.md5.lower()
        return hashlib.md5(self.plain.encode("utf-8")).hexdigest()


class ValveConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    default_duration: int = Field(gt=0)         # seconds
    index: int | None = Field(default=None, ge=0)   # hardware station index, defaults to list position

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Valve name must not be blank.")
        return value


class RainDelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    hours: int = Field(default=DEFAULT_RAIN_DELAY_HOURS, gt=0, le=MAX_RAIN_DELAY_HOURS)


class MqttConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    host: str = "localhost"
    port: int = Field(default=1883, gt=0, lt=65536)
    base_topic: str = "opensprinkler"
    client_id: str | None = None


class BridgeConfig(BaseModel):
    """
    Validated configuration of one bridge instance (one controller).
    """
    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    password: PasswordConfig
    valves: list[ValveConfig] = Field(min_length=1)
    poll_interval: int = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    rain_delay: RainDelayConfig = RainDelayConfig()
    device_id: str | None = None                # used when the controller reports neither MAC nor location
    mqtt: MqttConfig = MqttConfig()

    @field_validator("rain_delay", mode="before")
    @classmethod
    def _rain_delay_shorthand(cls, value):
        # "rain_delay": 24 is accepted as "enabled for 24 hours", 0 / null as disabled
        if value is None or value is False:
            return {"enabled": False}
        if isinstance(value, bool):
            return {"enabled": True}
        if isinstance(value, int):
            return {"enabled": value > 0, "hours": value if value > 0 else DEFAULT_RAIN_DELAY_HOURS}
        return value

    @field_validator("valves")
    @classmethod
    def _assign_valve_indices(cls, valves: list[ValveConfig]) -> list[ValveConfig]:
        names = [valve.name for valve in valves]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Valve names must be unique, duplicated: {', '.join(duplicates)}")

        valves = [
            valve if valve.index is not None else valve.model_copy(update={"index": position})
            for position, valve in enumerate(valves)
        ]
        indices = [valve.index for valve in valves]
        if len(set(indices)) != len(indices):
            raise ValueError("Valve indices must be unique.")
        return valves
