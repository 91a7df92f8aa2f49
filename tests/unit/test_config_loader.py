import hashlib
import json

import pytest

from sprinkler_bridge.config.bridge_config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RAIN_DELAY_HOURS,
    DEFAULT_REQUEST_TIMEOUT,
    BridgeConfig,
    PasswordConfig,
)
from sprinkler_bridge.config.config_loader import config_from_dict, load_bridge_config
from sprinkler_bridge.config.secrets import PASSWORD_ENV_VAR, PASSWORD_MD5_ENV_VAR
from sprinkler_bridge.exceptions import ConfigurationError


# ---------------------- Fixtures ----------------------

@pytest.fixture(autouse=True)
def no_password_env(monkeypatch):
    monkeypatch.delenv(PASSWORD_ENV_VAR, raising=False)
    monkeypatch.delenv(PASSWORD_MD5_ENV_VAR, raising=False)


@pytest.fixture
def valid_config_dict():
    return {
        "host": "192.168.1.50",
        "password": {"plain": "opendoor"},
        "valves": [
            {"name": "Front yard", "default_duration": 300},
            {"name": "Back yard", "default_duration": 600},
        ],
    }


@pytest.fixture
def config_file(tmp_path, valid_config_dict):
    path = tmp_path / "bridge_config.json"
    path.write_text(json.dumps(valid_config_dict), encoding="utf-8")
    return path


# ---------------------- Tests: loading ----------------------

def test_load_valid_config_applies_defaults(config_file):
    config = load_bridge_config(str(config_file))

    assert isinstance(config, BridgeConfig)
    assert config.host == "192.168.1.50"
    assert config.poll_interval == DEFAULT_POLL_INTERVAL
    assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT
    assert config.rain_delay.enabled is False
    assert config.rain_delay.hours == DEFAULT_RAIN_DELAY_HOURS
    assert config.mqtt.enabled is False
    assert [valve.index for valve in config.valves] == [0, 1]


def test_missing_file_raises_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_bridge_config(str(tmp_path / "missing.json"))


def test_invalid_json_raises_configuration_error(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{ not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_bridge_config(str(path))


def test_non_object_json_raises_configuration_error(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_bridge_config(str(path))


# ---------------------- Tests: validation ----------------------

def test_duplicate_valve_names_are_rejected(valid_config_dict):
    valid_config_dict["valves"][1]["name"] = "Front yard"

    with pytest.raises(ConfigurationError, match="unique"):
        config_from_dict(valid_config_dict)


def test_duplicate_valve_indices_are_rejected(valid_config_dict):
    valid_config_dict["valves"][1]["index"] = 0

    with pytest.raises(ConfigurationError):
        config_from_dict(valid_config_dict)


def test_explicit_valve_index_is_kept(valid_config_dict):
    valid_config_dict["valves"][1]["index"] = 5

    config = config_from_dict(valid_config_dict)

    assert [valve.index for valve in config.valves] == [0, 5]


@pytest.mark.parametrize("duration", [0, -10])
def test_non_positive_default_duration_is_rejected(valid_config_dict, duration):
    valid_config_dict["valves"][0]["default_duration"] = duration

    with pytest.raises(ConfigurationError, match="valves"):
        config_from_dict(valid_config_dict)


def test_empty_valve_list_is_rejected(valid_config_dict):
    valid_config_dict["valves"] = []

    with pytest.raises(ConfigurationError):
        config_from_dict(valid_config_dict)


def test_missing_host_is_rejected(valid_config_dict):
    del valid_config_dict["host"]

    with pytest.raises(ConfigurationError, match="host"):
        config_from_dict(valid_config_dict)


@pytest.mark.parametrize(
        "value, enabled, hours",
        [
            (12, True, 12),
            (0, False, DEFAULT_RAIN_DELAY_HOURS),
            (True, True, DEFAULT_RAIN_DELAY_HOURS),
            (None, False, DEFAULT_RAIN_DELAY_HOURS),
            ({"enabled": True, "hours": 48}, True, 48),
        ]
)
def test_rain_delay_forms(valid_config_dict, value, enabled, hours):
    valid_config_dict["rain_delay"] = value

    config = config_from_dict(valid_config_dict)

    assert config.rain_delay.enabled is enabled
    assert config.rain_delay.hours == hours


# ---------------------- Tests: password ----------------------

def test_plain_password_is_md5_hashed():
    password = PasswordConfig(plain="opendoor")

    assert password.hashed() == hashlib.md5(b"opendoor").hexdigest()


def test_md5_password_is_used_as_is():
    password = PasswordConfig(md5="A6D82BCED638DE3DEF1E9BBB4983225C")

    assert password.hashed() == "a6d82bced638de3def1e9bbb4983225c"


@pytest.mark.parametrize("password", [{}, {"plain": "x", "md5": "y"}])
def test_password_needs_exactly_one_form(valid_config_dict, password):
    valid_config_dict["password"] = password

    with pytest.raises(ConfigurationError, match="password"):
        config_from_dict(valid_config_dict)


def test_password_from_environment_overrides_file(monkeypatch, valid_config_dict):
    monkeypatch.setenv(PASSWORD_MD5_ENV_VAR, "0123456789abcdef0123456789abcdef")

    config = config_from_dict(valid_config_dict)

    assert config.password.hashed() == "0123456789abcdef0123456789abcdef"


def test_password_may_come_only_from_environment(monkeypatch, valid_config_dict):
    del valid_config_dict["password"]
    monkeypatch.setenv(PASSWORD_ENV_VAR, "opendoor")

    config = config_from_dict(valid_config_dict)

    assert config.password.plain == "opendoor"
