# sprinkler_bridge/config/config_loader.py

import json

from pydantic import ValidationError

from sprinkler_bridge.config.bridge_config import BridgeConfig
from sprinkler_bridge.config.secrets import password_from_env
from sprinkler_bridge.exceptions import ConfigurationError
from sprinkler_bridge.utils.logger import get_logger


logger = get_logger("config_loader")


def load_bridge_config(filepath: str) -> BridgeConfig:
    """
    Loads the bridge configuration from a JSON file.

    The password may be left out of the file and supplied through the environment instead
    (see sprinkler_bridge.config.secrets); a password from the environment overrides the file.

    :param filepath: Path to the JSON configuration file.
    :return: Validated BridgeConfig.
    :raises ConfigurationError: if the file is missing, is not valid JSON, or fails validation.
    """
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file '{filepath}' not found.") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file '{filepath}' is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{filepath}' must contain a JSON object.")

    return config_from_dict(data)


def config_from_dict(data: dict) -> BridgeConfig:
    """
    Validates a configuration dictionary and creates the BridgeConfig.

    :raises ConfigurationError: listing every validation problem found.
    """
    data = dict(data)
    env_password = password_from_env()
    if env_password is not None:
        logger.debug("Using device password from environment.")
        data["password"] = env_password

    try:
        config = BridgeConfig.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        logger.error(f"Invalid configuration: {'; '.join(errors)}")
        raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}") from e

    logger.info(
        f"Configuration loaded: host={config.host}, valves={[valve.name for valve in config.valves]}, "
        f"poll_interval={config.poll_interval}s, rain_delay={'on' if config.rain_delay.enabled else 'off'}"
    )
    return config


def _format_errors(error: ValidationError) -> list[str]:
    """Turns pydantic errors into 'location: message' strings."""
    errors = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "config"
        errors.append(f"{location}: {item.get('msg')}")
    return errors
