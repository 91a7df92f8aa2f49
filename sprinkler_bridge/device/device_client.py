# sprinkler_bridge/device/device_client.py

import requests

from sprinkler_bridge.core.enums import HardwareModel
from sprinkler_bridge.core.status_models import DeviceInfo
from sprinkler_bridge.device.payloads import parse_info_payload
from sprinkler_bridge.exceptions import CommandRejectedError, ConfigurationError, ProtocolError, TransportError
from sprinkler_bridge.utils.logger import get_logger


# Endpoints
ENDPOINT_ALL = "ja"             # JSON all: options, settings, programs, station status
ENDPOINT_OPTIONS = "jo"         # JSON options
ENDPOINT_MANUAL_STATION = "cm"  # manual station run
ENDPOINT_CHANGE_VALUES = "cv"   # change controller variables (rain delay)

RESULT_SUCCESS = 1
MIN_SUPPORTED_FIRMWARE = 216
DEFAULT_TIMEOUT = 10.0          # seconds


class DeviceClient:
    """
    Stateless HTTP client for the sprinkler controller.

    Holds only connection parameters; safe to share between the poll loop and command workers.
    """

    def __init__(self, host: str, password_hash: str, timeout: float = DEFAULT_TIMEOUT,
                 session: requests.Session | None = None):
        self.base_url = host.rstrip("/") if host.startswith(("http://", "https://")) else f"http://{host}"
        self._password = password_hash
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger(self.__class__.__name__)


    # ===========================================================================================================
    # Public API - Queries
    # ===========================================================================================================

    def get_info(self, fallback_identifier: str | None = None) -> DeviceInfo:
        """
        Fetches the controller identity.

        :param fallback_identifier: identifier used when the controller reports neither MAC nor location.
        :return: DeviceInfo with formatted firmware and hardware versions.
        :raises ConfigurationError: if no stable identifier is available.
        :raises TransportError, ProtocolError: on request or payload failures.
        """
        payload = parse_info_payload(self._request(ENDPOINT_ALL))

        mac = payload.settings.mac or None
        location = payload.settings.loc or None
        identifier = mac or location or fallback_identifier
        if not identifier:
            raise ConfigurationError(
                "Controller reported neither a MAC address nor a location; set 'device_id' in the configuration."
            )

        info = DeviceInfo(
            firmware_version=format_firmware_version(payload.options.fwv),
            hardware_version=format_hardware_version(payload.options.hwv),
            device_identifier=identifier,
            mac_address=mac,
            system_location=location,
        )
        self.logger.info(
            f"Controller identified: firmware {info.firmware_version}, hardware {info.hardware_version}, id {info.device_identifier}"
        )
        return info

    def get_system_status(self) -> dict:
        """
        Fetches the aggregate status payload. No interpretation is done here.

        :raises TransportError, ProtocolError: on request or decode failures.
        """
        return self._request(ENDPOINT_ALL)

    def check_support(self) -> bool:
        """Returns True if the controller firmware exposes the status fields the bridge relies on."""
        data = self._request(ENDPOINT_OPTIONS)
        try:
            firmware = int(data["fwv"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Unexpected options payload, missing firmware version: {data}") from e
        return firmware >= MIN_SUPPORTED_FIRMWARE


    # ===========================================================================================================
    # Public API - Commands
    # ===========================================================================================================

    def set_valve(self, enable: int, valve_index: int, duration_seconds: int) -> None:
        """
        Turns a station on (enable=1) for duration_seconds, or off (enable=0).

        :raises CommandRejectedError: if the controller does not answer with the success code.
        :raises TransportError, ProtocolError: on request or decode failures.
        """
        self.logger.debug(f"Setting valve {valve_index} to {enable} for {duration_seconds} seconds.")
        data = self._request(ENDPOINT_MANUAL_STATION, {"sid": valve_index, "en": enable, "t": duration_seconds})
        self._expect_success(data, "Failed to set valve")

    def set_rain_delay(self, hours: int) -> None:
        """
        Sets the rain delay in hours; 0 cancels an active delay.

        :raises CommandRejectedError: if the controller does not answer with the success code.
        :raises TransportError, ProtocolError: on request or decode failures.
        """
        self.logger.debug(f"Setting rain delay to {hours} hours.")
        data = self._request(ENDPOINT_CHANGE_VALUES, {"rd": hours})
        self._expect_success(data, "Failed to set rain delay")


    # ===========================================================================================================
    # Private Methods
    # ===========================================================================================================

    def _request(self, endpoint: str, params: dict | None = None):
        query = {"pw": self._password}
        if params:
            query.update(params)
        url = f"{self.base_url}/{endpoint}"

        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransportError(endpoint, None, f"timed out after {self.timeout} seconds") from e
        except requests.RequestException as e:
            raise TransportError(endpoint, None, str(e)) from e

        if not response.ok:
            raise TransportError(endpoint, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"Response from {endpoint} is not valid JSON: {e}") from e

    @staticmethod
    def _expect_success(data, message: str) -> None:
        result = data.get("result") if isinstance(data, dict) else None
        if result != RESULT_SUCCESS:
            raise CommandRejectedError(message, result_code=result)


# ===========================================================================================================
# Formatting helpers
# ===========================================================================================================

def format_firmware_version(fwv: int) -> str:
    """219 -> '2.1.9'"""
    return ".".join(str(fwv))


def format_hardware_version(hwv: int | str | None) -> str:
    """Known hardware codes map to model names, other numbers to 'tens.ones', strings pass through."""
    if hwv is None:
        return "Unknown"
    if isinstance(hwv, str):
        return hwv
    try:
        return HardwareModel(hwv).label
    except ValueError:
        return f"{(hwv // 10) % 10}.{hwv % 10}"
