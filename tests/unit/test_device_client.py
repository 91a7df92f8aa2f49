import pytest
import requests

from unittest.mock import MagicMock

from sprinkler_bridge.device.device_client import (
    DeviceClient,
    format_firmware_version,
    format_hardware_version,
)
from sprinkler_bridge.exceptions import (
    CommandRejectedError,
    ConfigurationError,
    DeviceError,
    ProtocolError,
    TransportError,
)


# ---------------------- Fakes ----------------------

def make_response(json_data=None, ok=True, status_code=200, text=""):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.text = text
    response.json.return_value = json_data
    return response


# ---------------------- Fixtures ----------------------

@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return DeviceClient("192.168.1.50", "a6d82bced638de3def1e9bbb4983225c", timeout=10.0, session=session)


def info_payload(fwv=219, hwv=64, mac="AA:BB:CC:DD:EE:FF", loc="Prague"):
    settings = {"ps": [[0, 0, 0]], "rd": 0}
    if mac is not None:
        settings["mac"] = mac
    if loc is not None:
        settings["loc"] = loc
    return {"options": {"fwv": fwv, "hwv": hwv}, "settings": settings, "status": {"sn": [0]}, "programs": {"pd": []}}


# ---------------------- Tests: get_info ----------------------

def test_get_info_formats_versions_and_prefers_mac(client, session):
    session.get.return_value = make_response(info_payload())

    info = client.get_info()

    assert info.firmware_version == "2.1.9"
    assert info.hardware_version == "OSPi"
    assert info.device_identifier == "AA:BB:CC:DD:EE:FF"
    assert info.mac_address == "AA:BB:CC:DD:EE:FF"
    assert info.system_location == "Prague"
    assert info.manufacturer == "OpenSprinkler"
    session.get.assert_called_once_with(
        "http://192.168.1.50/ja",
        params={"pw": "a6d82bced638de3def1e9bbb4983225c"},
        timeout=10.0,
    )


def test_get_info_falls_back_to_location(client, session):
    session.get.return_value = make_response(info_payload(mac=None, loc="Garden"))

    assert client.get_info().device_identifier == "Garden"


def test_get_info_uses_configured_identifier_when_device_reports_none(client, session):
    session.get.return_value = make_response(info_payload(mac="", loc=None))

    assert client.get_info(fallback_identifier="backyard").device_identifier == "backyard"


def test_get_info_without_any_identifier_is_a_configuration_error(client, session):
    session.get.return_value = make_response(info_payload(mac=None, loc=None))

    with pytest.raises(ConfigurationError):
        client.get_info()


def test_get_info_rejects_payload_without_options(client, session):
    session.get.return_value = make_response({"settings": {}})

    with pytest.raises(ProtocolError):
        client.get_info()


@pytest.mark.parametrize(
        "fwv, expected",
        [
            (219, "2.1.9"),
            (216, "2.1.6"),
            (2191, "2.1.9.1"),
        ]
)
def test_format_firmware_version(fwv, expected):
    assert format_firmware_version(fwv) == expected


@pytest.mark.parametrize(
        "hwv, expected",
        [
            (64, "OSPi"),
            (128, "OSBo"),
            (192, "Linux"),
            (255, "Demo"),
            (2, "0.2"),
            (23, "2.3"),
            ("3.0 DC", "3.0 DC"),
            (None, "Unknown"),
        ]
)
def test_format_hardware_version(hwv, expected):
    assert format_hardware_version(hwv) == expected


# ---------------------- Tests: commands ----------------------

def test_set_valve_sends_station_parameters(client, session):
    session.get.return_value = make_response({"result": 1})

    client.set_valve(1, 2, 600)

    session.get.assert_called_once_with(
        "http://192.168.1.50/cm",
        params={"pw": "a6d82bced638de3def1e9bbb4983225c", "sid": 2, "en": 1, "t": 600},
        timeout=10.0,
    )


def test_set_valve_rejected_by_controller(client, session):
    session.get.return_value = make_response({"result": 2})

    with pytest.raises(CommandRejectedError) as exc_info:
        client.set_valve(0, 0, 300)

    assert str(exc_info.value) == "Failed to set valve"
    assert exc_info.value.result_code == 2


def test_set_rain_delay_sends_hours(client, session):
    session.get.return_value = make_response({"result": 1})

    client.set_rain_delay(24)

    _, kwargs = session.get.call_args
    assert session.get.call_args[0][0] == "http://192.168.1.50/cv"
    assert kwargs["params"]["rd"] == 24


def test_set_rain_delay_rejected_by_controller(client, session):
    session.get.return_value = make_response({"result": 0})

    with pytest.raises(CommandRejectedError, match="Failed to set rain delay"):
        client.set_rain_delay(0)


# ---------------------- Tests: transport ----------------------

def test_non_2xx_response_raises_transport_error_with_details(client, session):
    session.get.return_value = make_response(ok=False, status_code=401, text="Unauthorized")

    with pytest.raises(TransportError) as exc_info:
        client.set_valve(1, 0, 60)

    error = exc_info.value
    assert error.endpoint == "cm"
    assert error.status_code == 401
    assert error.body == "Unauthorized"
    assert str(error) == "Request to cm failed. Status Code: 401 Message: Unauthorized"


def test_timeout_raises_transport_error_without_status(client, session):
    session.get.side_effect = requests.Timeout("read timed out")

    with pytest.raises(TransportError) as exc_info:
        client.get_system_status()

    assert exc_info.value.status_code is None
    assert exc_info.value.endpoint == "ja"


def test_connection_failure_is_a_device_error(client, session):
    session.get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(DeviceError):
        client.get_system_status()


def test_invalid_json_raises_protocol_error(client, session):
    response = make_response()
    response.json.side_effect = ValueError("Expecting value")
    session.get.return_value = response

    with pytest.raises(ProtocolError):
        client.get_system_status()


def test_host_with_scheme_is_kept(session):
    client = DeviceClient("https://os.local/", "hash", session=session)

    assert client.base_url == "https://os.local"


# ---------------------- Tests: check_support ----------------------

@pytest.mark.parametrize(
        "fwv, supported",
        [
            (216, True),
            (219, True),
            (215, False),
        ]
)
def test_check_support(client, session, fwv, supported):
    session.get.return_value = make_response({"fwv": fwv, "hwv": 64})

    assert client.check_support() is supported
    assert session.get.call_args[0][0] == "http://192.168.1.50/jo"


def test_check_support_without_firmware_raises_protocol_error(client, session):
    session.get.return_value = make_response({"hwv": 64})

    with pytest.raises(ProtocolError):
        client.check_support()
