import pytest

from sprinkler_bridge.config.bridge_config import ValveConfig
from sprinkler_bridge.core.enums import ProgramStatus
from sprinkler_bridge.core.status_decoder import (
    classify_program_status,
    decode_rain_delay,
    decode_system_status,
    is_manual,
    is_scheduled,
)
from sprinkler_bridge.core.status_models import ObservedValve
from sprinkler_bridge.device.payloads import parse_status_payload
from sprinkler_bridge.exceptions import ProtocolError


# ---------------------- Fixtures ----------------------

def valves(*names):
    return [ValveConfig(name=name, default_duration=300, index=position) for position, name in enumerate(names)]


def payload(sn=(1, 0), ps=((0, 30, 123456), (1, 0, 123456)), rd=0, pd=((48,),)):
    return {
        "status": {"sn": list(sn)},
        "settings": {"ps": [list(entry) for entry in ps], "rd": rd},
        "programs": {"pd": [list(program) for program in pd]},
    }


# ---------------------- Tests: valve statuses ----------------------

def test_valve_statuses_follow_configuration_order():
    status = decode_system_status(
        payload(sn=[1, 0], ps=[[0, 30, 123456], [0, 0, 123456]]),
        valves("Front yard", "Back yard"),
    )

    assert status.valve_statuses == {
        "Front yard": ObservedValve(is_active=True, remaining_duration=30),
        "Back yard": ObservedValve(is_active=False, remaining_duration=0),
    }


def test_only_configured_valves_are_reported():
    status = decode_system_status(payload(), valves("Front yard"))

    assert list(status.valve_statuses) == ["Front yard"]


def test_valve_index_selects_device_slot():
    status = decode_system_status(
        payload(sn=[0, 0, 1], ps=[[0, 0, 0], [0, 0, 0], [99, 45, 0]]),
        [ValveConfig(name="Drip", default_duration=300, index=2)],
    )

    assert status.valve_statuses["Drip"] == ObservedValve(is_active=True, remaining_duration=45)


def test_missing_configured_slot_raises_protocol_error():
    with pytest.raises(ProtocolError):
        decode_system_status(payload(), valves("A", "B", "C"))


@pytest.mark.parametrize(
        "raw",
        [
            None,
            [],
            {"settings": {"ps": [], "rd": 0}},
            {"status": {"sn": [1]}, "settings": {"ps": [[0]], "rd": 0}},
            {"status": {"sn": [1]}, "settings": {"ps": [[0, 0, 0]], "rd": 0}, "programs": {"pd": [[]]}},
        ]
)
def test_malformed_payload_raises_protocol_error(raw):
    with pytest.raises(ProtocolError):
        decode_system_status(raw, valves("Front yard"))


def test_observed_at_is_carried_through():
    status = decode_system_status(payload(), valves("Front yard"), observed_at=12.5)

    assert status.observed_at == 12.5


# ---------------------- Tests: program status ----------------------

@pytest.mark.parametrize(
        "flag, scheduled",
        [
            (48, False),
            (49, True),
            (0, False),
            (1, True),
        ]
)
def test_program_flag_bit_zero_means_scheduled(flag, scheduled):
    assert is_scheduled(parse_status_payload(payload(pd=[[flag, 0, 0]]))) is scheduled


def test_manual_program_id_in_any_station_entry():
    raw = payload(sn=[1, 0], ps=[[0, 30, 0], [1, 0, 0], [2, 0, 0], [99, 0, 0]])

    assert is_manual(parse_status_payload(raw)) is True


def test_no_manual_program_id():
    assert is_manual(parse_status_payload(payload())) is False


@pytest.mark.parametrize(
        "first_program_id, flag, expected",
        [
            (99, 49, ProgramStatus.OVERRIDE),
            (99, 48, ProgramStatus.MANUAL),
            (0, 49, ProgramStatus.SCHEDULED),
            (0, 48, ProgramStatus.OFF),
        ]
)
def test_program_status_classification(first_program_id, flag, expected):
    raw = payload(ps=[[first_program_id, 30, 0], [1, 0, 0]], pd=[[flag]])

    status = decode_system_status(raw, valves("Front yard"))

    assert status.program_status == expected


def test_no_programs_is_not_scheduled():
    status = decode_system_status(payload(pd=[]), valves("Front yard"))

    assert status.is_scheduled is False
    assert status.program_status == ProgramStatus.OFF


@pytest.mark.parametrize(
        "manual, scheduled, expected",
        [
            (True, True, ProgramStatus.OVERRIDE),
            (True, False, ProgramStatus.MANUAL),
            (False, True, ProgramStatus.SCHEDULED),
            (False, False, ProgramStatus.OFF),
        ]
)
def test_classify_program_status(manual, scheduled, expected):
    assert classify_program_status(manual, scheduled) == expected


# ---------------------- Tests: rain delay ----------------------

@pytest.mark.parametrize("rd, expected", [(0, False), (1, True)])
def test_rain_delay_flag(rd, expected):
    assert decode_rain_delay(parse_status_payload(payload(rd=rd))) is expected
    assert decode_system_status(payload(rd=rd), valves("Front yard")).rain_delay is expected
