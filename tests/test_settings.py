import pytest

from cncfeeder.protocol import (
    SERIAL_PORT,
    XOFF,
    XOFF2,
    DataBits,
    FlowControl,
    Parity,
    StopBits,
)
from cncfeeder.settings import PortSettings, normalize_xoff_byte


def _custom() -> PortSettings:
    return PortSettings(
        port_name="/dev/ttyUSB0",
        baud_rate=115200,
        data_bits=DataBits.EIGHT,
        stop_bits=StopBits.ONE,
        parity=Parity.ODD,
        flow_control=FlowControl.GRBL,
        packet_length=10,
        packet_delay=1,
        use_rx_flow_control=True,
        use_start_stop_char=True,
        start_stop_char=ord("%"),
        xoff_byte=XOFF2,
    )


def test_round_trip_default_prefix():
    original = _custom()
    assert PortSettings.from_mapping(original.to_mapping()) == original


def test_round_trip_custom_prefix():
    original = _custom()
    mapping = original.to_mapping("Feeder")
    assert all(key.startswith("Feeder.") for key in mapping)
    assert PortSettings.from_mapping(mapping, "Feeder") == original


def test_round_trip_defaults():
    original = PortSettings()
    assert PortSettings.from_mapping(original.to_mapping()) == original


def test_mapping_pins_source_strings():
    mapping = _custom().to_mapping()
    assert mapping["CNCSerial.XOFFByte"] == "0x93"
    assert mapping["CNCSerial.Port.Parity"] == "ODD"
    assert mapping["CNCSerial.Port.FlowControl"] == "GRBL"
    assert mapping["CNCSerial.StartStopChar"] == "%"


def test_default_xoff_written_as_0x13():
    assert PortSettings().to_mapping()["CNCSerial.XOFFByte"] == "0x13"


def test_missing_keys_keep_port_values_and_reset_switches():
    settings = _custom()
    settings.update_from_mapping({})
    assert settings.port_name == "/dev/ttyUSB0"
    assert settings.baud_rate == 115200
    assert settings.parity == Parity.ODD
    assert settings.xoff_byte == XOFF
    assert settings.use_rx_flow_control is False
    assert settings.use_start_stop_char is False
    assert settings.start_stop_char == 0


def test_empty_mapping_gives_port_default():
    assert PortSettings.from_mapping({}).port_name == SERIAL_PORT


@pytest.mark.parametrize(
    "text, expected",
    [("10", 50), ("abc", 50), ("9999999", 4000000), ("4000000", 4000000)],
)
def test_baud_is_clamped(text, expected):
    settings = PortSettings.from_mapping({"CNCSerial.Port.BaudRate": text})
    assert settings.baud_rate == expected


def test_packet_values_clamped():
    settings = PortSettings.from_mapping(
        {"CNCSerial.PacketLength": "-5", "CNCSerial.PacketDelay": "20000"}
    )
    assert settings.packet_length == 0
    assert settings.packet_delay == 10000


def test_leading_digits_are_read():
    settings = PortSettings.from_mapping({"CNCSerial.PacketLength": "  42ms"})
    assert settings.packet_length == 42


def test_unknown_data_and_stop_bits_fall_back():
    settings = PortSettings.from_mapping(
        {"CNCSerial.Port.DataBits": "9", "CNCSerial.Port.StopBits": "3"}
    )
    assert settings.data_bits == DataBits.SEVEN
    assert settings.stop_bits == StopBits.TWO


def test_unknown_parity_and_flow_leave_values():
    settings = _custom()
    settings.update_from_mapping(
        {"CNCSerial.Port.Parity": "MARK", "CNCSerial.Port.FlowControl": "XYZ"}
    )
    assert settings.parity == Parity.ODD
    assert settings.flow_control == FlowControl.GRBL


def test_flow_control_keyword_matching():
    settings = PortSettings.from_mapping({"CNCSerial.Port.FlowControl": "SOFTWARE"})
    assert settings.flow_control == FlowControl.SOFTWARE


def test_switches_use_low_bit():
    settings = PortSettings.from_mapping(
        {"CNCSerial.UseRxFlowControl": "2", "CNCSerial.UseStartStopChar": "3"}
    )
    assert settings.use_rx_flow_control is False
    assert settings.use_start_stop_char is True


def test_start_stop_char_takes_first_character():
    settings = PortSettings.from_mapping({"CNCSerial.StartStopChar": "%x"})
    assert settings.start_stop_char == ord("%")


def test_xoff_detected_by_substring():
    settings = PortSettings.from_mapping({"CNCSerial.XOFFByte": "93"})
    assert settings.xoff_byte == XOFF2


def test_normalize_xoff_byte():
    assert normalize_xoff_byte(XOFF2) == XOFF2
    assert normalize_xoff_byte(XOFF) == XOFF
    assert normalize_xoff_byte(0x42) == XOFF


def test_constructor_normalizes_xoff():
    assert PortSettings(xoff_byte=0x01).xoff_byte == XOFF


def test_constructor_rejects_bad_values():
    with pytest.raises(ValueError):
        PortSettings(data_bits=9)
    with pytest.raises(ValueError):
        PortSettings(start_stop_char=300)