import pytest

from cncfeeder.protocol import (
    CNCSerialError,
    CNCTimeoutError,
    DataBits,
    FlowControl,
    LogMode,
    Parity,
    StopBits,
)


@pytest.mark.parametrize("member", list(FlowControl))
def test_flow_control_round_trip_through_name(member):
    assert FlowControl.from_text(member.name) is member


@pytest.mark.parametrize(
    "text,expected",
    [
        ("SOFT", FlowControl.SOFTWARE),
        ("HARD", FlowControl.HARDWARE),
        ("GRBL", FlowControl.GRBL),
        ("NONE", FlowControl.NONE),
    ],
)
def test_flow_control_keywords(text, expected):
    assert FlowControl.from_text(text) is expected


def test_flow_control_last_keyword_wins():
    assert FlowControl.from_text("NONE HARDWARE") is FlowControl.HARDWARE


def test_flow_control_numbering_matches_settings_values():
    assert FlowControl.from_text("HARDWARE") == 1
    assert FlowControl.from_text("GRBL") == 3


def test_flow_control_unknown_text_raises():
    with pytest.raises(ValueError):
        FlowControl.from_text("bogus")


def test_flow_control_is_case_sensitive():
    with pytest.raises(ValueError):
        FlowControl.from_text("hardware")


@pytest.mark.parametrize("member", list(Parity))
def test_parity_round_trip(member):
    assert Parity.from_text(member.name) is member


def test_parity_last_keyword_wins():
    assert Parity.from_text("ODD EVEN") is Parity.EVEN


def test_parity_unknown_raises():
    with pytest.raises(ValueError):
        Parity.from_text("MARK")


def test_bits_values_by_count():
    assert DataBits(7) is DataBits.SEVEN
    assert StopBits(2) is StopBits.TWO


def test_log_mode_flags_combine():
    mode = LogMode(3)
    assert mode == LogMode.PRINT | LogMode.FILE
    assert LogMode.PRINT in mode
    assert LogMode.FILE in mode
    assert (mode & ~LogMode.FILE) is LogMode.PRINT
    assert LogMode(0) is LogMode.NONE


def test_timeout_error_is_serial_error():
    err = CNCTimeoutError("late")
    assert str(err) == "late"
    assert isinstance(err, CNCSerialError)