"""Wire bytes, port parameters and errors shared by the feeder."""

from __future__ import annotations

import enum

# Flow-control and framing bytes used by CNC controls.
XON = 0x11  # DC1, resume transmission
DC2 = 0x12  # start of data
XOFF = 0x13  # DC3, pause transmission
DC4 = 0x14  # end of data
XOFF2 = 0x93  # alternate stop byte (parity bit set)
NAK = 0x15  # alarm during transfer
NAK2 = 0x95
SYN = 0x16  # reset during transfer
SYN2 = 0x96

SERIAL_PORT = "/dev/ttyAMA0"
USB_PORT = "/dev/ttyUSB0"

CNC_BUF_SIZE = 256

PAUSE_LED_PIN = 1
SERIAL_STARTPAUSE_PIN = 8
SERIAL_STOP_PIN = 9

SERIAL_BLINK_DELAY_MS = 200
DEBOUNCE_MAX_COUNT = 16

TIMEOUT_1S_MS = 1000
TIMEOUT_5S_MS = 5000


class FlowControl(enum.IntEnum):
    """How transmission is paced."""

    NONE = 0
    HARDWARE = 1
    SOFTWARE = 2
    GRBL = 3

    @classmethod
    def from_text(cls, text: str) -> "FlowControl":
        """Pick a mode from a settings string; the last keyword found wins."""
        found = None
        for keyword, member in (
            ("NONE", cls.NONE),
            ("SOFT", cls.SOFTWARE),
            ("HARD", cls.HARDWARE),
            ("GRBL", cls.GRBL),
        ):
            if keyword in text:
                found = member
        if found is None:
            raise ValueError(f"unknown flow control: {text!r}")
        return found


class StopBits(enum.IntEnum):
    ONE = 1
    TWO = 2


class DataBits(enum.IntEnum):
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8


class Parity(enum.IntEnum):
    NONE = 0
    ODD = 1
    EVEN = 2

    @classmethod
    def from_text(cls, text: str) -> "Parity":
        """Pick a parity from a settings string; the last keyword found wins."""
        found = None
        for member in (cls.NONE, cls.ODD, cls.EVEN):
            if member.name in text:
                found = member
        if found is None:
            raise ValueError(f"unknown parity: {text!r}")
        return found


class LedState(enum.IntEnum):
    OFF = 0
    ON = 1
    BLINKING = 2


class LogMode(enum.IntFlag):
    """Where log messages go; members combine as flags."""

    NONE = 0
    PRINT = 1
    FILE = 2


class CNCSerialError(Exception):
    """A serial transfer operation failed."""


class CNCTimeoutError(CNCSerialError):
    """A worker thread did not respond in time."""