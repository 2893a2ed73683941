"""Port and transfer settings, stored as dotted key/value pairs."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from .protocol import (
    SERIAL_PORT,
    XOFF,
    XOFF2,
    DataBits,
    FlowControl,
    Parity,
    StopBits,
)

DEFAULT_PREFIX = "CNCSerial"

MIN_BAUD = 50
MAX_BAUD = 4_000_000
MAX_PACKET_LENGTH = 10_000
MAX_PACKET_DELAY = 10_000

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _leading_int(text: str) -> int:
    """Integer at the start of `text`, or 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize_xoff_byte(value: int) -> int:
    """Return the alternate stop byte if asked for, otherwise the standard one."""
    return XOFF2 if value == XOFF2 else XOFF


@dataclass
class PortSettings:
    """Everything that configures the port and the pacing of a transfer."""

    port_name: str = SERIAL_PORT
    baud_rate: int = 9600
    data_bits: DataBits = DataBits.SEVEN
    stop_bits: StopBits = StopBits.TWO
    parity: Parity = Parity.EVEN
    flow_control: FlowControl = FlowControl.HARDWARE
    packet_length: int = 0
    packet_delay: int = 0
    use_rx_flow_control: bool = False
    use_start_stop_char: bool = True
    start_stop_char: int = 0
    xoff_byte: int = XOFF

    def __post_init__(self) -> None:
        self.data_bits = DataBits(self.data_bits)
        self.stop_bits = StopBits(self.stop_bits)
        self.parity = Parity(self.parity)
        self.flow_control = FlowControl(self.flow_control)
        self.xoff_byte = normalize_xoff_byte(self.xoff_byte)
        if not 0 <= self.start_stop_char <= 0xFF:
            raise ValueError("start_stop_char must be a single byte")

    def to_mapping(self, prefix: str = DEFAULT_PREFIX) -> dict[str, str]:
        """The settings as string values under keys beginning with `prefix`."""
        stop_bits = "1" if self.stop_bits == StopBits.ONE else "2"
        start_stop = chr(self.start_stop_char) if self.start_stop_char else ""
        xoff = "0x93" if self.xoff_byte == XOFF2 else "0x13"
        return {
            f"{prefix}.Port.Name": self.port_name,
            f"{prefix}.Port.BaudRate": str(self.baud_rate),
            f"{prefix}.Port.DataBits": str(int(self.data_bits)),
            f"{prefix}.Port.StopBits": stop_bits,
            f"{prefix}.Port.Parity": self.parity.name,
            f"{prefix}.Port.FlowControl": self.flow_control.name,
            f"{prefix}.PacketLength": str(self.packet_length),
            f"{prefix}.PacketDelay": str(self.packet_delay),
            f"{prefix}.UseRxFlowControl": str(int(self.use_rx_flow_control)),
            f"{prefix}.UseStartStopChar": str(int(self.use_start_stop_char)),
            f"{prefix}.StartStopChar": start_stop,
            f"{prefix}.XOFFByte": xoff,
        }

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, str], prefix: str = DEFAULT_PREFIX
    ) -> "PortSettings":
        """Defaults overlaid with whatever `mapping` holds."""
        settings = cls()
        settings.update_from_mapping(mapping, prefix)
        return settings

    def update_from_mapping(
        self, mapping: Mapping[str, str], prefix: str = DEFAULT_PREFIX
    ) -> None:
        """Apply stored values; port values that are missing or empty are kept.

        Numbers are clamped to their allowed ranges and unknown choices fall
        back to their defaults. The XOFF byte, the start/stop character and
        the two switches are always set, to their off values when missing.
        """

        def value(key: str) -> str:
            return mapping.get(f"{prefix}.{key}", "") or ""

        if name := value("Port.Name"):
            self.port_name = name

        if baud := value("Port.BaudRate"):
            self.baud_rate = _clamp(_leading_int(baud), MIN_BAUD, MAX_BAUD)

        if data_bits := value("Port.DataBits"):
            try:
                self.data_bits = DataBits(_leading_int(data_bits))
            except ValueError:
                self.data_bits = DataBits.SEVEN

        if stop_bits := value("Port.StopBits"):
            try:
                self.stop_bits = StopBits(_leading_int(stop_bits))
            except ValueError:
                self.stop_bits = StopBits.TWO

        if parity := value("Port.Parity"):
            try:
                self.parity = Parity.from_text(parity)
            except ValueError:
                pass

        if flow := value("Port.FlowControl"):
            try:
                self.flow_control = FlowControl.from_text(flow)
            except ValueError:
                pass

        if length := value("PacketLength"):
            self.packet_length = _clamp(_leading_int(length), 0, MAX_PACKET_LENGTH)

        if delay := value("PacketDelay"):
            self.packet_delay = _clamp(_leading_int(delay), 0, MAX_PACKET_DELAY)

        self.xoff_byte = XOFF2 if "93" in value("XOFFByte") else XOFF
        self.use_rx_flow_control = bool(_leading_int(value("UseRxFlowControl")) & 1)
        self.use_start_stop_char = bool(_leading_int(value("UseStartStopChar")) & 1)
        start_stop = value("StartStopChar")
        self.start_stop_char = ord(start_stop[0]) & 0xFF if start_stop else 0