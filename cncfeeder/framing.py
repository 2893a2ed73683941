"""Parsing of received bytes and slicing of outgoing packets."""

from __future__ import annotations

from dataclasses import dataclass, field

from .circular_queue import CircularQueue
from .protocol import (
    CNC_BUF_SIZE,
    DC2,
    DC4,
    NAK,
    NAK2,
    SYN,
    SYN2,
    XOFF,
    XOFF2,
    XON,
    FlowControl,
)

_GRBL_REPLY_LIMIT = 127
_FLOW_WARNING = (
    "Warning: Use RX Flow control disabled, but the machine sent SW flow control bytes"
)


@dataclass
class RxEvents:
    """What one chunk of received bytes means to the transfer loop.

    `clear_to_send` and `machine_paused` are None when the chunk did not
    touch them, otherwise the last value the chunk set.
    """

    payload: bytes = b""
    clear_to_send: bool | None = None
    machine_paused: bool | None = None
    stop_receiving: bool = False
    stop_sending: bool = False
    grbl_ok: bool = False
    messages: list[str] = field(default_factory=list)


class RxParser:
    """Separates control bytes from file data in the received stream."""

    def __init__(
        self,
        use_start_stop_char: bool = False,
        start_stop_char: int = 0,
        use_rx_flow_control: bool = False,
        ignore_null: bool = True,
    ) -> None:
        self.use_start_stop_char = use_start_stop_char
        self.start_stop_char = start_stop_char
        self.use_rx_flow_control = use_rx_flow_control
        self.ignore_null = ignore_null
        self.data_active = False
        self._grbl_reply = bytearray()

    def reset(self) -> None:
        """Forget any open data section and partial GRBL reply."""
        self.data_active = False
        self._grbl_reply.clear()

    def activate(self) -> None:
        """Treat every following byte as file data."""
        self.data_active = True

    def feed(self, data: bytes, flow_control: FlowControl, receiving_file: bool) -> RxEvents:
        """Interpret a chunk of bytes read from the port."""
        events = RxEvents()
        payload = bytearray()
        for byte in data:
            if byte == 0x00:
                if not self.ignore_null and self.data_active:
                    payload.append(byte)
            elif byte == XON:
                if flow_control == FlowControl.SOFTWARE:
                    events.clear_to_send = True
                elif flow_control == FlowControl.HARDWARE:
                    events.machine_paused = False
                if not self.use_rx_flow_control and receiving_file:
                    events.messages.append(_FLOW_WARNING)
            elif byte in (XOFF, XOFF2):
                if flow_control == FlowControl.SOFTWARE:
                    events.clear_to_send = False
                elif flow_control == FlowControl.HARDWARE:
                    events.machine_paused = True
                if not self.use_rx_flow_control and receiving_file:
                    events.messages.append(_FLOW_WARNING)
            elif byte == DC2:
                if receiving_file and not self.use_start_stop_char:
                    self.data_active = True
                    events.messages.append("Recieved SW Start byte. Receiving File.")
            elif byte == DC4:
                if receiving_file:
                    self.data_active = False
                    events.stop_receiving = True
            elif byte in (NAK, NAK2, SYN, SYN2):
                events.stop_sending = True
            else:
                self._handle_data_byte(byte, flow_control, payload, events)
        events.payload = bytes(payload)
        return events

    def _handle_data_byte(
        self,
        byte: int,
        flow_control: FlowControl,
        payload: bytearray,
        events: RxEvents,
    ) -> None:
        if self.use_start_stop_char and byte == self.start_stop_char:
            if self.data_active:
                self.data_active = False
                payload.append(byte)
                events.stop_receiving = True
                events.messages.append("Got second StartStopChar. Stopping RX.")
            else:
                self.data_active = True
                events.messages.append("Received start char. Receiving File.")
        if flow_control == FlowControl.GRBL:
            self._handle_grbl_byte(byte, events)
        if self.data_active:
            payload.append(byte)

    def _handle_grbl_byte(self, byte: int, events: RxEvents) -> None:
        if byte != ord("\n"):
            self._grbl_reply.append(byte)
            if len(self._grbl_reply) > _GRBL_REPLY_LIMIT:
                del self._grbl_reply[0]
            return
        reply = self._grbl_reply.decode("latin-1")
        if len(reply) >= 2:
            if reply.rstrip("\r").endswith("ok"):
                events.grbl_ok = True
            else:
                events.messages.append(reply)
        events.messages.append(f"GRBL Reply: {reply}\n")
        self._grbl_reply.clear()


def _take(queue: CircularQueue, limit: int, stop_at_newline: bool) -> tuple[bytes, int]:
    packet = bytearray()
    lines = 0
    while len(packet) < limit:
        chunk = queue.get(1)
        if not chunk:
            break
        packet += chunk
        if chunk == b"\n":
            lines += 1
            if stop_at_newline:
                break
    return bytes(packet), lines


def next_packet(
    queue: CircularQueue,
    single_step: bool,
    do_step: bool,
    packet_length: int,
    packet_delay: int,
) -> tuple[bytes, int]:
    """Take the next packet to transmit from `queue`.

    Returns the bytes and the number of complete lines they hold. In single
    step mode one line goes out per step request; with a delay but no packet
    length one line goes out per delay; otherwise up to `packet_length` bytes
    (or the buffer size when it is zero), never more than the buffer size.
    """
    if single_step:
        if not do_step:
            return b"", 0
        return _take(queue, CNC_BUF_SIZE, stop_at_newline=True)
    if packet_length == 0 and packet_delay != 0:
        return _take(queue, CNC_BUF_SIZE, stop_at_newline=True)
    limit = min(packet_length or CNC_BUF_SIZE, CNC_BUF_SIZE)
    return _take(queue, limit, stop_at_newline=False)