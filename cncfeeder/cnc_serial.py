"""Background transfer of files to and from a CNC control over a serial port."""

from __future__ import annotations

import dataclasses
import os
import threading
import time
from functools import partial
from pathlib import Path
from typing import Any, BinaryIO, Callable

import serial

from .circular_queue import CircularQueue, QueueFullError
from .framing import RxEvents, RxParser, next_packet
from .protocol import (
    CNC_BUF_SIZE,
    DC2,
    DC4,
    SERIAL_PORT,
    TIMEOUT_1S_MS,
    TIMEOUT_5S_MS,
    XOFF,
    XON,
    CNCSerialError,
    CNCTimeoutError,
    DataBits,
    FlowControl,
    LogMode,
    Parity,
    StopBits,
)
from .settings import PortSettings
from .timers import Timer

SerialFactory = Callable[[PortSettings], Any]

STANDARD_BAUD_RATES = frozenset(
    {
        50, 75, 110, 134, 150, 200, 300, 600, 1200, 1800, 2400, 4800, 9600,
        19200, 38400, 57600, 115200, 230400, 460800, 500000, 576000, 921600,
        1000000, 1152000, 1500000, 2000000, 2500000, 3000000, 3500000, 4000000,
    }
)
DEFAULT_BAUD = 9600
GRBL_TIMEOUT_MS = 10_000
LOOP_PAUSE_S = 0.0001

_BYTESIZES = {
    DataBits.FIVE: serial.FIVEBITS,
    DataBits.SIX: serial.SIXBITS,
    DataBits.SEVEN: serial.SEVENBITS,
    DataBits.EIGHT: serial.EIGHTBITS,
}
_PARITIES = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
}
_STOPBITS = {StopBits.ONE: serial.STOPBITS_ONE, StopBits.TWO: serial.STOPBITS_TWO}

_PARITY_TEXT = {Parity.EVEN: "EVEN Parity, ", Parity.ODD: "ODD Parity, ", Parity.NONE: "NO Parity, "}
_STOP_TEXT = {StopBits.ONE: "One Stop bit, ", StopBits.TWO: "Two Stop bits, "}
_FLOW_OPEN_TEXT = {
    FlowControl.SOFTWARE: "Software Flow Control\n",
    FlowControl.HARDWARE: "Hardware Flow Control\n",
    FlowControl.GRBL: "GRBL Flow Control\n",
    FlowControl.NONE: "No Flow Control\n",
}
_FLOW_STATUS_TEXT = {
    FlowControl.SOFTWARE: "Software",
    FlowControl.HARDWARE: "Hardware",
    FlowControl.GRBL: "GRBL",
    FlowControl.NONE: "None",
}


def _open_pyserial(settings: PortSettings) -> serial.Serial:
    """Open a real serial port configured for non-blocking raw transfer."""
    return serial.Serial(
        port=settings.port_name,
        baudrate=settings.baud_rate,
        bytesize=_BYTESIZES[settings.data_bits],
        parity=_PARITIES[settings.parity],
        stopbits=_STOPBITS[settings.stop_bits],
        timeout=0,
        xonxoff=False,
        rtscts=settings.flow_control == FlowControl.HARDWARE,
    )


class CNCSerial:
    """Feeds files to a CNC control and captures files it sends back.

    A single worker thread owns the port and the files; the public methods
    only raise requests that the worker picks up.
    """

    def __init__(
        self,
        settings: PortSettings | None = None,
        log_mode: LogMode = LogMode.PRINT | LogMode.FILE,
        log_dir: str | os.PathLike[str] = "./Logs",
        serial_factory: SerialFactory | None = None,
    ) -> None:
        self.settings = settings if settings is not None else PortSettings()
        self.log_mode = LogMode(log_mode)
        self.log_dir = Path(log_dir)
        self._serial_factory = serial_factory or _open_pyserial

        self.log_rx = True
        self.log_tx = True
        self.flush_requested = True
        self.ignore_null = True

        self.status = ""
        self.status_new = False

        self.flow_control = self.settings.flow_control
        self.rts = False
        self.dtr = False
        self.dsr = False
        self.clear_to_send = False
        self.user_paused = False
        self.machine_paused = False
        self.single_step = False
        self.do_step = False
        self.start_pause_button = False
        self.stop_button = False

        self.sending_file = False
        self.receiving_file = False
        self.bytes_sent = 0
        self.bytes_received = 0
        self.file_size = 0
        self.num_lines = 0
        self.current_line = 0

        self._requested_flow = self.settings.flow_control
        self._requested_rts = False
        self._requested_dtr = False
        self._requested_dsr = False

        self._start_sending = False
        self._stop_sending = False
        self._start_receiving = False
        self._stop_receiving = False
        self._start_pause_flag = False
        self._stop_button_flag = False
        self._reopen_requested = False
        self._in_filename = ""
        self._out_filename = ""

        self._rx = CircularQueue()
        self._tx = CircularQueue()
        self._parser = RxParser()
        self._port: Any = None

        self._done = threading.Event()
        self._serial_running = threading.Event()
        self._io_running = threading.Event()
        self._send_started = threading.Event()
        self._receive_started = threading.Event()
        self._serial_thread: threading.Thread | None = None
        self._io_thread: threading.Thread | None = None

        self._log_lock = threading.Lock()
        self._log_file: Any = None

        self._in_file: BinaryIO | None = None
        self._out_file: BinaryIO | None = None
        self._end_of_file = False
        self._grbl_next = True
        self._delay_timer = Timer()
        self._grbl_timeout = Timer()
        self._rx_log: BinaryIO | None = None
        self._tx_log: BinaryIO | None = None

    # ------------------------------------------------------------------ context

    def __enter__(self) -> "CNCSerial":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop_threads()
        with self._log_lock:
            if self._log_file is not None:
                self._log_file.close()
                self._log_file = None

    @property
    def serial_thread_running(self) -> bool:
        return self._serial_running.is_set()

    # ------------------------------------------------------------------ logging

    def log(self, message: str) -> None:
        """Record `message` as the status and send it where the log mode says."""
        self.status = message
        self.status_new = True
        if LogMode.PRINT in self.log_mode:
            print(message, end="", flush=True)
        if LogMode.FILE in self.log_mode:
            with self._log_lock:
                if self._log_file is None:
                    try:
                        self._log_file = open(self.log_dir / "CNCSerial.log", "a", encoding="utf-8")
                    except OSError as exc:
                        print("Error opening CNCSerial.log to log. Does the folder exist?")
                        print(f"Error {exc.errno}, description is : {exc.strerror}")
                        print("Setting log mode to printing.")
                        self.log_mode = LogMode.PRINT
                if self._log_file is not None:
                    self._log_file.write(message)
                    self._log_file.flush()

    def take_status(self) -> str:
        """Return the latest status message and mark it as read."""
        self.status_new = False
        return self.status

    # ------------------------------------------------------------------ queues

    def send(self, data: bytes) -> None:
        """Queue bytes for transmission."""
        try:
            self._tx.put(bytes(data))
        except QueueFullError as exc:
            self.log("Error adding data to the TX Queue.\n")
            raise CNCSerialError("TX queue is full") from exc
        if self.flow_control == FlowControl.HARDWARE:
            self.request_rts(1)

    def send_byte(self, byte: int) -> None:
        """Queue a single byte, typically a flow control byte."""
        try:
            self._tx.put(bytes([byte]))
        except QueueFullError as exc:
            self.log("Error adding byte to the TX Queue.\n")
            raise CNCSerialError("TX queue is full") from exc

    def send_string(self, text: str) -> None:
        """Queue a string while the worker runs and no file is being sent."""
        if self.sending_file:
            self.log(
                "Error: sendString() called, but a file is already being sent. "
                "Call stopSendFile() first.\n"
            )
            raise CNCSerialError("a file is already being sent")
        self.log(f"Send String: [{text}]\n")
        if not self.serial_thread_running:
            self.log(
                "Warning: set to send string, but serial thread is not running. "
                "Call startThread() first.\n"
            )
            return
        try:
            self._tx.put(text.encode("latin-1"))
        except QueueFullError:
            self.log("Error. sendString() filled up TX queue.\n")

    def clear_queues(self) -> None:
        self._tx.reset()
        self._rx.reset()
        self.bytes_sent = 0
        self.bytes_received = 0

    def reset_stats(self) -> None:
        self.bytes_received = 0
        self.bytes_sent = 0

    def rx_queue_size(self) -> int:
        return len(self._rx)

    def pop_rx_byte(self) -> int | None:
        """Take one received byte, or None when nothing is queued."""
        chunk = self._rx.get(1)
        return chunk[0] if chunk else None

    # ------------------------------------------------------------------ files

    def send_file(self, filename: str | os.PathLike[str]) -> None:
        """Ask the worker to send a file; waits up to a second for it to start."""
        if self.sending_file:
            self.log(
                "Error: sendFile() called, but a file is already being sent. "
                "Call stopSendFile() first.\n"
            )
            raise CNCSerialError("a file is already being sent")
        self._out_filename = os.fspath(filename)
        self.log(f"Send File: {self._out_filename}\n")
        self._send_started.clear()
        self._stop_sending = False
        self._start_sending = True
        if not self.serial_thread_running:
            self.log(
                "Warning: set to send file, but serial thread is not running. "
                "Call startThread() first.\n"
            )
            return
        if not self._send_started.wait(TIMEOUT_1S_MS / 1000):
            self.log(
                f"Error: Timeout ({TIMEOUT_1S_MS}ms) waiting for serial thread "
                "to start sending file.\n"
            )
            raise CNCTimeoutError("serial thread did not start sending")

    def receive_file(self, filename: str | os.PathLike[str]) -> None:
        """Ask the worker to save received data; waits up to a second for it."""
        if self.receiving_file:
            self.log(
                "Error: receiveFile() called, but a file is already being received. "
                "Call stopReceiveFile() first.\n"
            )
            raise CNCSerialError("a file is already being received")
        self._in_filename = os.fspath(filename)
        self._receive_started.clear()
        self._stop_receiving = False
        self._start_receiving = True
        if not self.serial_thread_running:
            self.log(
                "Warning: set to recieve file, but serial thread is not running. "
                "Call startThread();\n"
            )
            return
        if not self._receive_started.wait(TIMEOUT_1S_MS / 1000):
            self.log(
                f"Error: Timeout ({TIMEOUT_1S_MS}ms) waiting for serial thread "
                "to start receiving file.\n"
            )
            raise CNCTimeoutError("serial thread did not start receiving")

    def stop_send_file(self) -> None:
        """Abort the file being sent; waits up to a second for the worker."""
        if not self.sending_file:
            self.log("Warning: stopSendFile() called, but a file is not being sent.\n")
            return
        self.log("Stopping file send.\n")
        self._stop_sending = True
        if not self._wait_until(lambda: not self.sending_file, TIMEOUT_1S_MS):
            self.log(
                f"Error: Timeout ({TIMEOUT_1S_MS}ms) waiting for serial thread "
                "to stop sending file.\n"
            )
            raise CNCTimeoutError("serial thread did not stop sending")

    def stop_receive_file(self) -> None:
        """Finish the file being received; waits up to a second for the worker."""
        if not self.receiving_file:
            self.log("Warning: stopReceivFile() called, but a file is not being received.\n")
            return
        self.log("Stopping file receive.\n")
        self._stop_receiving = True
        if not self._wait_until(lambda: not self.receiving_file, TIMEOUT_1S_MS):
            self.log(
                f"Error: Timeout ({TIMEOUT_1S_MS}ms) waiting for serial thread "
                "to stop receiving file.\n"
            )
            raise CNCTimeoutError("serial thread did not stop receiving")

    @staticmethod
    def _wait_until(condition: Callable[[], bool], timeout_ms: int) -> bool:
        timer = Timer()
        while not condition():
            if timer.expired(timeout_ms):
                return False
            time.sleep(0.001)
        return True

    # ------------------------------------------------------------------ threads

    def start_threads(self, panel: Any = None) -> None:
        """Start the serial worker and, if given, a thread running `panel.run`."""
        if self._serial_thread is not None:
            self.log("Error: calling startThreads() but the serial thread already exists.\n")
            raise CNCSerialError("serial thread already exists")
        if panel is not None and self._io_thread is not None:
            self.log("Error: calling startThreads() but the button thread already exists.\n")
            raise CNCSerialError("button thread already exists")

        self._done.clear()
        self._serial_thread = threading.Thread(
            target=self._serial_thread_main, name="cnc-serial", daemon=True
        )
        self._serial_thread.start()
        timeout = Timer()
        while not self._serial_running.wait(0.001):
            if not self._serial_thread.is_alive():
                self._serial_thread.join()
                self._serial_thread = None
                self.log("Error: serial thread stopped before it was ready.\n")
                raise CNCSerialError("unable to open serial port")
            if timeout.expired(TIMEOUT_5S_MS):
                self.log(
                    f"Error: Timeout ({TIMEOUT_5S_MS}ms) waiting for serial thread to start.\n"
                )
                raise CNCTimeoutError("serial thread did not start")

        if panel is not None:
            self._io_thread = threading.Thread(
                target=self._io_thread_main, args=(panel,), name="cnc-io", daemon=True
            )
            self._io_thread.start()
            timeout.start()
            while not self._io_running.wait(0.001):
                if not self._io_thread.is_alive():
                    break
                if timeout.expired(TIMEOUT_5S_MS):
                    self.log(
                        f"Error: Timeout ({TIMEOUT_5S_MS}ms) waiting for button thread to start.\n"
                    )
                    raise CNCTimeoutError("button thread did not start")

    def stop_threads(self) -> None:
        """Signal the worker threads to finish and wait for them."""
        if not self._done.is_set():
            self.log("Stopping Serial thread.\n")
            self._done.set()
        if self._serial_thread is not None:
            self._serial_thread.join()
            self._serial_thread = None
        if self._io_thread is not None:
            self.log("Stopping Button thread.\n")
            self._io_thread.join()
            self._io_thread = None
        self.log("Threads stopped.\n")

    def _io_thread_main(self, panel: Any) -> None:
        self._io_running.set()
        try:
            panel.run(self._done)
        except Exception as exc:  # keep the feeder alive whatever the panel does
            self.log(f"Error. Button Thread caught exception: {exc}\n")
        finally:
            self._io_running.clear()

    def reopen(self) -> None:
        """Ask the worker to close and reopen the port."""
        self._reopen_requested = True

    # ------------------------------------------------------------------ runtime controls

    def set_single_step(self, value: int) -> None:
        """Turn single-line stepping on or off; turning it off pauses."""
        self.single_step = bool(int(value) & 1)
        if self.single_step:
            self.user_paused = False
            self.do_step = False
        else:
            self.user_paused = True
        self.log(f"Setting Single Step: {int(self.single_step)}\n")

    def set_user_paused(self, value: int) -> None:
        self.user_paused = bool(value)

    def request_flow_control(self, value: FlowControl) -> None:
        self._requested_flow = FlowControl(value)

    def request_rts(self, level: int) -> None:
        self.log(f"Requesting RTS: {int(bool(level))}\n")
        self._requested_rts = bool(level)

    def request_dtr(self, level: int) -> None:
        self._requested_dtr = bool(level)

    def request_dsr(self, level: int) -> None:
        self._requested_dsr = bool(level)

    def start_pause_button_press(self) -> None:
        self._start_pause_flag = True

    def stop_button_press(self) -> None:
        self._stop_button_flag = True

    # ------------------------------------------------------------------ status

    def status_report(self) -> str:
        """A multi-line summary of the port, handshake lines and queues."""
        if self._port is not None:
            lines = [f"Serial Port {self.settings.port_name} Open."]
        else:
            lines = ["Serial Port is Closed."]
        lines += [
            f"Flow Control: {_FLOW_STATUS_TEXT[self.flow_control]}",
            f"RTS: {int(self.rts)} ({int(self._requested_rts)})",
            f"DTR: {int(self.dtr)} ({int(self._requested_dtr)})",
            f"CTS: {int(self.clear_to_send)}",
            f"DSR: {int(self.dsr)} ({int(self._requested_dsr)})",
            f"Bytes RX    : {self.bytes_received}",
            f"Bytes TX    : {self.bytes_sent}",
            f"rxData Size : {len(self._rx)}  max: {self._rx.max_size()}",
            f"txData Size : {len(self._tx)}  max: {self._tx.max_size()}",
        ]
        if self.user_paused or self.machine_paused:
            lines.append(" ** Paused ** ")
        return "\n".join(lines)

    def print_status(self) -> None:
        for line in self.status_report().splitlines():
            self.log(line + "\n")

    # ------------------------------------------------------------------ port handling

    def _open_port(self) -> None:
        if "/dev/" not in self.settings.port_name:
            self.log("Serial Name is not valid. Defaulting.\n")
            self.settings.port_name = SERIAL_PORT
        if self._port is not None:
            self.log("serialOpen: Closing Serial Port.\n")
            self._close_port()
            time.sleep(0.0001)

        baud = self.settings.baud_rate
        if baud not in STANDARD_BAUD_RATES:
            self.log(f"Error. Bad Baud Rate: {baud}. Defaulting to {DEFAULT_BAUD}.\n")
            baud = DEFAULT_BAUD
        self.flow_control = self._requested_flow
        port_settings = dataclasses.replace(
            self.settings, baud_rate=baud, flow_control=self.flow_control
        )
        try:
            self._port = self._serial_factory(port_settings)
        except (OSError, ValueError) as exc:
            self._port = None
            self.log("Error opening serial port.\n")
            raise CNCSerialError(f"cannot open {port_settings.port_name}") from exc

        self.user_paused = False
        self.machine_paused = False
        self.log(
            f"Starting Serial [{port_settings.port_name}]: {baud} baud, "
            + _PARITY_TEXT[port_settings.parity]
            + _STOP_TEXT[port_settings.stop_bits]
            + _FLOW_OPEN_TEXT[self.flow_control]
        )
        self.reset_stats()

    def _close_port(self) -> None:
        if self._port is not None:
            try:
                self._port.close()
            finally:
                self._port = None

    def _apply_flow_control(self, value: FlowControl) -> None:
        if value == FlowControl.HARDWARE and self._port is not None:
            self._port.rtscts = True
            self._port.xonxoff = False
        self.flow_control = value

    def _apply_line(self, name: str, level: bool) -> bool:
        if self._port is None:
            self.log(f"Error: Invalid File descriptor setting {name.upper()}.\n")
            return False
        try:
            setattr(self._port, name, level)
        except (OSError, ValueError) as exc:
            self.log(f"Error: setting {name.upper()} failed: {exc}\n")
            return False
        self.log(f"Setting {name.upper()} to: {int(level)}\n")
        return True

    def _apply_rts(self, level: bool) -> None:
        if self._apply_line("rts", level):
            self.rts = level

    def _apply_dtr(self, level: bool) -> None:
        if self._apply_line("dtr", level):
            self.dtr = level

    def _apply_dsr(self, level: bool) -> None:
        # DSR is an input on most adapters; the requested level is only recorded.
        if self._port is None:
            self.log("Error: Invalid File descriptor in actualSetDSR().\n")
            return
        self.log(f"Setting DSR to: {int(level)}\n")
        self.dsr = level

    def _open_log(self, name: str) -> BinaryIO | None:
        try:
            return open(self.log_dir / name, "ab")
        except OSError as exc:
            self.log(f"Error opening {name} to log. Does it exist already?\n")
            self.log(f"Error {exc.errno}, description is : {exc.strerror}\n")
            return None

    # ------------------------------------------------------------------ worker

    def _serial_thread_main(self) -> None:
        self._rx_log = self._open_log("RXlog.txt") if self.log_rx else None
        self._tx_log = self._open_log("TXlog.txt") if self.log_tx else None
        try:
            try:
                self._open_port()
            except CNCSerialError:
                self.log("Error: Unable to open serial port.\n")
                return
            self._port.reset_input_buffer()
            self._apply_flow_control(self.flow_control)
            self._delay_timer.start()
            self._grbl_timeout.start()
            self._apply_flow_control(self._requested_flow)
            self._apply_dtr(self._requested_dtr)
            self._apply_rts(self._requested_rts)
            self._apply_dsr(self._requested_dsr)
            self._grbl_next = True
            self._end_of_file = False
            self._parser.reset()

            self._serial_running.set()
            while not self._done.is_set():
                time.sleep(LOOP_PAUSE_S)
                self._poll_once()
            self.log("Serial Thread Complete. Closing Serial Port.\n")
        except Exception as exc:  # the worker must always release its resources
            self.log(f"Error. Serial Thread caught exception: {exc}\n")
        finally:
            self._close_port()
            for handle in (self._in_file, self._out_file, self._rx_log, self._tx_log):
                if handle is not None:
                    handle.close()
            self._in_file = self._out_file = self._rx_log = self._tx_log = None
            self._serial_running.clear()

    def _poll_once(self) -> None:
        if self._reopen_requested:
            self._reopen_requested = False
            try:
                self._open_port()
            except CNCSerialError:
                self.log("Error: Unable to open serial port.\n")

        if self.flow_control == FlowControl.GRBL and self._grbl_timeout.expired(GRBL_TIMEOUT_MS):
            self.log("GRBL 10s timeout. Enabling TX again.\n")
            self._grbl_next = True
            self._grbl_timeout.start()

        if self._requested_flow != self.flow_control:
            self._apply_flow_control(self._requested_flow)
        elif self._requested_dtr != self.dtr:
            self._apply_dtr(self._requested_dtr)
        elif self._requested_rts != self.rts:
            self._apply_rts(self._requested_rts)
        elif self._requested_dsr != self.dsr:
            self._apply_dsr(self._requested_dsr)

        if self._port is None:
            return

        self._handle_buttons()
        self._handle_rx()
        self._handle_receive_file()
        self._handle_send_file()
        self._update_clear_to_send()
        self._transmit()

    def _handle_buttons(self) -> None:
        if self._stop_button_flag:
            self._stop_button_flag = False
            self._stop_sending = True
            self._stop_receiving = True
            self.log("Stop button pressed! Stopping sending and receiving.\n")
        if not self._start_pause_flag:
            return
        self._start_pause_flag = False
        if self.single_step:
            self.do_step = True
            return
        self.user_paused = not self.user_paused
        if not self.sending_file and self.flow_control == FlowControl.SOFTWARE:
            byte = XOFF if self.user_paused else XON
            self.log(f"Sending Flow control: {byte:x}\n")
            try:
                self._tx.put(bytes([byte]))
            except QueueFullError:
                self.log("Error adding byte to the TX Queue.\n")
        if self.flow_control == FlowControl.HARDWARE:
            self.request_rts(0 if self.user_paused else 1)

    def _handle_rx(self) -> None:
        if not self._port.in_waiting:
            return
        data = self._port.read(CNC_BUF_SIZE)
        if not data:
            return
        self.bytes_received += len(data)
        if self._rx_log is not None:
            self._rx_log.write("".join(f"RX: {b:02x}\n" for b in data).encode("ascii"))
            self._rx_log.flush()

        self._parser.use_start_stop_char = self.settings.use_start_stop_char
        self._parser.start_stop_char = self.settings.start_stop_char
        self._parser.use_rx_flow_control = self.settings.use_rx_flow_control
        self._parser.ignore_null = self.ignore_null
        events: RxEvents = self._parser.feed(data, self.flow_control, self.receiving_file)

        if events.clear_to_send is not None:
            self.clear_to_send = events.clear_to_send
        if events.machine_paused is not None:
            self.machine_paused = events.machine_paused
        if events.stop_receiving:
            self._stop_receiving = True
        if events.stop_sending:
            self._stop_sending = True
        if events.grbl_ok:
            self._grbl_next = True
        for message in events.messages:
            self.log(message)
        if events.payload:
            try:
                self._rx.put(events.payload)
            except QueueFullError:
                self.log("Error. RX Queue full.\n")

    def _handle_receive_file(self) -> None:
        if self._start_receiving:
            self._start_receiving = False
            self._begin_receiving()

        if self.receiving_file and not self._rx.is_empty():
            if self._in_file is not None:
                chunk = self._rx.get(CNC_BUF_SIZE)
                written = self._in_file.write(chunk)
                self._in_file.flush()
                if written != len(chunk):
                    self.log(
                        f"Error. Tried to write {len(chunk)} bytes from Rx queue to "
                        f"the file, but only {written} bytes written.\n"
                    )
            else:
                self.log(f"Warning: received {len(self._rx)} bytes with nowhere to put it.\n")

        if self._stop_receiving and self._rx.is_empty():
            self._stop_receiving = False
            self.log("Stopping recieve file.\n")
            if self._in_file is not None:
                self._in_file.close()
                self._in_file = None
            self.receiving_file = False

    def _begin_receiving(self) -> None:
        try:
            self._in_file = open(self._in_filename, "wb")
        except OSError as exc:
            self.log(f"Error opening {self._in_filename} to receive. Does it exist already?\n")
            self.log(f"Error {exc.errno}, description is : {exc.strerror}\n")
            return
        self.request_rts(0)
        self.log("Starting Receiving.\r\n")
        self.receiving_file = True
        self._receive_started.set()

        use_char = self.settings.use_start_stop_char
        if not self.settings.use_rx_flow_control:
            if not use_char:
                self._parser.activate()
                self.log("Not using RX Flow Control. Receiving now.")
            return
        if self.flow_control == FlowControl.SOFTWARE:
            self.send_byte(XON)
            self.log("Receiving file with Software Flow Control.")
            return
        if not use_char:
            self._parser.activate()
        self.log(
            {
                FlowControl.GRBL: "Receiving file with GRBL Flow Control.",
                FlowControl.HARDWARE: "Receiving with Hardware Flow Control.",
            }.get(self.flow_control, "Receiving file using no Flow Control.")
        )

    def _handle_send_file(self) -> None:
        if self._start_sending:
            self._start_sending = False
            self._begin_sending()

        if self._stop_sending:
            self._stop_sending = False
            self.log("Stopping send file.\n")
            if self._out_file is not None:
                self._out_file.close()
                self._out_file = None
            self.user_paused = False
            self._tx.reset()
            self._end_of_file = True

        if self._end_of_file and self._tx.is_empty():
            if self.flow_control == FlowControl.SOFTWARE:
                self.send_byte(DC4)
            self._end_of_file = False
            self.log("File Sent Completely.\r\n")
            if self._out_file is not None:
                self._out_file.close()
                self._out_file = None
            self.sending_file = False

        if not (
            self.sending_file
            and self.clear_to_send
            and not self.user_paused
            and not self.machine_paused
        ):
            return
        if self._out_file is not None and self._tx.space_left() > CNC_BUF_SIZE:
            try:
                chunk = self._out_file.read(CNC_BUF_SIZE)
            except OSError as exc:
                self.log(f"Error {exc.errno}, description is : {exc.strerror}\n")
            else:
                if chunk:
                    try:
                        self._tx.put(chunk)
                    except QueueFullError:
                        self.log("Error. filled up TX queue.\n")
                if len(chunk) < CNC_BUF_SIZE:
                    self._end_of_file = True
        if self._tx.is_empty():
            self.sending_file = False

    def _begin_sending(self) -> None:
        self.log(f"Opening: {self._out_filename}\n")
        try:
            handle = open(self._out_filename, "rb")
        except OSError:
            self.log(
                f"Error opening {self._out_filename} to send. "
                "Does it exist and have read permissions?\n"
            )
            return
        size = lines = 0
        for chunk in iter(partial(handle.read, 65536), b""):
            size += len(chunk)
            lines += chunk.count(b"\n")
        handle.seek(0)
        self.file_size = size
        self.num_lines = lines
        self.log(f"File Size:{size}, Lines:{lines}\n")

        self._out_file = handle
        self.bytes_sent = 0
        self.current_line = 0
        self.request_rts(1)
        self.log("Starting Transfer.\r\n")
        self.sending_file = True
        self._send_started.set()
        if self.flow_control == FlowControl.SOFTWARE:
            self.clear_to_send = True
            self.send_byte(DC2)

    def _update_clear_to_send(self) -> None:
        if self.flow_control == FlowControl.HARDWARE:
            try:
                self.clear_to_send = bool(self._port.cts)
            except (OSError, ValueError):
                self.clear_to_send = False
        elif self.flow_control == FlowControl.GRBL:
            if self._grbl_next:
                self._grbl_timeout.start()
                self.clear_to_send = True
                self._grbl_next = False
            else:
                self.clear_to_send = False
        elif self.flow_control == FlowControl.NONE:
            self.clear_to_send = True

    def _transmit(self) -> None:
        if not (
            self.clear_to_send
            and not self.user_paused
            and not self.machine_paused
            and not self._tx.is_empty()
            and self._delay_timer.expired(self.settings.packet_delay)
        ):
            return
        do_step = self.do_step
        if self.single_step and do_step:
            self.do_step = False
        packet, lines = next_packet(
            self._tx,
            self.single_step,
            do_step,
            self.settings.packet_length,
            self.settings.packet_delay,
        )
        if not packet:
            return
        self.current_line += lines
        written = self._port.write(packet)
        if written is None:
            written = len(packet)
        self.bytes_sent += written
        self.log(f"{len(packet)} [{packet.decode('latin-1')}]\n")
        if self._tx_log is not None:
            self._tx_log.write(packet[:written])
            self._tx_log.flush()
        if written > 0:
            if self.flush_requested:
                self._port.flush()
            if self.settings.packet_delay:
                self._delay_timer.start()