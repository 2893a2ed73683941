# cncfeeder

Feed programs to a CNC machine, and capture programs from it, over an RS-232
serial port. A background worker thread owns the port and the files. It moves
data between files and the port and follows the machine's flow control
(`cncfeeder.protocol.FlowControl`):

- `HARDWARE`: RTS/CTS
- `SOFTWARE`: XON/XOFF, with DC2 sent before a file and DC4 after it
- `GRBL`: one packet is sent, then the feeder waits for an `ok` line (or
  10 seconds) before it sends the next
- `NONE`: no flow control

Outgoing data can be cut into packets of a set length with a delay in
milliseconds between them. In single-step mode one line is sent for each press
of the start/pause button.

## Installation

```
pip install .
```

The package needs `pyserial`. To run the tests, install the `test` extra:

```
pip install .[test]
pytest
```

## Command line

```
cncfeeder -s program.nc     # send a file
cncfeeder -r captured.nc    # receive a file
```

`-t` works the same as `-s`. With fewer than two arguments the command prints
its usage and exits. Other options:

- `--port DEVICE`: the serial device (default `/dev/ttyAMA0`)
- `--baud RATE`: the baud rate (default 9600)
- `--log-dir DIR`: the folder for log files (default `./Logs`)

The command uses 7 data bits, even parity, 2 stop bits and hardware flow
control. It sends in packets of 10 bytes with a 1 ms delay between them. While
a transfer runs it prints the status every two seconds.

## Library use

```python
import time

from cncfeeder.cnc_serial import CNCSerial
from cncfeeder.settings import PortSettings
from cncfeeder.protocol import FlowControl, Parity

settings = PortSettings(port_name="/dev/ttyUSB0", baud_rate=9600,
                        parity=Parity.EVEN, flow_control=FlowControl.HARDWARE)

with CNCSerial(settings, log_dir="./Logs") as feeder:
    feeder.start_threads()          # opens the port
    feeder.send_file("program.nc")
    while feeder.sending_file:
        time.sleep(1)
        print(feeder.bytes_sent, "of", feeder.file_size, "bytes")
```

Leaving the `with` block stops the worker and closes the port. Failures raise
`cncfeeder.protocol.CNCSerialError`. If the worker does not respond in time,
the error is `CNCTimeoutError`.

- `receive_file(name)` writes received data to a file. When
  `PortSettings.use_start_stop_char` is set, recording starts at the first
  `start_stop_char` (for example `ord("%")`) and ends after the second. When it
  is not set, DC2 starts recording, or recording starts at once if RX flow
  control is off. DC4 ends it in either case. `stop_receive_file()` ends it by
  hand.
- `send(data)`, `send_byte(byte)` and `send_string(text)` queue raw data for
  sending. `stop_send_file()` aborts a file that is being sent.
- `set_single_step()`, `set_user_paused()`, `start_pause_button_press()` and
  `stop_button_press()` control a running transfer.
- `request_flow_control()`, `request_rts()`, `request_dtr()` and
  `request_dsr()` ask the worker to change the port. `reopen()` asks it to
  reopen the port.
- `status_report()` returns a summary of the port, the handshake lines and the
  queues. `print_status()` logs that summary.

Messages are printed, appended to `CNCSerial.log` in the log folder, or both,
as `cncfeeder.protocol.LogMode` selects. The worker also appends a dump of the
received bytes to `RXlog.txt` and the sent bytes to `TXlog.txt`. A custom
`serial_factory` can be passed to `CNCSerial` in place of a real `pyserial`
port.

### Settings

`PortSettings.to_mapping(prefix)` turns the settings into a flat mapping of
dotted string keys such as `CNCSerial.Port.BaudRate`.
`PortSettings.from_mapping(mapping, prefix)` reads them back. Values that are
out of range are clamped, and unknown choices fall back to the defaults.

### Front panel

`cncfeeder.io_panel.ButtonPanel` debounces a start/pause button and a stop
button, and drives a pause LED. The LED blinks while paused and is lit while
flow control holds the transfer. You supply the functions that read the
buttons and write the LED. Pass the panel to `start_threads(panel)` and it
runs in a thread of its own.

## What it does not do

- The package stores no settings itself. Writing the mapping from
  `to_mapping` to a file, and reading it back, is up to the caller.
- It has no GPIO access of its own. The panel works only with the read and
  write functions it is given.
- The command line offers only the options listed above. Packet size, flow
  control and other serial parameters can be changed only through the
  library.