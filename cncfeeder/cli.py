"""Command line entry: send and receive files over the CNC serial link."""

from __future__ import annotations

import argparse
import time

from .cnc_serial import CNCSerial
from .protocol import (
    SERIAL_PORT,
    CNCSerialError,
    DataBits,
    FlowControl,
    LogMode,
    Parity,
    StopBits,
)
from .settings import PortSettings

STATUS_INTERVAL_S = 2.0

USAGE = "Usage: ./CNCSerial [args]\n -s FileToSend\n -r FileToReceive\n"


class _Transfer(argparse.Action):
    """Collect (kind, filename) pairs in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        kind = "receive" if option_string == "-r" else "send"
        transfers = list(getattr(namespace, self.dest) or [])
        transfers.append((kind, values))
        setattr(namespace, self.dest, transfers)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cncfeeder", description="Send files to and receive files from a CNC control."
    )
    parser.add_argument("-s", "-t", dest="transfers", action=_Transfer, metavar="FILE",
                        help="file to send")
    parser.add_argument("-r", dest="transfers", action=_Transfer, metavar="FILE",
                        help="file to receive")
    parser.add_argument("--port", default=SERIAL_PORT, help="serial device")
    parser.add_argument("--baud", type=int, default=9600, help="baud rate")
    parser.add_argument("--log-dir", default="./Logs", help="directory for log files")
    parser.set_defaults(transfers=[])
    return parser


def main(argv: list[str] | None = None) -> int:
    import sys

    args_list = sys.argv[1:] if argv is None else list(argv)
    if len(args_list) < 2:
        print(USAGE)
        return 0
    args = build_parser().parse_args(args_list)

    settings = PortSettings(
        port_name=args.port,
        baud_rate=args.baud,
        data_bits=DataBits.SEVEN,
        stop_bits=StopBits.TWO,
        parity=Parity.EVEN,
        flow_control=FlowControl.HARDWARE,
        packet_length=10,
        packet_delay=1,
    )
    with CNCSerial(settings, LogMode.PRINT | LogMode.FILE, args.log_dir) as cnc:
        cnc.flush_requested = True
        try:
            cnc.start_threads()
        except CNCSerialError:
            print("Main: Error starting the serial port thread.")
            return 0

        for kind, filename in args.transfers:
            try:
                if kind == "send":
                    cnc.send_file(filename)
                    print(f"Main: Sending: {filename}")
                else:
                    cnc.receive_file(filename)
                    print(f"Main: Receiving: {filename}")
            except CNCSerialError:
                pass

        if cnc.sending_file:
            while cnc.sending_file:
                time.sleep(STATUS_INTERVAL_S)
                cnc.print_status()
            print("Main: File sent successfully.")

        if cnc.receiving_file:
            while cnc.receiving_file:
                time.sleep(STATUS_INTERVAL_S)
                cnc.print_status()
            print("Main: Done Receiving.")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())