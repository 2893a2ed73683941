import pytest

from cncfeeder.cli import build_parser, main
from cncfeeder.protocol import SERIAL_PORT


def test_parser_keeps_transfer_order():
    args = build_parser().parse_args(["-r", "in.nc", "-s", "a.nc", "-t", "b.nc"])
    assert args.transfers == [("receive", "in.nc"), ("send", "a.nc"), ("send", "b.nc")]


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.transfers == []
    assert args.port == SERIAL_PORT
    assert args.baud == 9600


def test_parser_rejects_missing_filename():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["-s"])


def test_too_few_arguments_prints_usage(capsys):
    assert main(["-s"]) == 0
    out = capsys.readouterr().out
    assert "Usage: ./CNCSerial [args]" in out
    assert "-r FileToReceive" in out


def test_unopenable_port_reports_error(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = main(
        ["-s", "part.nc", "--port", "/dev/cncfeeder-missing", "--log-dir", str(tmp_path)]
    )
    assert result == 0
    out = capsys.readouterr().out
    assert "Main: Error starting the serial port thread." in out
    assert "Main: Sending" not in out