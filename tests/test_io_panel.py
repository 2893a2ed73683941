import threading
import time

import pytest

from cncfeeder.cnc_serial import CNCSerial
from cncfeeder.io_panel import ButtonPanel, Debouncer, led_state
from cncfeeder.protocol import DEBOUNCE_MAX_COUNT, LedState, LogMode


class _Button:
    def __init__(self, pressed=False):
        self.pressed = pressed

    def read(self):
        return self.pressed


@pytest.fixture
def feeder(tmp_path):
    return CNCSerial(log_mode=LogMode.NONE, log_dir=tmp_path)


def _panel(feeder, start=None, stop=None):
    start = start or _Button()
    stop = stop or _Button()
    writes = []
    panel = ButtonPanel(feeder, start.read, stop.read, writes.append)
    return panel, start, stop, writes


def _press(panel, button):
    panel.poll()  # release settles
    button.pressed = True
    for _ in range(DEBOUNCE_MAX_COUNT):
        panel.poll()


def test_led_state_choices():
    assert led_state(True, True) == LedState.BLINKING
    assert led_state(True, False) == LedState.BLINKING
    assert led_state(False, False) == LedState.ON
    assert led_state(False, True) == LedState.OFF


def test_debouncer_starts_pressed_and_releases():
    d = Debouncer(3)
    assert d.pressed is True
    assert d.update(False) is False


def test_debouncer_needs_max_count_readings():
    d = Debouncer(4)
    d.update(False)
    results = [d.update(True) for _ in range(4)]
    assert results == [False, False, False, True]
    assert d.count == 4
    assert d.update(True) is True
    assert d.count == 4


def test_debouncer_rejects_bad_count():
    with pytest.raises(ValueError):
        Debouncer(0)


def test_start_pause_edge_toggles_pause(feeder):
    panel, start, _, _ = _panel(feeder)
    assert feeder.user_paused is False
    _press(panel, start)
    assert feeder.user_paused is True
    assert feeder.start_pause_button is True
    assert feeder._start_pause_flag is True


def test_held_button_at_startup_gives_no_edge(feeder):
    panel, _, _, _ = _panel(feeder, start=_Button(True))
    for _ in range(DEBOUNCE_MAX_COUNT * 2):
        panel.poll()
    assert feeder.user_paused is False
    assert feeder._start_pause_flag is False


def test_single_step_press_requests_step(feeder):
    feeder.single_step = True
    feeder.user_paused = True
    panel, start, _, _ = _panel(feeder)
    _press(panel, start)
    assert feeder.do_step is True
    assert feeder.user_paused is False


def test_stop_edge_signals_feeder(feeder):
    panel, _, stop, _ = _panel(feeder)
    _press(panel, stop)
    assert feeder.stop_button is True
    assert feeder._stop_button_flag is True


def test_led_follows_clear_to_send(feeder):
    panel, _, _, writes = _panel(feeder)
    feeder.clear_to_send = False
    panel.poll()
    feeder.clear_to_send = True
    panel.poll()
    assert writes == [True, False]


def test_led_blinks_while_paused(feeder):
    feeder.user_paused = True
    panel, _, _, writes = _panel(feeder)
    panel._led_timer = type(panel._led_timer)()
    time.sleep(0.25)
    panel.poll()
    panel.poll()
    assert writes == [True]
    time.sleep(0.25)
    panel.poll()
    assert writes == [True, False]


def test_run_returns_when_event_set(feeder):
    event = threading.Event()
    event.set()
    panel, _, _, writes = _panel(feeder)
    panel.run(event)
    assert writes == []


def test_run_polls_until_event(feeder):
    event = threading.Event()
    writes = []

    def read_stop():
        event.set()
        return False

    panel = ButtonPanel(feeder, lambda: False, read_stop, writes.append)
    panel.run(event)
    assert len(writes) == 1