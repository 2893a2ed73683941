"""Front-panel handling: debounced start/pause and stop buttons plus a pause LED."""

from __future__ import annotations

import threading
import time
from typing import Callable

from .protocol import DEBOUNCE_MAX_COUNT, SERIAL_BLINK_DELAY_MS, LedState
from .timers import Timer

POLL_PAUSE_S = 0.00001


def led_state(user_paused: bool, clear_to_send: bool) -> LedState:
    """Blink while paused by the user, light while held by flow control, else off."""
    if user_paused:
        return LedState.BLINKING
    if not clear_to_send:
        return LedState.ON
    return LedState.OFF


class Debouncer:
    """Counts consecutive readings until a button state is trusted.

    The state starts as pressed, so a button held at start-up gives no edge.
    """

    def __init__(self, max_count: int = DEBOUNCE_MAX_COUNT) -> None:
        if max_count < 1:
            raise ValueError("max_count must be at least 1")
        self.max_count = max_count
        self.count = 0
        self.pressed = True

    def update(self, active: bool) -> bool:
        """Feed one raw reading and return the debounced state."""
        if active:
            self.count += 1
            if self.count >= self.max_count:
                self.count = self.max_count
                self.pressed = True
        else:
            self.count -= 1
            if self.count <= 0:
                self.count = 0
                self.pressed = False
        return self.pressed


class ButtonPanel:
    """Polls two buttons and drives the pause LED for a feeder.

    `read_start_pause` and `read_stop` return True while their button is held;
    `write_led` receives True to light the LED and False to turn it off.
    """

    def __init__(
        self,
        feeder,
        read_start_pause: Callable[[], bool],
        read_stop: Callable[[], bool],
        write_led: Callable[[bool], None],
    ) -> None:
        self.feeder = feeder
        self._read_start_pause = read_start_pause
        self._read_stop = read_stop
        self._write_led = write_led
        self._start_pause = Debouncer()
        self._stop = Debouncer()
        self._last_start_pause = True
        self._last_stop = True
        self._led_timer = Timer()
        self._led_toggle = 0
        feeder.start_pause_button = True
        feeder.stop_button = True

    def poll(self) -> None:
        """Read both buttons once, act on pressed edges and update the LED."""
        feeder = self.feeder
        state = led_state(feeder.user_paused, feeder.clear_to_send)

        start_pause = self._start_pause.update(bool(self._read_start_pause()))
        feeder.start_pause_button = start_pause
        if start_pause and not self._last_start_pause:
            feeder.log(f"SingleStep: {int(feeder.single_step)}\n")
            if feeder.single_step:
                feeder.do_step = True
                feeder.user_paused = False
            else:
                feeder.user_paused = not feeder.user_paused
                feeder.log(
                    f"Start/Pause button pressed!  pUserPaused={int(feeder.user_paused)}\n"
                )
                feeder.start_pause_button_press()

        stop = self._stop.update(bool(self._read_stop()))
        feeder.stop_button = stop
        if stop and not self._last_stop:
            feeder.stop_button_press()

        self._last_start_pause = start_pause
        self._last_stop = stop

        if state == LedState.BLINKING:
            if self._led_timer.expired(SERIAL_BLINK_DELAY_MS):
                self._led_timer.start()
                lit = (self._led_toggle & 1) == 0
                self._led_toggle += 1
                self._write_led(lit)
        else:
            self._write_led(state == LedState.ON)

    def run(self, stop_event: threading.Event) -> None:
        """Poll until `stop_event` is set."""
        while not stop_event.is_set():
            time.sleep(POLL_PAUSE_S)
            self.poll()