"""Debounced push buttons with press, long-press and multi-press callbacks."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

Callback = Callable[[], None]
Clock = Callable[[], int]

MAX_SEQUENCES = 5
DEFAULT_DEBOUNCE_MS = 35


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class Sequence:
    """Counts short presses and fires when enough arrive within a time limit."""

    def __init__(self, presses: int = 0, duration: int = 0) -> None:
        self.presses = presses
        self.duration = duration
        self.enabled = False
        self._first_press_time = 0
        self._count = 0

    @property
    def count(self) -> int:
        """Short presses counted so far in the current sequence."""
        return self._count

    def new_press(self, now_ms: int) -> bool:
        """Register a short press; return True when the sequence completes."""
        if not self.enabled:
            return False
        if self._count == 0:
            self._first_press_time = now_ms
        self._count += 1
        elapsed = now_ms - self._first_press_time
        if self._count == self.presses and self.duration >= elapsed:
            self.reset()
            return True
        if self.duration <= elapsed:
            # The sequence timed out: this press starts a new one.
            self._count = 1
            self._first_press_time = now_ms
        return False

    def reset(self) -> None:
        """Forget the presses counted so far."""
        self._count = 0
        self._first_press_time = 0

    def enable(self) -> None:
        """Start counting presses."""
        self.enabled = True

    def disable(self) -> None:
        """Stop counting presses."""
        self.enabled = False


class ButtonBase(ABC):
    """State and callbacks shared by every kind of button."""

    def __init__(self, active_low: bool = True, clock: Clock | None = None) -> None:
        self.active_low = active_low
        self._clock: Clock = clock if clock is not None else _monotonic_ms
        self._sequences: list[tuple[Sequence, Callback]] = []
        self._held_threshold = 0
        self._pressed_callback: Callback | None = None
        self._pressed_for_callback: Callback | None = None
        self._held_callback_called = False
        self._current_state = False
        self._last_state = False
        self._changed = False
        self._time = 0
        self._last_change = 0
        self._was_held = False

    @abstractmethod
    def begin(self) -> None:
        """Take the initial state of the button."""

    @abstractmethod
    def read(self) -> bool:
        """Sample the button and return True while it is pressed."""

    def on_pressed(self, callback: Callback | None) -> None:
        """Call ``callback`` when the button is pressed and released."""
        self._pressed_callback = callback

    def on_pressed_for(self, duration: int, callback: Callback | None) -> None:
        """Call ``callback`` once the button has been held for ``duration`` ms."""
        self._held_threshold = duration
        self._pressed_for_callback = callback

    def on_sequence(self, presses: int, duration: int, callback: Callback) -> bool:
        """Call ``callback`` after ``presses`` short presses within ``duration`` ms.

        At most five sequences are kept; return False when one is refused.
        """
        if len(self._sequences) >= MAX_SEQUENCES:
            return False
        sequence = Sequence(presses, duration)
        sequence.enable()
        self._sequences.append((sequence, callback))
        return True

    def is_pressed(self) -> bool:
        """Return True if the button was pressed at the last read."""
        return self._current_state

    def is_released(self) -> bool:
        """Return True if the button was released at the last read."""
        return not self._current_state

    def was_pressed(self) -> bool:
        """Return True if the last read saw the button go down."""
        return self._current_state and self._changed

    def was_released(self) -> bool:
        """Return True if the last read saw the button come up."""
        return not self._current_state and self._changed

    def pressed_for(self, duration: int) -> bool:
        """Return True if pressed for at least ``duration`` ms at the last read."""
        return self._current_state and self._time - self._last_change >= duration

    def released_for(self, duration: int) -> bool:
        """Return True if released for at least ``duration`` ms at the last read."""
        return not self._current_state and self._time - self._last_change >= duration

    def _start(self, raw: bool) -> None:
        self._current_state = (not raw) if self.active_low else bool(raw)
        self._time = self._clock()
        self._last_state = self._current_state
        self._changed = False
        self._last_change = self._time

    def _handle_release(self, now: int) -> None:
        if not self._was_held:
            if self._pressed_callback is not None:
                self._pressed_callback()
            for sequence, callback in self._sequences:
                if sequence.new_press(now):
                    callback()
        else:
            self._was_held = False
        self._held_callback_called = False

    def _check_pressed_time(self) -> None:
        now = self._clock()
        if (
            self._current_state
            and now - self._last_change >= self._held_threshold
            and self._pressed_for_callback is not None
        ):
            self._was_held = True
            if not self._held_callback_called:
                self._held_callback_called = True
                self._pressed_for_callback()


class _ReadType(Enum):
    INTERRUPT = 0
    POLL = 1


class Button(ButtonBase):
    """A debounced button whose level is read through ``read_pin()``."""

    def __init__(
        self,
        read_pin: Callable[[], bool],
        debounce_time: int = DEFAULT_DEBOUNCE_MS,
        active_low: bool = True,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(active_low, clock)
        self._read_pin = read_pin
        self.debounce_time = debounce_time
        self._read_type = _ReadType.POLL

    @property
    def uses_interrupt(self) -> bool:
        """True when held-time checks are left to ``update()``."""
        return self._read_type is _ReadType.INTERRUPT

    def begin(self) -> None:
        """Take the initial state of the button."""
        self._start(bool(self._read_pin()))

    def read(self) -> bool:
        """Sample the pin, debounce it, fire callbacks and return the state."""
        now = self._clock()
        level = bool(self._read_pin())
        if self.active_low:
            level = not level

        if now - self._last_change < self.debounce_time:
            self._changed = False
        else:
            self._last_state = self._current_state
            self._current_state = level
            self._changed = self._current_state != self._last_state
            if self._changed:
                self._last_change = now

        if self.was_released():
            self._handle_release(now)
        elif self.is_pressed() and self._read_type is _ReadType.POLL:
            self._check_pressed_time()

        self._time = now
        return self._current_state

    def update(self) -> None:
        """Check the held time; needed when reads are driven by interrupts."""
        if not self._was_held:
            self._check_pressed_time()

    def enable_interrupt(self) -> None:
        """Switch to interrupt mode: reads no longer check the held time."""
        self._read_type = _ReadType.INTERRUPT

    def disable_interrupt(self) -> None:
        """Switch back to polling mode."""
        self._read_type = _ReadType.POLL


class VirtualButton(ButtonBase):
    """A button whose level comes from ``source()``, without debouncing."""

    def __init__(
        self,
        source: Callable[[], bool],
        active_low: bool = True,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(active_low, clock)
        self._source = source

    def begin(self) -> None:
        """Take the initial state of the button."""
        self._start(bool(self._source()))

    def read(self) -> bool:
        """Sample the source, fire callbacks and return the state."""
        now = self._clock()
        self._last_state = self._current_state
        level = bool(self._source())
        self._current_state = (not level) if self.active_low else level
        self._changed = self._current_state != self._last_state
        if self._changed:
            self._last_change = now

        if self.was_released():
            self._handle_release(now)
        elif self.is_pressed():
            self._check_pressed_time()

        self._time = now
        return self._current_state