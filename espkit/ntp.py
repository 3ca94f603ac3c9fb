"""NTP synchronisation event types and a clock for uptime and epoch time."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv4Address

SECS_PER_MIN = 60
SECS_PER_HOUR = 3600
SECS_PER_DAY = SECS_PER_HOUR * 24
DAYS_PER_WEEK = 7
SECS_PER_WEEK = SECS_PER_DAY * DAYS_PER_WEEK
SECS_PER_YEAR = SECS_PER_DAY * 365
SECS_YR_2000 = 946684800
"""Unix time at the start of the year 2000."""


class SyncEventType(IntEnum):
    """Outcome codes of an NTP synchronisation attempt."""

    TIME_SYNCD = 0
    NO_RESPONSE = -1
    INVALID_ADDRESS = -2
    INVALID_PORT = -3
    REQUEST_SENT = 1
    PARTLY_SYNC = 2
    SYNC_NOT_NEEDED = 3
    ERROR_SENDING = -4
    RESPONSE_ERROR = -5
    SYNC_ERROR = -6
    ACCURACY_ERROR = -7

    @property
    def is_error(self) -> bool:
        """True for codes that report a failure."""
        return self.value < 0


@dataclass
class SyncEventInfo:
    """Details that come with a synchronisation event."""

    offset: float = 0.0
    delay: float = 0.0
    dispersion: float = 0.0
    server_address: IPv4Address = field(default_factory=lambda: IPv4Address(0))
    port: int = 0
    retrials: int = 0


@dataclass
class NTPEvent:
    """A synchronisation event code with its details."""

    event: SyncEventType
    info: SyncEventInfo = field(default_factory=SyncEventInfo)


class NTPClient:
    """Reports uptime and milliseconds since the Unix epoch.

    ``boot_clock`` returns milliseconds since start-up; by default it counts
    from the creation of the client. ``wall_clock`` returns nanoseconds since
    the Unix epoch and defaults to ``time.time_ns``.
    """

    def __init__(
        self,
        boot_clock: Callable[[], int] | None = None,
        wall_clock: Callable[[], int] | None = None,
    ) -> None:
        if boot_clock is None:
            started = time.monotonic_ns()

            def boot_clock() -> int:
                return (time.monotonic_ns() - started) // 1_000_000

        self._boot_clock = boot_clock
        self._wall_clock = wall_clock if wall_clock is not None else time.time_ns

    def uptime(self) -> int:
        """Whole seconds since start-up."""
        return int(self._boot_clock()) // 1000

    def millis(self) -> int:
        """Milliseconds since 1970-01-01 00:00 UTC."""
        return int(self._wall_clock()) // 1_000_000