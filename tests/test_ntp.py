from ipaddress import IPv4Address

import pytest

from espkit.ntp import (
    SECS_PER_DAY,
    SECS_PER_WEEK,
    SECS_YR_2000,
    NTPClient,
    NTPEvent,
    SyncEventInfo,
    SyncEventType,
)


class Counter:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


def test_event_codes_match_protocol_values():
    assert SyncEventType.TIME_SYNCD == 0
    assert SyncEventType.REQUEST_SENT == 1
    assert SyncEventType.ACCURACY_ERROR == -7
    assert SyncEventType(-1) is SyncEventType.NO_RESPONSE


@pytest.mark.parametrize(
    "code, expected",
    [
        (0, False),
        (1, False),
        (2, False),
        (3, False),
        (-1, True),
        (-2, True),
        (-3, True),
        (-4, True),
        (-5, True),
        (-6, True),
        (-7, True),
    ],
)
def test_is_error_follows_sign(code, expected):
    assert SyncEventType(code).is_error is expected


def test_event_info_defaults():
    info = SyncEventInfo()
    assert info.offset == 0.0
    assert info.port == 0
    assert info.retrials == 0
    assert info.server_address == IPv4Address("0.0.0.0")


def test_event_holds_its_info():
    info = SyncEventInfo(offset=0.5, port=123)
    event = NTPEvent(SyncEventType.PARTLY_SYNC, info)
    assert event.event is SyncEventType.PARTLY_SYNC
    assert event.info.port == 123
    assert NTPEvent(SyncEventType.TIME_SYNCD).info == SyncEventInfo()


def test_uptime_truncates_to_seconds():
    boot = Counter(12345)
    client = NTPClient(boot_clock=boot)
    assert client.uptime() == 12
    boot.value = 999
    assert client.uptime() == 0


def test_millis_from_wall_clock():
    wall = Counter(SECS_YR_2000 * 1_000_000_000 + 999_999)
    client = NTPClient(wall_clock=wall)
    assert client.millis() == SECS_YR_2000 * 1000


def test_millis_is_monotonic_with_clock():
    wall = Counter(1_000_000_000)
    client = NTPClient(wall_clock=wall)
    first = client.millis()
    wall.value += 5_000_000
    assert client.millis() - first == 5


def test_default_clocks_are_sane():
    client = NTPClient()
    assert client.uptime() >= 0
    assert client.millis() > SECS_YR_2000 * 1000


def test_time_constants_relations():
    client = NTPClient(boot_clock=Counter(SECS_PER_WEEK * 1000 + 999))
    assert client.uptime() == SECS_PER_DAY * 7
    assert client.uptime() == 604800