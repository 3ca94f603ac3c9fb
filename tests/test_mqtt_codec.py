import pytest

from espkit.mqtt_codec import (
    MAX_HEADER_SIZE,
    MAX_REMAINING_LENGTH,
    QOS1,
    PacketType,
    State,
    encode_remaining_length,
    encode_string,
    fixed_header,
)


def _decode_remaining_length(data):
    value = 0
    multiplier = 1
    for used, byte in enumerate(data, start=1):
        value += (byte & 0x7F) * multiplier
        multiplier <<= 7
        if not byte & 0x80:
            return value, used
    raise AssertionError("unterminated length")


def test_connect_header_matches_wire_bytes():
    assert fixed_header(PacketType.CONNECT, 0x18) == bytes([0x10, 0x18])


def test_publish_header_matches_wire_bytes():
    assert fixed_header(PacketType.PUBLISH, 0x0E) == bytes([0x30, 0x0E])


def test_retained_publish_header():
    assert fixed_header(PacketType.PUBLISH | 1, 0x0C) == bytes([0x31, 0x0C])


def test_subscribe_header_with_qos1_flag():
    assert fixed_header(PacketType.SUBSCRIBE | QOS1, 0x0A) == bytes([0x82, 0x0A])


def test_unsubscribe_header_with_qos1_flag():
    assert fixed_header(PacketType.UNSUBSCRIBE | QOS1, 0x09) == bytes([0xA2, 0x09])


@pytest.mark.parametrize(
    "packet, expected",
    [
        (PacketType.PINGREQ, bytes([0xC0, 0x00])),
        (PacketType.PINGRESP, bytes([0xD0, 0x00])),
        (PacketType.DISCONNECT, bytes([0xE0, 0x00])),
    ],
)
def test_empty_packets(packet, expected):
    assert fixed_header(packet, 0) == expected


def test_encode_string_topic():
    assert encode_string("topic") == bytes([0x00, 0x05]) + b"topic"


def test_encode_string_client_id():
    assert encode_string("client_test1") == bytes(
        [0x0, 0xC, 0x63, 0x6C, 0x69, 0x65, 0x6E, 0x74, 0x5F, 0x74, 0x65, 0x73, 0x74, 0x31]
    )


def test_encode_string_empty():
    assert encode_string("") == bytes([0x00, 0x00])


def test_encode_string_accepts_bytes():
    assert encode_string(b"willTopic") == encode_string("willTopic")


def test_encode_string_prefix_counts_utf8_bytes():
    text = "héllo"
    encoded = encode_string(text)
    assert int.from_bytes(encoded[:2], "big") == len(text.encode("utf-8"))
    assert encoded[2:].decode("utf-8") == text


def test_encode_string_maximum_length():
    data = b"a" * 0xFFFF
    encoded = encode_string(data)
    assert encoded[:2] == bytes([0xFF, 0xFF])
    assert encoded[2:] == data


def test_encode_string_too_long():
    with pytest.raises(ValueError):
        encode_string(b"a" * 0x10000)


@pytest.mark.parametrize(
    "length",
    [0, 1, 127, 128, 300, 16383, 16384, 65535, 2097151, 2097152, MAX_REMAINING_LENGTH],
)
def test_remaining_length_round_trip(length):
    encoded = encode_remaining_length(length)
    value, used = _decode_remaining_length(encoded)
    assert value == length
    assert used == len(encoded)
    assert len(encoded) <= MAX_HEADER_SIZE - 1


@pytest.mark.parametrize("length", [0, 5, 127])
def test_small_lengths_fit_one_byte(length):
    assert encode_remaining_length(length) == bytes([length])


@pytest.mark.parametrize(
    "length, expected",
    [
        (128, bytes([0x80, 0x01])),
        (300, bytes([0xAC, 0x02])),
        (16383, bytes([0xFF, 0x7F])),
        (16384, bytes([0x80, 0x80, 0x01])),
    ],
)
def test_continuation_bits_only_on_non_final_bytes(length, expected):
    encoded = encode_remaining_length(length)
    assert encoded == expected
    assert [b & 0x80 for b in encoded] == [0x80] * (len(encoded) - 1) + [0]


def test_negative_length_rejected():
    with pytest.raises(ValueError):
        encode_remaining_length(-1)


def test_excessive_length_rejected():
    with pytest.raises(ValueError):
        encode_remaining_length(MAX_REMAINING_LENGTH + 1)


@pytest.mark.parametrize("header", [-1, 256])
def test_header_byte_out_of_range(header):
    with pytest.raises(ValueError):
        fixed_header(header, 0)


def test_fixed_header_is_type_then_length():
    header = fixed_header(PacketType.PUBLISH, 300)
    assert header[0] == PacketType.PUBLISH
    assert header[1:] == encode_remaining_length(300)


def test_state_codes_from_connack():
    assert State(0) is State.CONNECTED
    assert State(1) is State.CONNECT_BAD_PROTOCOL
    assert State(-1) is State.DISCONNECTED


def test_packet_type_from_header_byte():
    assert PacketType(0x32 & 0xF0) is PacketType.PUBLISH
    assert PacketType(0x90 & 0xF0) is PacketType.SUBACK