"""A small MQTT 3.1.1 client driven by repeated calls to ``loop()``."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from ipaddress import IPv4Address
from typing import Protocol, runtime_checkable

from espkit.mqtt_codec import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_KEEPALIVE,
    DEFAULT_SOCKET_TIMEOUT,
    MAX_HEADER_SIZE,
    PROTOCOL_LEVEL,
    PROTOCOL_NAME,
    QOS1,
    RETAIN,
    PacketType,
    State,
    encode_string,
    fixed_header,
)

MessageCallback = Callable[[str, bytes], None]
Clock = Callable[[], int]
Host = "str | IPv4Address"


@runtime_checkable
class Transport(Protocol):
    """Byte-oriented network connection the client talks through."""

    def connect(self, host: str | IPv4Address, port: int) -> bool:
        """Open the connection; return True on success."""

    def connected(self) -> bool:
        """Return True while the connection is open."""

    def write(self, data: bytes) -> int:
        """Send bytes and return how many were accepted."""

    def available(self) -> int:
        """Return the number of bytes ready to be read."""

    def read(self) -> int:
        """Return the next received byte."""

    def flush(self) -> None:
        """Push out any buffered outgoing data."""

    def stop(self) -> None:
        """Close the connection."""


class _Sink(Protocol):
    def write(self, data: bytes) -> object:
        """Accept a chunk of payload bytes."""


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def _as_bytes(value: str | bytes | bytearray) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _to_state(code: int) -> State | int:
    try:
        return State(code)
    except ValueError:
        return code


class MQTTClient:
    """MQTT client over a caller-supplied transport.

    Incoming PUBLISH messages are handed to ``callback(topic, payload)``.
    When a ``stream`` is set, the payload bytes of incoming PUBLISH packets
    are also written to it as they arrive, which allows payloads larger than
    the packet buffer to be received.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        server: str | IPv4Address | Sequence[int] | bytes | None = None,
        port: int = 1883,
        callback: MessageCallback | None = None,
        stream: _Sink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.transport = transport
        self.callback = callback
        self.stream = stream
        self.keepalive = DEFAULT_KEEPALIVE
        self.socket_timeout = DEFAULT_SOCKET_TIMEOUT
        self._clock: Clock = clock if clock is not None else _monotonic_ms
        self._state: State | int = State.DISCONNECTED
        self._buffer_size = DEFAULT_BUFFER_SIZE
        self._host: str | IPv4Address = IPv4Address(0)
        self._port = port
        self._next_msg_id = 0
        self._last_in = 0
        self._last_out = 0
        self._ping_outstanding = False
        if server is not None:
            self.set_server(server, port)

    @property
    def state(self) -> State | int:
        """Current connection state, or the raw CONNACK code if unknown."""
        return self._state

    @property
    def buffer_size(self) -> int:
        """Largest packet, in bytes, the client builds or accepts."""
        return self._buffer_size

    def set_server(
        self, server: str | IPv4Address | Sequence[int] | bytes, port: int
    ) -> MQTTClient:
        """Set the broker: a host name string, or an IPv4 address."""
        if isinstance(server, str):
            self._host = server
        elif isinstance(server, IPv4Address):
            self._host = server
        elif isinstance(server, (bytes, bytearray, tuple, list)):
            self._host = IPv4Address(bytes(server))
        else:
            raise TypeError(f"unsupported server address: {server!r}")
        self._port = port
        return self

    def set_buffer_size(self, size: int) -> bool:
        """Change the packet buffer size; zero or oversized values are refused."""
        if not 0 < size <= 0xFFFF:
            return False
        self._buffer_size = size
        return True

    def connect(
        self,
        client_id: str | bytes,
        user: str | bytes | None = None,
        password: str | bytes | None = None,
        will_topic: str | bytes | None = None,
        will_qos: int = 0,
        will_retain: bool = False,
        will_message: str | bytes | None = None,
        clean_session: bool = True,
    ) -> bool:
        """Connect to the broker and wait for its CONNACK."""
        if self.is_connected():
            return True
        transport = self.transport
        if transport is None:
            return False

        if transport.connected():
            result = True
        else:
            result = bool(transport.connect(self._host, self._port))
        if not result:
            self._state = State.CONNECT_FAILED
            return False

        self._next_msg_id = 1
        body = bytearray(encode_string(PROTOCOL_NAME))
        body.append(PROTOCOL_LEVEL)

        flags = 0
        if will_topic is not None:
            flags = 0x04 | (will_qos << 3) | (int(bool(will_retain)) << 5)
        if clean_session:
            flags |= 0x02
        if user is not None:
            flags |= 0x80
            if password is not None:
                flags |= 0x40
        body.append(flags & 0xFF)
        body += (self.keepalive & 0xFFFF).to_bytes(2, "big")

        fields: list[str | bytes] = [client_id]
        if will_topic is not None:
            fields += [will_topic, will_message if will_message is not None else b""]
        if user is not None:
            fields.append(user)
            if password is not None:
                fields.append(password)

        for field in fields:
            data = _as_bytes(field)
            if MAX_HEADER_SIZE + len(body) + 2 + len(data) > self._buffer_size:
                transport.stop()
                return False
            body += encode_string(data)

        self._write(PacketType.CONNECT, bytes(body))
        self._last_in = self._last_out = self._clock()

        while not transport.available():
            time.sleep(0)
            if self._clock() - self._last_in >= self.socket_timeout * 1000:
                self._state = State.CONNECTION_TIMEOUT
                transport.stop()
                return False

        packet, _ = self._read_packet()
        if len(packet) == 4:
            if packet[3] == 0:
                self._last_in = self._clock()
                self._ping_outstanding = False
                self._state = State.CONNECTED
                return True
            self._state = _to_state(packet[3])
        transport.stop()
        return False

    def disconnect(self, send_packet: bool = False) -> None:
        """Close the connection, optionally sending a DISCONNECT first."""
        if self.transport is not None:
            if send_packet:
                self.transport.write(bytes((PacketType.DISCONNECT, 0)))
            self.transport.flush()
            self.transport.stop()
        self._state = State.DISCONNECTED
        self._last_in = self._last_out = self._clock()

    def publish(
        self,
        topic: str | bytes,
        payload: str | bytes | None = b"",
        retained: bool = False,
    ) -> bool:
        """Publish a QoS 0 message that fits in the packet buffer."""
        if not self.is_connected():
            return False
        topic_bytes = _as_bytes(topic)
        data = _as_bytes(payload) if payload is not None else b""
        if self._buffer_size < MAX_HEADER_SIZE + 2 + len(topic_bytes) + len(data):
            return False
        header = PacketType.PUBLISH | (RETAIN if retained else 0)
        return self._write(header, encode_string(topic_bytes) + data)

    def publish_streamed(
        self,
        topic: str | bytes,
        payload: str | bytes | None = b"",
        retained: bool = False,
    ) -> bool:
        """Publish without copying the payload into the buffer, byte by byte."""
        if not self.is_connected():
            return False
        transport = self.transport
        topic_bytes = _as_bytes(topic)
        data = _as_bytes(payload) if payload is not None else b""
        header = PacketType.PUBLISH | (RETAIN if retained else 0)
        head = fixed_header(header, len(data) + 2 + len(topic_bytes))
        head += encode_string(topic_bytes)
        sent = transport.write(head)
        for byte in data:
            sent += transport.write(bytes((byte,)))
        if sent > 0:
            self._last_out = self._clock()
        return sent == len(head) + len(data)

    def begin_publish(
        self, topic: str | bytes, length: int, retained: bool = False
    ) -> bool:
        """Send the header of a PUBLISH whose payload follows through ``write``."""
        if not self.is_connected():
            return False
        topic_bytes = _as_bytes(topic)
        header = PacketType.PUBLISH | (RETAIN if retained else 0)
        packet = fixed_header(header, length + 2 + len(topic_bytes))
        packet += encode_string(topic_bytes)
        sent = self.transport.write(packet)
        if sent > 0:
            self._last_out = self._clock()
        return sent == len(packet)

    def write(self, data: int | bytes | bytearray) -> int:
        """Send raw payload bytes; return the number accepted."""
        if self.transport is None:
            self._last_out = self._clock()
            return 0
        chunk = bytes((data & 0xFF,)) if isinstance(data, int) else bytes(data)
        sent = self.transport.write(chunk)
        if sent:
            self._last_out = self._clock()
        return sent

    def end_publish(self) -> bool:
        """Finish a message started with ``begin_publish``."""
        return True

    def subscribe(self, topic: str | bytes | None, qos: int = 0) -> bool:
        """Subscribe to a topic at QoS 0 or 1."""
        if topic is None:
            return False
        if qos not in (0, 1):
            return False
        topic_bytes = _as_bytes(topic)
        if self._buffer_size < 9 + len(topic_bytes):
            return False
        if not self.is_connected():
            return False
        body = self._take_msg_id() + encode_string(topic_bytes) + bytes((qos,))
        return self._write(PacketType.SUBSCRIBE | QOS1, body)

    def unsubscribe(self, topic: str | bytes | None) -> bool:
        """Unsubscribe from a topic."""
        if topic is None:
            return False
        topic_bytes = _as_bytes(topic)
        if self._buffer_size < 9 + len(topic_bytes):
            return False
        if not self.is_connected():
            return False
        body = self._take_msg_id() + encode_string(topic_bytes)
        return self._write(PacketType.UNSUBSCRIBE | QOS1, body)

    def loop(self) -> bool:
        """Keep the connection alive and handle one incoming packet."""
        if not self.is_connected():
            return False
        transport = self.transport
        now = self._clock()
        limit = self.keepalive * 1000
        if now - self._last_in > limit or now - self._last_out > limit:
            if self._ping_outstanding:
                self._state = State.CONNECTION_TIMEOUT
                transport.stop()
                return False
            if transport.write(bytes((PacketType.PINGREQ, 0))):
                self._last_out = now
                self._last_in = now
            self._ping_outstanding = True

        if transport.available():
            packet, llen = self._read_packet()
            if packet:
                self._last_in = now
                kind = packet[0] & 0xF0
                if kind == PacketType.PUBLISH:
                    if self.callback is not None and not self._deliver(packet, llen, now):
                        return False
                elif kind == PacketType.PINGREQ:
                    transport.write(bytes((PacketType.PINGRESP, 0)))
                elif kind == PacketType.PINGRESP:
                    self._ping_outstanding = False
            elif not self.is_connected():
                return False
        return True

    def is_connected(self) -> bool:
        """Return True if the transport is open and the session is established."""
        transport = self.transport
        if transport is None:
            self._state = State.DISCONNECTED
            return False
        if not transport.connected():
            if self._state == State.CONNECTED:
                self._state = State.CONNECTION_LOST
                transport.flush()
                transport.stop()
            return False
        return self._state == State.CONNECTED

    def _deliver(self, packet: bytes, llen: int, now: int) -> bool:
        topic_len = (packet[llen + 1] << 8) + packet[llen + 2]
        if llen + 3 + topic_len > self._buffer_size:
            self._state = State.DISCONNECTED
            self.transport.stop()
            return False
        rest = llen + 3 + topic_len
        topic = packet[llen + 3:rest].decode("utf-8", "replace")
        if (packet[0] & 0x06) == QOS1:
            msg_id = packet[rest:rest + 2]
            self.callback(topic, packet[rest + 2:])
            ack = bytes((PacketType.PUBACK, 2)) + msg_id
            if self.transport.write(ack):
                self._last_out = now
        else:
            self.callback(topic, packet[rest:])
        return True

    def _take_msg_id(self) -> bytes:
        self._next_msg_id = (self._next_msg_id + 1) & 0xFFFF
        if self._next_msg_id == 0:
            self._next_msg_id = 1
        return self._next_msg_id.to_bytes(2, "big")

    def _write(self, header: int, body: bytes) -> bool:
        packet = fixed_header(header, len(body)) + body
        sent = self.transport.write(packet)
        if sent:
            self._last_out = self._clock()
        return sent == len(packet)

    def _read_byte(self) -> int | None:
        transport = self.transport
        if transport is None:
            return None
        started = self._clock()
        while not transport.available():
            time.sleep(0.001)
            if self._clock() - started >= self.socket_timeout * 1000:
                return None
        return transport.read() & 0xFF

    def _read_packet(self) -> tuple[bytes, int]:
        """Read one packet; return its stored bytes (empty if dropped) and the length-field size."""
        first = self._read_byte()
        if first is None:
            return b"", 0
        buf = bytearray((first,))
        is_publish = (first & 0xF0) == PacketType.PUBLISH
        multiplier = 1
        length = 0
        while True:
            if len(buf) == 5:
                self._state = State.DISCONNECTED
                self.transport.stop()
                return b"", 0
            digit = self._read_byte()
            if digit is None:
                return b"", 0
            buf.append(digit)
            length += (digit & 0x7F) * multiplier
            multiplier <<= 7
            if not (digit & 0x80 and len(buf) < self._buffer_size - 2):
                break
        llen = len(buf) - 1

        start = 0
        skip = 0
        if is_publish:
            for _ in range(2):
                byte = self._read_byte()
                if byte is None:
                    return b"", llen
                buf.append(byte)
            skip = (buf[llen + 1] << 8) + buf[llen + 2]
            start = 2
            if first & QOS1:
                skip += 2

        index = len(buf)
        for _ in range(start, length):
            digit = self._read_byte()
            if digit is None:
                return b"", llen
            if self.stream is not None and is_publish and index - llen - 2 > skip:
                self.stream.write(bytes((digit,)))
            if len(buf) < self._buffer_size:
                buf.append(digit)
            index += 1

        if self.stream is None and index > self._buffer_size:
            return b"", llen
        return bytes(buf), llen