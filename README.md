# espkit

`espkit` is a small toolkit for device-style Python programs. It has no runtime
dependencies and is made of four modules:

- `espkit.mqtt_codec` holds the MQTT 3.1.1 wire helpers: `PacketType`, `State`,
  `encode_remaining_length()`, `fixed_header()` and `encode_string()`.
- `espkit.mqtt_client` holds `MQTTClient`, a client that runs over any transport you
  supply, and the `Transport` protocol that describes such a transport.
- `espkit.button` holds debounced push buttons (`Button`, `VirtualButton`). They report
  presses, long presses and press sequences such as double clicks.
- `espkit.ntp` holds `NTPClient`, which reports uptime and wall-clock milliseconds. It
  also holds the sync event types `SyncEventType`, `SyncEventInfo` and `NTPEvent`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## MQTT

### Transports

`MQTTClient` does not open sockets itself. It talks through a transport object with
these methods:

| Method | What it does |
| --- | --- |
| `connect(host, port)` | Opens the connection and returns `True` on success. |
| `connected()` | Returns `True` while the connection is open. |
| `write(data)` | Sends bytes and returns how many were accepted. |
| `available()` | Returns the number of bytes ready to read. |
| `read()` | Returns the next byte as an integer. |
| `flush()` | Pushes out buffered outgoing data. |
| `stop()` | Closes the connection. |

`host` is either a host-name string or an `ipaddress.IPv4Address`.

### Connecting and exchanging messages

```python
from espkit.mqtt_client import MQTTClient
from espkit.mqtt_codec import State

def on_message(topic, payload):
    print(topic, payload)          # topic is a str, payload is bytes

client = MQTTClient(my_transport, server="broker.example.com", port=1883,
                    callback=on_message)

password = "password"
if client.connect("client_test1", user="user", password=password):
    client.subscribe("sensors/#", 1)
    client.publish("status", b"online", retained=True)
    while client.loop():
        ...
else:
    print("connect failed:", client.state)
```

#### Choosing the server

The `server` argument, or a later call to `set_server(server, port)`, takes one of
these:

- a host-name string;
- an `IPv4Address`;
- four address octets, as bytes, a tuple or a list.

#### Connecting

`connect()` also accepts these optional arguments:

- a will: `will_topic`, `will_qos`, `will_retain` and `will_message`;
- `clean_session`, which defaults to `True`.

After sending CONNECT, `connect()` waits for the broker's CONNACK. It waits at most
`client.socket_timeout` seconds, 15 by default. The `keepalive` attribute is in seconds
and also defaults to 15. It is sent in CONNECT, and `loop()` uses it to decide when to
send a ping.

#### Running the client

`loop()` must be called regularly. Each call does the following:

- It sends PINGREQ when the connection has been idle for `keepalive` seconds.
- It reports a timeout if the previous ping is still unanswered.
- It reads one incoming packet.
- It passes PUBLISH messages to the callback. QoS 1 messages are acknowledged with a
  PUBACK.
- It answers PINGREQ.

It returns `False` once the connection is gone.

#### Closing

`disconnect(send_packet=False)` closes the transport. If `send_packet` is `True`, it
sends a DISCONNECT packet first.

### Publishing

`publish(topic, payload, retained)` sends a QoS 0 message. The message must fit in the
packet buffer. The buffer is 1200 bytes by default and can be changed with
`set_buffer_size(size)`, which accepts sizes from 1 to 65535. `publish()` returns
`False` if the message is too long or the client is not connected.

There are two ways to send payloads larger than the buffer.

`publish_streamed(topic, payload, retained)` writes the payload to the transport one
byte at a time.

`begin_publish()`, `write()` and `end_publish()` let you send the payload in pieces:

```python
client.begin_publish("big/topic", len(data), False)
client.write(data)
client.end_publish()
```

### Subscribing

`subscribe(topic, qos)` accepts a QoS of 0 or 1. It returns `False` for any other
value, for a topic too long for the buffer, or when the client is not connected.
`unsubscribe(topic)` follows the same rules. The SUBACK and UNSUBACK replies from the
broker are read and ignored by `loop()`.

### Receiving into a stream

Pass `stream=` to receive payloads into any object with a `write(bytes)` method. The
payload bytes of each incoming PUBLISH are written to the stream as they arrive. This
lets a message larger than the buffer be received. In that case the callback is still
called, with whatever part of the payload fit in the buffer.

### State

`client.state` holds a `State` value. Examples are `State.CONNECTED`,
`State.CONNECTION_TIMEOUT`, `State.CONNECTION_LOST`, and the broker's refusal codes
such as `State.CONNECT_BAD_CREDENTIALS`. `is_connected()` checks the transport and
updates the state when the connection has dropped.

### Clocks

All timing goes through a `clock` callable that returns milliseconds. It defaults to a
monotonic clock. Tests can pass their own clock to control time.

## Buttons

```python
from espkit.button import Button

button = Button(read_pin=lambda: gpio.value(), debounce_time=35)
button.on_pressed(lambda: print("click"))
button.on_pressed_for(2000, lambda: print("long press"))
button.on_sequence(2, 1500, lambda: print("double click"))
button.begin()

while True:
    button.read()
```

### Reading the pin

- Buttons are active-low by default: a low pin reading means pressed. Pass
  `active_low=False` for the opposite.
- `read()` debounces the pin, fires the callbacks and returns `True` while the button
  is pressed.
- A short press fires the `on_pressed` callback and counts towards the press sequences
  when the button is released.
- A press that was held long enough to fire the `on_pressed_for` callback does neither.

### Press sequences

`on_sequence()` keeps at most five sequences. It returns `False` when asked for a
sixth. A single sequence can also be used on its own through the `Sequence` class.

### Queries

These describe the button as it was at the last read:

- `is_pressed()` and `is_released()`;
- `was_pressed()` and `was_released()`, which are true only on the read that saw the
  change;
- `pressed_for(ms)` and `released_for(ms)`.

### Interrupt mode

`enable_interrupt()` switches the button to interrupt mode. In this mode `read()` no
longer checks for long presses, and you call `update()` for that instead.
`disable_interrupt()` switches back to polling. These methods only change how
`Button` behaves; attaching an actual interrupt handler is left to you.

### VirtualButton

`VirtualButton(source)` takes its level from any callable rather than a pin. It is not
debounced. This suits software-driven or remote inputs.

## Time

```python
from espkit.ntp import NTPClient

clock = NTPClient()
print(clock.uptime(), "seconds since start")
print(clock.millis(), "ms since the Unix epoch")
```

Both clocks can be injected:

- `boot_clock` returns milliseconds since start-up. By default it counts from the
  creation of the client.
- `wall_clock` returns nanoseconds since the epoch. It defaults to `time.time_ns`.

The module also provides constants such as `SECS_PER_DAY` and `SECS_YR_2000`.

## What the package does not do

- **No network transport.** There is no socket or TLS transport for `MQTTClient`; you
  provide one.
- **No QoS 2.** Outgoing publishes are QoS 0 only, subscriptions are limited to QoS 0
  and 1, and QoS 2 flows are not supported.
- **No automatic reconnect.**
- **No time synchronisation.** `espkit.ntp` performs no NTP exchange and never sets
  the clock. `SyncEventType`, `SyncEventInfo` and `NTPEvent` only describe sync
  outcomes for code that performs synchronisation elsewhere.
- **No time zone handling and no date formatting.**