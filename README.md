# slbridge

Building blocks for connecting the audio socket of a software modem
(`slmodemd`) to an RTP media stream. The modem side speaks signed 16-bit
little-endian linear PCM at 8 kHz; the network side speaks G.711 µ-law
(PCMU, payload type 0) over RTP. The package converts between the two
directly, with no resampling and no re-timing.

It is built on asyncio and the standard library and has no third-party
dependencies.

## What is inside

| Module | Purpose |
| --- | --- |
| `slbridge.codec` | G.711 µ-law ↔ 16-bit linear PCM conversion, plus `SlinAligner` to keep reads sample-aligned |
| `slbridge.dial_string` | `DialString.parse` strips `T`/`P` tone/pulse prefixes and validates dial characters |
| `slbridge.session` | `Session` and `SessionState`: a call's state machine, with `SessionError` on illegal moves |
| `slbridge.sdp` | `build_offer` for a PCMU-only offer, `parse_answer` to find the remote RTP endpoint |
| `slbridge.rtp` | Minimal RTP: `create_rtp_pair`, `RtpSender`, `RtpReceiver`, `parse_packet` |
| `slbridge.config` | `Config`, `build_parser` and `parse_config` for arguments and environment settings |
| `slbridge.slmodem` | `socket_from_fd` wraps a socket descriptor inherited from `slmodemd` |
| `slbridge.bridge` | `wait_for_dial_string`, `drain_during_sip_setup`, `relay_media`, plus `DialLineBuffer` and `RelayStats` |

## Audio conversion

```python
from slbridge.codec import SlinAligner, decode_ulaw, encode_ulaw

silence = bytes(320)            # one 20 ms frame of S16_LE silence
ulaw = encode_ulaw(silence)     # 160 bytes, each 0xFF
pcm = decode_ulaw(ulaw)         # back to 320 bytes of zeros

aligner = SlinAligner()
aligner.feed(b"\x01\x02\x03")   # b"\x01\x02"; the odd byte is held back
aligner.feed(b"\x04")           # b"\x03\x04"
```

`encode_ulaw` raises `ValueError` when given an odd number of bytes; feed
socket reads through `SlinAligner` first. `slin_sample_to_ulaw` and
`ulaw_sample_to_slin` convert single samples and raise `ValueError` for
values out of range.

## Dial strings

```python
from slbridge.dial_string import DialString, DialStringError

str(DialString.parse("T123#"))  # "123#": leading tone/pulse letters are stripped

try:
    DialString.parse("TP")
except DialStringError as err:
    print(err)                  # empty after stripping the prefix
```

Allowed characters are digits and `* # + , w W`. `DialStringError` is a
`ValueError`.

## Call state

```python
from slbridge.session import Session, SessionError, SessionState

session = Session("123")
session.transition(SessionState.ORIGINATING)
session.transition(SessionState.CONNECTING_MEDIA)
session.transition(SessionState.MEDIA_ACTIVE)
session.transition(SessionState.TERMINATING)
session.transition(SessionState.TERMINATED)
```

`ORIGINATING` and `CONNECTING_MEDIA` may also go straight to `TERMINATING`.
Any other move raises `SessionError` and leaves the state unchanged.

## SDP

```python
from slbridge.sdp import build_offer, parse_answer

offer = build_offer("10.0.0.1", 20000, 12345)

answer = parse_answer(
    "v=0\r\n"
    "c=IN IP4 192.0.2.10\r\n"
    "m=audio 30000 RTP/AVP 0 8 101\r\n"
)
print(answer.addr, answer.port)   # 192.0.2.10 30000
```

`build_offer` takes an address as a string or an `ipaddress` object and
writes `IP4` or `IP6` to match. `parse_answer` raises `SdpError` (a
`ValueError`) if the answer has no `m=audio` line, no usable `c=` line, a bad
port, or does not offer PCMU.

## RTP

```python
from slbridge.rtp import parse_packet

packet = bytes([0x80, 0x00, 0x00, 0x01]) + bytes(8) + b"\xaa\xbb"
parse_packet(packet)            # b"\xaa\xbb"
```

`parse_packet` returns `None` for packets that are too short or not RTP
version 2, and skips CSRC entries and header extensions.

`create_rtp_pair(sock, ssrc)` makes a UDP socket non-blocking and returns an
`RtpSender` and an `RtpReceiver` sharing it. `RtpSender.build_packet` writes
the 12-byte PCMU header and advances the sequence number by 1 and the
timestamp by 160, both wrapping. `await sender.send_packet(payload, remote)`
rejects empty payloads and payloads over 1488 bytes with `ValueError`.
`await receiver.recv_packet()` returns `(payload, address)`, or `None` for a
datagram that is not valid RTP.

## Bridging coroutines

All of these work on an `asyncio.StreamReader` / `asyncio.StreamWriter` pair
for the `slmodemd` socket:

- `wait_for_dial_string(reader, writer)` writes a 320-byte silence frame
  every 20 ms until a `DIAL:<number>` line arrives, and returns the raw
  number. It returns `None` when the socket closes or fails. Lines are
  collected by `DialLineBuffer`, which discards lines over 256 bytes.
- `drain_during_sip_setup(reader, writer, setup)` runs the awaitable
  `setup` while reading and discarding modem audio and still feeding
  silence. It returns or raises what `setup` does; it raises
  `ConnectionError` if the socket closes or fails first, and `RuntimeError`
  after 500 wake-ups.
- `relay_media(reader, writer, sender, receiver, remote_rtp)` encodes modem
  audio to µ-law and sends it as RTP, and decodes received RTP back to the
  modem. It returns the µ-law byte counts `(sent_to_rtp, received_from_rtp)`
  once the modem side closes and RTP receiving fails; an error in either
  direction cancels the other and is raised. Throughput is logged every two
  seconds through `RelayStats`.

## Adopting the modem socket

`socket_from_fd(fd)` wraps an inherited descriptor as a non-blocking
`socket.socket`. It raises `ValueError` for a negative descriptor or one of
4096 or more.

## Configuration

`parse_config(argv, environ)` takes the dial string and the inherited socket
descriptor as positional arguments; the rest come from options, then from
`environ` (by default `os.environ`), then from the defaults:

| Option | Environment variable | Default |
| --- | --- | --- |
| `--sip-local-addr` | `SIP_LOCAL_ADDR` | `0.0.0.0` |
| `--sip-local-rtp-port` | `SIP_LOCAL_RTP_PORT` | `20000` |
| `--invite-timeout-secs` | `SIP_INVITE_TIMEOUT_SECS` | `60` |
| `--telnyx-sip-user` | `TELNYX_SIP_USER` | required |
| `--telnyx-sip-pass` | `TELNYX_SIP_PASS` | required |
| `--telnyx-sip-domain` | `TELNYX_SIP_DOMAIN` | `sip.telnyx.com` |
| `--telnyx-outbound-cid` | `TELNYX_OUTBOUND_CID` | empty |
| `--telnyx-outbound-name` | `TELNYX_OUTBOUND_NAME` | `OOB-Console-Hub` |

```python
from slbridge.config import parse_config

cfg = parse_config(
    ["123", "3"],
    {"TELNYX_SIP_USER": "user", "TELNYX_SIP_PASS": "password"},
)
cfg.invite_timeout   # 60.0 seconds
```

Missing required settings or invalid values end in the parser's usage
error (`SystemExit`). `build_parser()` returns the underlying
`argparse.ArgumentParser`.

## What this package does not do

- It has no SIP signalling: no REGISTER, INVITE, digest authentication,
  ACK or BYE. `drain_during_sip_setup` accepts whatever awaitable you supply
  for call setup.
- It installs no command and has no loop that runs a whole call from start
  to finish; an application wires the pieces above together itself.
- It does not configure logging; it logs through the standard `logging`
  module under the `slbridge` loggers.

## Running the tests

Install the `test` extra, then run `pytest` from the project directory.