import asyncio
import socket

import pytest

from slbridge.bridge import (
    LINE_BUF_LIMIT,
    DialLineBuffer,
    drain_during_sip_setup,
    relay_media,
    wait_for_dial_string,
)
from slbridge.rtp import create_rtp_pair, parse_packet


async def _stream_pair():
    left, right = socket.socketpair()
    reader, writer = await asyncio.open_connection(sock=left)
    peer_reader, peer_writer = await asyncio.open_connection(sock=right)
    return reader, writer, peer_reader, peer_writer


class _FakeSender:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    async def send_packet(self, payload, remote):
        if self.error is not None:
            raise self.error
        self.sent.append((bytes(payload), remote))
        return len(payload) + 12


class _FakeReceiver:
    def __init__(self, script):
        self.script = list(script)
        self.cancelled = False

    async def recv_packet(self):
        if not self.script:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


# DialLineBuffer


def test_dial_line_returns_number():
    assert DialLineBuffer().feed(b"DIAL:18005551212\n") == "18005551212"


def test_dial_line_split_across_chunks():
    lines = DialLineBuffer()
    assert lines.feed(b"DI") is None
    assert lines.feed(b"AL:12") is None
    assert lines.feed(b"3\n") == "123"


def test_dial_line_trims_whitespace():
    assert DialLineBuffer().feed(b"DIAL: 555 \r\n") == "555"


def test_dial_line_skips_unknown_and_empty_lines():
    lines = DialLineBuffer()
    assert lines.feed(b"HELLO\n\nDIAL:\nDIAL:   \n") is None
    assert lines.feed(b"DIAL:42\n") == "42"


def test_dial_line_overflow_discards_garbage():
    lines = DialLineBuffer()
    assert lines.feed(b"x" * (LINE_BUF_LIMIT + 1)) is None
    assert lines.feed(b"DIAL:5\n") == "5"


def test_dial_line_partial_garbage_prevents_match():
    lines = DialLineBuffer()
    assert lines.feed(b"x" * 10) is None
    assert lines.feed(b"DIAL:5\n") is None


# wait_for_dial_string


@pytest.mark.asyncio
async def test_wait_sends_silence_and_returns_dial():
    reader, writer, peer_reader, peer_writer = await _stream_pair()
    task = asyncio.ensure_future(wait_for_dial_string(reader, writer))
    frame = await asyncio.wait_for(peer_reader.readexactly(320), 2)
    assert frame == bytes(320)
    peer_writer.write(b"noise\nDIAL:T123\n")
    await peer_writer.drain()
    assert await asyncio.wait_for(task, 2) == "T123"
    writer.close()
    peer_writer.close()


@pytest.mark.asyncio
async def test_wait_returns_none_on_close():
    reader, writer, peer_reader, peer_writer = await _stream_pair()
    task = asyncio.ensure_future(wait_for_dial_string(reader, writer))
    await asyncio.sleep(0.03)
    peer_writer.close()
    assert await asyncio.wait_for(task, 2) is None
    writer.close()


# drain_during_sip_setup


@pytest.mark.asyncio
async def test_drain_returns_setup_result_and_feeds_silence():
    reader, writer, peer_reader, peer_writer = await _stream_pair()

    async def setup():
        await asyncio.sleep(0.1)
        return "answered"

    peer_writer.write(b"\x01\x02" * 200)
    await peer_writer.drain()
    result = await asyncio.wait_for(drain_during_sip_setup(reader, writer, setup()), 2)
    assert result == "answered"
    frame = await asyncio.wait_for(peer_reader.readexactly(320), 2)
    assert frame == bytes(320)
    writer.close()
    peer_writer.close()


@pytest.mark.asyncio
async def test_drain_propagates_setup_error():
    reader, writer, peer_reader, peer_writer = await _stream_pair()

    async def setup():
        await asyncio.sleep(0.03)
        raise ValueError("busy")

    with pytest.raises(ValueError, match="busy"):
        await asyncio.wait_for(drain_during_sip_setup(reader, writer, setup()), 2)
    writer.close()
    peer_writer.close()


@pytest.mark.asyncio
async def test_drain_fails_when_slmodemd_closes():
    reader, writer, peer_reader, peer_writer = await _stream_pair()
    state = {"cancelled": False}

    async def setup():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise
        return "never"

    peer_writer.close()
    with pytest.raises(ConnectionError):
        await asyncio.wait_for(drain_during_sip_setup(reader, writer, setup()), 2)
    assert state["cancelled"] is True
    writer.close()


# relay_media


@pytest.mark.asyncio
async def test_relay_converts_both_directions():
    reader, writer, peer_reader, peer_writer = await _stream_pair()
    remote = ("127.0.0.1", 30000)
    sender = _FakeSender()
    receiver = _FakeReceiver(
        [(b"\xff\xff", ("127.0.0.1", 30000)), None, OSError("socket closed")]
    )
    peer_writer.write(b"\x00\x00\x00")
    await peer_writer.drain()
    peer_writer.write(b"\x00")
    peer_writer.write_eof()

    result = await asyncio.wait_for(
        relay_media(reader, writer, sender, receiver, remote), 2
    )
    assert result == (2, 2)
    assert b"".join(payload for payload, _ in sender.sent) == b"\xff\xff"
    assert all(dest == remote for _, dest in sender.sent)
    assert await asyncio.wait_for(peer_reader.readexactly(4), 2) == bytes(4)
    writer.close()
    peer_writer.close()


@pytest.mark.asyncio
async def test_relay_sends_real_rtp_packets():
    reader, writer, peer_reader, peer_writer = await _stream_pair()
    udp = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    udp.bind(("127.0.0.1", 0))
    listener = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    listener.bind(("127.0.0.1", 0))
    listener.setblocking(False)
    sender, _ = create_rtp_pair(udp, 0x534C4D44)
    receiver = _FakeReceiver([OSError("socket closed")])

    peer_writer.write(b"\x00\x00\x00\x00")
    peer_writer.write_eof()
    try:
        tx, rx = await asyncio.wait_for(
            relay_media(reader, writer, sender, receiver, listener.getsockname()), 2
        )
        loop = asyncio.get_running_loop()
        packet, _ = await asyncio.wait_for(loop.sock_recvfrom(listener, 1500), 2)
    finally:
        udp.close()
        listener.close()
        writer.close()
        peer_writer.close()
    assert (tx, rx) == (2, 0)
    assert packet[0] == 0x80
    assert packet[8:12] == (0x534C4D44).to_bytes(4, "big")
    assert parse_packet(packet) == b"\xff\xff"


@pytest.mark.asyncio
async def test_relay_send_failure_stops_receiver():
    reader, writer, peer_reader, peer_writer = await _stream_pair()
    sender = _FakeSender(error=OSError("network down"))
    receiver = _FakeReceiver([])
    peer_writer.write(b"\x00\x00")
    await peer_writer.drain()

    with pytest.raises(OSError, match="network down"):
        await asyncio.wait_for(
            relay_media(reader, writer, sender, receiver, ("127.0.0.1", 30000)), 2
        )
    assert receiver.cancelled is True
    writer.close()
    peer_writer.close()