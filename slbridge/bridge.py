"""Audio plumbing between the slmodemd socket and an RTP peer.

slmodemd's DSP expects a continuous 20 ms clock of S16_LE audio frames. The
coroutines here keep that clock running while waiting for a dial command and
during call setup. Once the call is up, they relay media in both directions,
converting between linear PCM and µ-law.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from slbridge.codec import SlinAligner, decode_ulaw, encode_ulaw

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Dial strings are short; a longer line from slmodemd is garbled data.
LINE_BUF_LIMIT = 256

# Upper bound on consecutive calls in one bridge lifetime.
CALLS_LIMIT = 1000

# Seconds between liveness log lines while waiting for a DIAL: command.
DIAL_WAIT_HEARTBEAT_SECS = 60.0

# 160 samples * 2 bytes (S16_LE) at 8000 Hz: one 20 ms frame of silence.
SILENCE_FRAME_BYTES = 320
SILENCE_FRAME = bytes(SILENCE_FRAME_BYTES)

# Interval between silence frames, matching the codec frame duration.
SILENCE_INTERVAL_SECS = 0.020

# How often relay throughput is logged.
RELAY_STATS_INTERVAL_SECS = 2.0

# Safety limit on wake-ups while draining during SIP setup.
DRAIN_ITERATIONS_LIMIT = 500

# SSRC of the outgoing RTP stream ("SLMD" in ASCII).
RTP_SSRC = 0x534C4D44

_DIAL_PREFIX = "DIAL:"
_WAIT_READ_SIZE = 1024
_DRAIN_READ_SIZE = 2048
_RELAY_READ_SIZE = 2048


class _PacketSender(Protocol):
    async def send_packet(self, payload: bytes, remote: Any) -> int: ...


class _PacketReceiver(Protocol):
    async def recv_packet(self) -> tuple[bytes, Any] | None: ...


class DialLineBuffer:
    """Collects bytes from slmodemd into lines and picks out DIAL: commands."""

    def __init__(self) -> None:
        self._line = bytearray()

    def feed(self, data: bytes) -> str | None:
        """Consume ``data``; return the first non-empty dial string completed.

        Bytes that follow a returned dial line in the same chunk are dropped.
        """
        for byte in data:
            if byte != 0x0A:
                self._line.append(byte)
                if len(self._line) > LINE_BUF_LIMIT:
                    logger.warning(
                        "event=line_buffer_overflow len=%d limit=%d "
                        "reason=discarding garbled data from slmodemd",
                        len(self._line),
                        LINE_BUF_LIMIT,
                    )
                    self._line.clear()
                continue

            line = self._line.decode("utf-8", errors="replace")
            self._line.clear()
            if line.startswith(_DIAL_PREFIX):
                dial = line[len(_DIAL_PREFIX):].strip()
                if dial:
                    return dial
                logger.debug(
                    "event=empty_dial_string "
                    "reason=DIAL: prefix present but number is empty"
                )
            elif line:
                logger.debug("event=unknown_line_from_slmodemd line=%r", line)
        return None


@dataclass
class RelayStats:
    """Throughput counters for one relay direction."""

    direction: str
    total: int = 0
    interval_bytes: int = 0
    interval_frames: int = 0
    min_frame: int | None = None
    max_frame: int = 0
    last_report: float = field(default_factory=time.monotonic)

    def _add(self, size: int) -> None:
        self.total += size
        self.interval_bytes += size
        self.interval_frames += 1
        self.min_frame = size if self.min_frame is None else min(self.min_frame, size)
        self.max_frame = max(self.max_frame, size)

    def _maybe_report(self) -> None:
        elapsed = time.monotonic() - self.last_report
        if elapsed < RELAY_STATS_INTERVAL_SECS:
            return
        logger.info(
            "event=relay_throughput direction=%s interval_bytes=%d "
            "interval_frames=%d interval_ms=%d total_bytes=%d "
            "min_frame_bytes=%s max_frame_bytes=%d",
            self.direction,
            self.interval_bytes,
            self.interval_frames,
            int(elapsed * 1000),
            self.total,
            self.min_frame,
            self.max_frame,
        )
        self.interval_bytes = 0
        self.interval_frames = 0
        self.min_frame = None
        self.max_frame = 0
        self.last_report = time.monotonic()


async def _write(writer: asyncio.StreamWriter, data: bytes) -> None:
    writer.write(data)
    await writer.drain()


async def _cancel(*tasks: asyncio.Future[Any]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task


async def wait_for_dial_string(
    reader: asyncio.StreamReader, writer: asyncio.StreamWriter
) -> str | None:
    """Feed silence to slmodemd until it sends ``DIAL:<number>``.

    Returns the raw dial string, or None once slmodemd closes the socket or
    the socket fails.
    """
    loop = asyncio.get_running_loop()
    lines = DialLineBuffer()
    next_silence = loop.time()
    next_heartbeat = next_silence + DIAL_WAIT_HEARTBEAT_SECS
    read_task: asyncio.Future[bytes] | None = None

    try:
        while True:
            if read_task is None:
                read_task = asyncio.ensure_future(reader.read(_WAIT_READ_SIZE))
            timeout = max(0.0, min(next_silence, next_heartbeat) - loop.time())
            done, _ = await asyncio.wait({read_task}, timeout=timeout)

            if read_task in done:
                task, read_task = read_task, None
                try:
                    data = task.result()
                except OSError as exc:
                    logger.warning("event=slmodemd_read_error error=%s", exc)
                    return None
                if not data:
                    logger.info(
                        "event=slmodemd_socket_eof "
                        "reason=slmodemd closed the control socket"
                    )
                    return None
                dial = lines.feed(data)
                if dial is not None:
                    return dial
                continue

            now = loop.time()
            if now >= next_silence:
                next_silence += SILENCE_INTERVAL_SECS
                try:
                    await _write(writer, SILENCE_FRAME)
                except OSError as exc:
                    logger.warning(
                        "event=silence_write_failed error=%s reason=socket closing", exc
                    )
                    return None
            if now >= next_heartbeat:
                next_heartbeat += DIAL_WAIT_HEARTBEAT_SECS
                logger.info(
                    "event=dial_wait_heartbeat "
                    "reason=still waiting for DIAL command from slmodemd"
                )
    finally:
        if read_task is not None:
            await _cancel(read_task)


async def drain_during_sip_setup(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    setup: Awaitable[T],
) -> T:
    """Run ``setup`` while discarding slmodemd audio and feeding it silence.

    Returns what ``setup`` returns and raises what it raises. Raises
    ConnectionError if the slmodemd socket closes or fails first, and
    RuntimeError if setup outlasts the iteration limit.
    """
    loop = asyncio.get_running_loop()
    setup_task = asyncio.ensure_future(setup)
    read_task: asyncio.Future[bytes] | None = None
    next_silence = loop.time()
    drained_bytes = 0
    iterations = 0

    try:
        while True:
            if iterations >= DRAIN_ITERATIONS_LIMIT:
                raise RuntimeError(
                    f"drain loop exceeded {DRAIN_ITERATIONS_LIMIT} iterations "
                    "— SIP setup stuck"
                )
            iterations += 1

            if read_task is None:
                read_task = asyncio.ensure_future(reader.read(_DRAIN_READ_SIZE))
            timeout = max(0.0, next_silence - loop.time())
            done, _ = await asyncio.wait(
                {setup_task, read_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if setup_task in done:
                if drained_bytes:
                    logger.info(
                        "event=drain_during_setup_complete drained_bytes=%d "
                        "iterations=%d",
                        drained_bytes,
                        iterations,
                    )
                return setup_task.result()

            if read_task in done:
                task, read_task = read_task, None
                try:
                    data = task.result()
                except OSError as exc:
                    raise ConnectionError(
                        f"slmodemd read error during SIP setup: {exc}"
                    ) from exc
                if not data:
                    raise ConnectionError("slmodemd closed socket during SIP setup")
                drained_bytes += len(data)
                continue

            next_silence += SILENCE_INTERVAL_SECS
            try:
                await _write(writer, SILENCE_FRAME)
            except OSError as exc:
                raise ConnectionError(
                    f"failed to write silence during SIP setup: {exc}"
                ) from exc
    finally:
        pending = [t for t in (setup_task, read_task) if t is not None and not t.done()]
        await _cancel(*pending)


async def relay_media(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    sender: _PacketSender,
    receiver: _PacketReceiver,
    remote_rtp: Any,
) -> tuple[int, int]:
    """Relay audio both ways until slmodemd closes and RTP receive fails.

    slmodemd audio is encoded to µ-law and sent as RTP to ``remote_rtp``;
    received RTP payloads are decoded and written to slmodemd. Returns the
    µ-law byte counts ``(sent_to_rtp, received_from_rtp)``. A failure in either
    direction stops the other and is raised.
    """
    logger.info("event=relay_media_start remote_rtp=%s", remote_rtp)

    async def sl_to_rtp() -> int:
        stats = RelayStats("sl→rtp")
        aligner = SlinAligner()
        while True:
            data = await reader.read(_RELAY_READ_SIZE)
            if not data:
                logger.debug("event=sl_to_rtp_eof reason=slmodemd closed audio stream")
                return stats.total
            slin = aligner.feed(data)
            if not slin:
                continue
            ulaw = encode_ulaw(slin)
            stats._add(len(ulaw))
            await sender.send_packet(ulaw, remote_rtp)
            stats._maybe_report()

    async def rtp_to_sl() -> int:
        stats = RelayStats("rtp→sl")
        while True:
            try:
                packet = await receiver.recv_packet()
            except OSError as exc:
                logger.debug("event=rtp_recv_error error=%s", exc)
                return stats.total
            if packet is None:
                logger.debug("event=rtp_invalid_packet_skipped")
                continue
            payload, _addr = packet
            stats._add(len(payload))
            await _write(writer, decode_ulaw(payload))
            stats._maybe_report()

    tasks = [asyncio.ensure_future(sl_to_rtp()), asyncio.ensure_future(rtp_to_sl())]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in tasks:
            if task.done() and not task.cancelled():
                error = task.exception()
                if error is not None:
                    raise error
        bytes_to_rtp, bytes_to_sl = (task.result() for task in tasks)
    finally:
        await _cancel(*(task for task in tasks if not task.done()))

    logger.info(
        "event=relay_media_stop tx_bytes=%d rx_bytes=%d", bytes_to_rtp, bytes_to_sl
    )
    return bytes_to_rtp, bytes_to_sl