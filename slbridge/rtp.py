"""Minimal RTP send/receive for PCMU (G.711 µ-law) audio.

Only the 12-byte fixed header (V=2, PT 0, no CSRC, no extension) is sent.
Received packets may carry CSRC entries and a header extension; both are
skipped to reach the payload.
"""

from __future__ import annotations

import asyncio
import socket
import struct
from typing import Any

RTP_HEADER_SIZE = 12
PT_PCMU = 0
TIMESTAMP_INCREMENT = 160
MAX_RTP_PACKET_SIZE = 1500
MAX_PAYLOAD_SIZE = MAX_RTP_PACKET_SIZE - RTP_HEADER_SIZE
_MIN_RTP_PACKET_SIZE = RTP_HEADER_SIZE + 1

_HEADER = struct.Struct("!BBHII")
_EXTENSION_LENGTH = struct.Struct("!H")


class RtpSender:
    """Builds and sends RTP packets, advancing sequence number and timestamp."""

    def __init__(self, sock: socket.socket, ssrc: int) -> None:
        self.sock = sock
        self.ssrc = ssrc & 0xFFFFFFFF
        self.seq = 0
        self.timestamp = 0

    def build_packet(self, payload: bytes) -> bytes:
        """Return one PCMU packet for ``payload`` and advance the stream state."""
        header = _HEADER.pack(0x80, PT_PCMU, self.seq, self.timestamp, self.ssrc)
        self.seq = (self.seq + 1) & 0xFFFF
        self.timestamp = (self.timestamp + TIMESTAMP_INCREMENT) & 0xFFFFFFFF
        return header + bytes(payload)

    async def send_packet(self, payload: bytes, remote: tuple[str, int]) -> int:
        """Send ``payload`` as an RTP packet to ``remote``; return bytes sent."""
        if not payload:
            raise ValueError("RTP payload must not be empty")
        if len(payload) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"RTP payload {len(payload)} bytes exceeds maximum {MAX_PAYLOAD_SIZE}"
            )
        packet = self.build_packet(payload)
        loop = asyncio.get_running_loop()
        return await loop.sock_sendto(self.sock, packet, remote)


class RtpReceiver:
    """Receives RTP packets on a socket shared with the sender."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock

    async def recv_packet(self) -> tuple[bytes, Any] | None:
        """Receive one datagram; return (payload, address), or None if invalid."""
        loop = asyncio.get_running_loop()
        data, addr = await loop.sock_recvfrom(self.sock, MAX_RTP_PACKET_SIZE)
        payload = parse_packet(data)
        if payload is None:
            return None
        return payload, addr


def create_rtp_pair(sock: socket.socket, ssrc: int) -> tuple[RtpSender, RtpReceiver]:
    """Create a sender and a receiver sharing the same UDP socket."""
    sock.setblocking(False)
    return RtpSender(sock, ssrc), RtpReceiver(sock)


def parse_packet(data: bytes) -> bytes | None:
    """Return the payload of a valid RTP packet, or None if it is not one."""
    if len(data) < _MIN_RTP_PACKET_SIZE:
        return None

    first = data[0]
    if (first >> 6) & 0x03 != 2:
        return None

    csrc_count = first & 0x0F
    offset = RTP_HEADER_SIZE + csrc_count * 4
    if len(data) < offset:
        return None

    if first & 0x10:
        if len(data) < offset + 4:
            return None
        (ext_len,) = _EXTENSION_LENGTH.unpack_from(data, offset + 2)
        offset += 4 + ext_len * 4

    if offset >= len(data):
        return None
    return bytes(data[offset:])