"""Minimal SDP offer building and answer parsing for PCMU-only calls."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

_SDP_VERSION = 0
_PTIME_MS = 20
_PORT_RE = re.compile(r"\+?[0-9]+")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class SdpError(ValueError):
    """Raised when an SDP answer cannot be used."""


@dataclass(frozen=True)
class SdpAnswer:
    """Remote RTP endpoint taken from an SDP answer."""

    addr: IPAddress
    port: int


def build_offer(local_ip: str | IPAddress, rtp_port: int, session_id: int) -> str:
    """Build an SDP offer advertising a single PCMU audio stream."""
    if rtp_port <= 0:
        raise ValueError(f"RTP port must be positive, got {rtp_port}")
    ip = ipaddress.ip_address(local_ip)
    ip_ver = "IP4" if ip.version == 4 else "IP6"
    lines = [
        f"v={_SDP_VERSION}",
        f"o=slmodem-sip-bridge {session_id} {session_id} IN {ip_ver} {ip}",
        "s=slmodem-sip-bridge",
        f"c=IN {ip_ver} {ip}",
        "t=0 0",
        f"m=audio {rtp_port} RTP/AVP 0",
        "a=rtpmap:0 PCMU/8000",
        f"a=ptime:{_PTIME_MS}",
        "a=sendrecv",
    ]
    return "".join(f"{line}\r\n" for line in lines)


def _parse_port(text: str) -> int:
    if _PORT_RE.fullmatch(text):
        port = int(text)
        if port <= 0xFFFF:
            return port
    raise SdpError(f"invalid port in SDP m=audio line: {text!r}")


def parse_answer(sdp: str) -> SdpAnswer:
    """Extract the remote RTP address and port; require PCMU (PT 0)."""
    connection_addr: IPAddress | None = None
    media_port: int | None = None
    has_audio_line = False

    for raw_line in sdp.splitlines():
        line = raw_line.strip()

        if line.startswith("c="):
            parts = line[2:].split()
            if len(parts) >= 3:
                try:
                    connection_addr = ipaddress.ip_address(parts[2])
                except ValueError:
                    pass

        if line.startswith("m=audio "):
            has_audio_line = True
            parts = line[8:].split()
            if not parts:
                raise SdpError("SDP m=audio line has no port")
            media_port = _parse_port(parts[0])
            if len(parts) < 3:
                raise SdpError("SDP m=audio line has no payload types")
            payload_types = parts[2:]
            if "0" not in payload_types:
                raise SdpError(
                    f"SDP answer does not include PCMU (PT 0), offered: {payload_types}"
                )

    if not has_audio_line:
        raise SdpError("SDP answer has no m=audio line")
    if connection_addr is None:
        raise SdpError("SDP answer has no c= connection line")
    if media_port is None:
        raise SdpError("SDP answer has no media port")

    return SdpAnswer(addr=connection_addr, port=media_port)