"""Adopting the socket that slmodemd hands to this process."""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

# slmodemd normally passes fd 3 or 4; anything this large is garbled input.
FD_LIMIT = 4096


def socket_from_fd(fd: int) -> socket.socket:
    """Wrap an inherited socket descriptor as a non-blocking socket object."""
    if fd < 0:
        raise ValueError(f"socket fd must be non-negative, got {fd}")
    if fd >= FD_LIMIT:
        raise ValueError(
            f"socket fd {fd} exceeds limit {FD_LIMIT} — likely garbled args from slmodemd"
        )

    logger.info("event=converting_raw_fd_to_unix_stream fd=%d", fd)
    sock = socket.socket(fileno=fd)
    try:
        sock.setblocking(False)
    except OSError:
        sock.detach()
        raise
    logger.info("event=unix_stream_ready fd=%d", fd)
    return sock