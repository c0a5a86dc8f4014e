"""Command-line and environment configuration for the bridge."""

from __future__ import annotations

import argparse
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Config:
    """Runtime settings for one bridge process."""

    dial_string: str
    socket_fd: int
    sip_local_addr: str = "0.0.0.0"
    sip_local_rtp_port: int = 20000
    invite_timeout: float = 60.0
    telnyx_sip_user: str = ""
    telnyx_sip_pass: str = field(default_factory=str)
    telnyx_sip_domain: str = "sip.telnyx.com"
    caller_id: str = ""
    caller_name: str = "OOB-Console-Hub"


def _port(text: str) -> int:
    value = int(text)
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{value} is not a valid port")
    return value


def _seconds(text: str) -> int:
    value = int(text)
    if value < 0:
        raise ValueError(f"{value} is not a valid number of seconds")
    return value


# (option dest, environment variable, converter, default, help text);
# a default of None means the option is required.
_ENV_OPTIONS: tuple[tuple[str, str, Callable[[str], Any], Any, str], ...] = (
    (
        "sip_local_addr",
        "SIP_LOCAL_ADDR",
        str,
        "0.0.0.0",
        "Local address for SIP and RTP sockets",
    ),
    (
        "sip_local_rtp_port",
        "SIP_LOCAL_RTP_PORT",
        _port,
        20000,
        "Local port for RTP media",
    ),
    (
        "invite_timeout_secs",
        "SIP_INVITE_TIMEOUT_SECS",
        _seconds,
        60,
        "Timeout waiting for INVITE response (ring + answer)",
    ),
    (
        "telnyx_sip_user",
        "TELNYX_SIP_USER",
        str,
        None,
        "Telnyx SIP username for REGISTER/INVITE authentication",
    ),
    (
        "telnyx_sip_pass",
        "TELNYX_SIP_PASS",
        str,
        None,
        "Telnyx SIP password",
    ),
    (
        "telnyx_sip_domain",
        "TELNYX_SIP_DOMAIN",
        str,
        "sip.telnyx.com",
        "Telnyx SIP registrar domain",
    ),
    (
        "telnyx_outbound_cid",
        "TELNYX_OUTBOUND_CID",
        str,
        "",
        "Outbound caller ID number (your Telnyx DID)",
    ),
    (
        "telnyx_outbound_name",
        "TELNYX_OUTBOUND_NAME",
        str,
        "OOB-Console-Hub",
        "Outbound caller display name",
    ),
)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser; options left unset stay None."""
    parser = argparse.ArgumentParser(
        prog="slmodem-sip-bridge",
        description="Bridge slmodemd audio socket to a SIP/RTP endpoint",
    )
    parser.add_argument("dial_string", help="Dial string from slmodemd")
    parser.add_argument(
        "socket_fd", type=int, help="Inherited socket file descriptor from slmodemd"
    )
    for dest, env_name, convert, default, help_text in _ENV_OPTIONS:
        suffix = f" [env: {env_name}]"
        if default is not None:
            suffix += f" [default: {default}]"
        parser.add_argument(
            "--" + dest.replace("_", "-"),
            dest=dest,
            type=convert,
            default=None,
            help=help_text + suffix,
        )
    return parser


def parse_config(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> Config:
    """Parse ``argv`` with fallbacks from ``environ`` and the built-in defaults.

    Exits through the parser with a usage message on invalid or missing values.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    env = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    for dest, env_name, convert, default, _help_text in _ENV_OPTIONS:
        value = getattr(args, dest)
        if value is None and env_name in env:
            try:
                value = convert(env[env_name])
            except ValueError as exc:
                parser.error(f"invalid value for {env_name}: {exc}")
        if value is None:
            if default is None:
                option = "--" + dest.replace("_", "-")
                parser.error(f"the following required argument was not provided: {option}")
            value = default
        values[dest] = value

    return Config(
        dial_string=args.dial_string,
        socket_fd=args.socket_fd,
        sip_local_addr=values["sip_local_addr"],
        sip_local_rtp_port=values["sip_local_rtp_port"],
        invite_timeout=float(values["invite_timeout_secs"]),
        telnyx_sip_user=values["telnyx_sip_user"],
        telnyx_sip_pass=values["telnyx_sip_pass"],
        telnyx_sip_domain=values["telnyx_sip_domain"],
        caller_id=values["telnyx_outbound_cid"],
        caller_name=values["telnyx_outbound_name"],
    )