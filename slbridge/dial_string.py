"""Validation of dial strings received from the modem."""

from __future__ import annotations

from dataclasses import dataclass

_TONE_PULSE_PREFIX = "TtPp"
_ALLOWED_CHARS = frozenset("0123456789*#+,wW")


class DialStringError(ValueError):
    """Raised when a dial string cannot be used."""


@dataclass(frozen=True)
class DialString:
    """A dial string with tone/pulse prefixes removed and characters checked."""

    value: str

    @classmethod
    def parse(cls, text: str) -> DialString:
        """Strip leading T/P markers and validate the remaining characters."""
        stripped = text.lstrip(_TONE_PULSE_PREFIX)
        if not stripped:
            raise DialStringError(
                f"dial string is empty after stripping tone/pulse prefix from: {text}"
            )
        if not set(stripped) <= _ALLOWED_CHARS:
            raise DialStringError(
                f"dial string contains unsupported characters: {stripped}"
            )
        return cls(stripped)

    def __str__(self) -> str:
        return self.value