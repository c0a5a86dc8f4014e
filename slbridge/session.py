"""Call session lifecycle as a small state machine."""

from __future__ import annotations

from enum import Enum


class SessionState(Enum):
    INIT = "Init"
    ORIGINATING = "Originating"
    CONNECTING_MEDIA = "ConnectingMedia"
    MEDIA_ACTIVE = "MediaActive"
    TERMINATING = "Terminating"
    TERMINATED = "Terminated"


class SessionError(Exception):
    """Raised on an invalid state transition."""


_VALID_TRANSITIONS = frozenset(
    {
        (SessionState.INIT, SessionState.ORIGINATING),
        (SessionState.ORIGINATING, SessionState.CONNECTING_MEDIA),
        (SessionState.CONNECTING_MEDIA, SessionState.MEDIA_ACTIVE),
        (SessionState.CONNECTING_MEDIA, SessionState.TERMINATING),
        (SessionState.ORIGINATING, SessionState.TERMINATING),
        (SessionState.MEDIA_ACTIVE, SessionState.TERMINATING),
        (SessionState.TERMINATING, SessionState.TERMINATED),
    }
)


class Session:
    """One outbound call, tracking its dial string and current state."""

    __slots__ = ("_dial", "_state")

    def __init__(self, dial: str) -> None:
        self._dial = dial
        self._state = SessionState.INIT

    @property
    def dial(self) -> str:
        return self._dial

    @property
    def state(self) -> SessionState:
        return self._state

    def transition(self, next_state: SessionState) -> None:
        """Move to ``next_state``; raise SessionError if that is not allowed."""
        if (self._state, next_state) not in _VALID_TRANSITIONS:
            raise SessionError(
                "invalid session state transition: "
                f"{self._state.value} -> {next_state.value}"
            )
        self._state = next_state

    def __repr__(self) -> str:
        return f"Session(dial={self._dial!r}, state={self._state.value})"