import asyncio
from typing import Sequence


class RCONError(Exception):
    """The base class for RCON errors."""


class ProtocolCorruption(RCONError, ValueError):
    """Raised when the byte stream from the remote computer
    does not follow the packet framing.

    The stream cannot be resynchronized after this, so the
    connection must be closed.

    """


class SequenceMismatch(RCONError, ValueError):
    """Raised when a packet cannot be correlated with any pending request.

    Unlike :py:exc:`ProtocolCorruption`, the connection can continue
    after the offending packet is dropped.

    """

    sequence: int
    """The sequence number of the offending packet."""

    def __init__(self, sequence: int, message: str):
        self.sequence = sequence
        super().__init__(message)


class ConnectionClosed(RCONError):
    """Raised for every pending command when the connection closes
    before the server could respond.
    """


class LoginFailure(RCONError):
    """Raised when the client could not log into the RCON server."""


class LoginRefused(LoginFailure):
    """Raised when the password given to the RCON server was incorrect."""


class LoginTimeout(LoginFailure, asyncio.TimeoutError):
    """Raised when the RCON server could not respond to our login attempts."""


class RCONCommandError(RCONError):
    """Raised when an issue occurs during execution of an RCON command.

    When the server itself rejected the command, :py:attr:`status`
    holds the status word it responded with (e.g. ``"UnknownCommand"``).

    """

    status: str | None
    """The status word returned by the server, if any."""
    words: tuple[str, ...]
    """The words that followed the status word, if any."""

    def __init__(
        self,
        message: str,
        *,
        status: str | None = None,
        words: Sequence[str] = (),
    ):
        self.status = status
        self.words = tuple(words)
        super().__init__(message)


class CommandTimeout(RCONCommandError, asyncio.TimeoutError):
    """Raised when the server did not respond to a command in time."""


class MalformedResponse(RCONCommandError, ValueError):
    """Raised when a response does not have the shape a command expects."""
