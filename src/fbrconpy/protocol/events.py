"""Provides classes to be used as facades for :py:class:`Packet` objects."""
from dataclasses import dataclass


class Event:
    """The base class for events produced by :py:class:`RCONGenericProtocol`
    subclasses.
    """


class ClientEvent(Event):
    """An event produced by the :py:class:`RCONClientProtocol` subclass."""


@dataclass
class ClientCommandEvent(ClientEvent):
    """Represents the response to a given command."""

    sequence: int
    """The sequence number of the command this is responding to."""
    words: list[str]
    """The words of the response, starting with the status word."""


@dataclass
class ClientMessageEvent(ClientEvent):
    """Represents an event sent by the server, e.g. ``player.onJoin``.

    The protocol automatically generates an acknowledgement packet
    so nothing else needs to be done here.

    """

    sequence: int
    """The sequence number the server assigned to the event."""
    words: list[str]
    """The words of the event, starting with the event's name."""


class ServerEvent(Event):
    """An event produced by the :py:class:`RCONServerProtocol` subclass."""


@dataclass
class ServerCommandEvent(ServerEvent):
    """Represents a command sent by the client."""

    sequence: int
    """The sequence number of the command received.

    Responses to this command must use the same sequence number.

    """
    words: list[str]
    """The command and its arguments."""


@dataclass
class ServerAckEvent(ServerEvent):
    """Represents the client's response to an event sent by the server."""

    sequence: int
    """The sequence number of the event that the client is acknowledging."""
    words: list[str]
    """The words of the acknowledgement, normally just ``["OK"]``."""
