from abc import ABC, abstractmethod
from typing import Any, Sequence

from .packet import Packet

__all__ = ("RCONGenericProtocol",)


class RCONGenericProtocol(ABC):
    """The base class for handling the RCON protocol between two computers."""

    @abstractmethod
    def receive_data(self, data: bytes) -> Sequence[Packet]:
        """Provides bytes read from the remote computer and returns
        every packet that could be completed with them.

        If the stream turns out to be malformed, this method should raise
        :py:exc:`~fbrconpy.ProtocolCorruption`.

        """

    @abstractmethod
    def handle_packet(self, packet: Packet) -> None:
        """Parses a packet from the remote computer into events
        and packets to send back.

        If the packet cannot be handled, this method should raise an error.

        """

    @abstractmethod
    def events_received(self) -> Sequence[Any]:
        """Retrieves all events that have been parsed since this was last called."""

    @abstractmethod
    def packets_to_send(self) -> Sequence[Packet]:
        """Returns a list of packets that should be sent to the remote computer."""

    @abstractmethod
    def reset(self) -> None:
        """Resets the protocol to the beginning state."""
