from typing import Iterable

from ..errors import SequenceMismatch
from .base import RCONGenericProtocol
from .events import ServerAckEvent, ServerCommandEvent, ServerEvent
from .packet import SEQUENCE_MASK, Packet, PacketReader, Word

__all__ = ("RCONServerProtocol",)


class RCONServerProtocol(RCONGenericProtocol):
    """Implements the server-side portion of the protocol.

    This does not implement any commands itself, including
    ``login.hashed``. Each command is given as a
    :py:class:`ServerCommandEvent` and should be answered
    with :py:meth:`respond()`.

    """

    _events: list[ServerEvent]
    _pending: set[int]
    """The sequence numbers of events not yet acknowledged by the client."""
    _next_sequence: int
    _reader: PacketReader
    _to_send: list[Packet]

    def __init__(self) -> None:
        self._reader = PacketReader()
        self.reset()

    def __repr__(self) -> str:
        return "<{} {} unacknowledged, {} event(s), {} packet(s) to send>".format(
            type(self).__name__,
            len(self._pending),
            len(self._events),
            len(self._to_send),
        )

    # Required methods

    def receive_data(self, data: bytes) -> list[Packet]:
        return self._reader.feed(data)

    def handle_packet(self, packet: Packet) -> None:
        """Handles a packet received from the client.

        :raises SequenceMismatch:
            The packet acknowledges an event that was never sent,
            or has an unexpected combination of flags.

        """
        if not packet.is_response and not packet.from_server:
            self._events.append(
                ServerCommandEvent(packet.sequence, packet.decode_words())
            )
        elif packet.is_response and packet.from_server:
            if packet.sequence not in self._pending:
                raise SequenceMismatch(
                    packet.sequence,
                    f"unexpected event acknowledgement (sequence {packet.sequence})",
                )
            self._pending.remove(packet.sequence)
            self._events.append(ServerAckEvent(packet.sequence, packet.decode_words()))
        else:
            raise SequenceMismatch(
                packet.sequence,
                f"unexpected {'response' if packet.is_response else 'request'} "
                f"originating from the server (sequence {packet.sequence})",
            )

    def events_received(self) -> list[ServerEvent]:
        current_events = self._events
        self._events = []
        return current_events

    def packets_to_send(self) -> list[Packet]:
        current_packets = self._to_send
        self._to_send = []
        return current_packets

    def reset(self) -> None:
        self._events = []
        self._pending = set()
        self._next_sequence = 0
        self._to_send = []
        self._reader.reset()

    # Utility methods

    def respond(self, sequence: int, words: Iterable[Word]) -> Packet:
        """Returns the response packet for a command sent by the client.

        :param sequence: The sequence number of the command being responded to.
        :param words: The response, normally starting with a status word.

        """
        return Packet(sequence, words, is_response=True)

    def send_event(self, words: Iterable[Word]) -> Packet:
        """Returns a packet for an event that the client must acknowledge.

        :param words: The event name followed by its arguments.

        """
        sequence = self._next_sequence
        while sequence in self._pending:
            sequence = (sequence + 1) & SEQUENCE_MASK
        self._next_sequence = (sequence + 1) & SEQUENCE_MASK

        packet = Packet(sequence, words, from_server=True)
        self._pending.add(sequence)
        return packet
