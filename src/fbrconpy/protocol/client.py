import hashlib
from typing import Iterable

from ..errors import SequenceMismatch
from .base import RCONGenericProtocol
from .events import ClientCommandEvent, ClientEvent, ClientMessageEvent
from .packet import SEQUENCE_MASK, Packet, PacketReader, Word

__all__ = ("RCONClientProtocol", "hash_password")


def hash_password(salt: str, password: str) -> str:
    """Hashes a password with the salt returned by the server
    for a ``login.hashed`` request.

    :param salt: The salt given by the server, as a hexadecimal string.
    :param password: The plaintext password.
    :returns: The uppercase hexadecimal MD5 digest expected by the server.
    :raises ValueError: The salt is not valid hexadecimal.

    """
    md = hashlib.md5()
    md.update(bytes.fromhex(salt))
    md.update(password.encode("utf-8"))
    return md.hexdigest().upper()


class RCONClientProtocol(RCONGenericProtocol):
    """Implements the client-side portion of the protocol.

    Commands are correlated with their responses strictly by sequence
    number, so responses may arrive in any order and interleaved with
    server events.

    """

    _events: list[ClientEvent]
    """A list of events waiting to be collected."""
    _pending: set[int]
    """The sequence numbers of commands still waiting for a response.

    A sequence number is only handed out again once it has been
    removed from here, either by its response or by
    :py:meth:`invalidate_command()`.

    """
    _next_sequence: int
    _reader: PacketReader
    _to_send: list[Packet]

    def __init__(self) -> None:
        self._reader = PacketReader()
        self.reset()

    def __repr__(self) -> str:
        return "<{} {} pending, {} event(s), {} packet(s) to send>".format(
            type(self).__name__,
            len(self._pending),
            len(self._events),
            len(self._to_send),
        )

    # Required methods

    def receive_data(self, data: bytes) -> list[Packet]:
        """Feeds data from the server into the reassembly buffer.

        The returned packets should each be passed to :py:meth:`handle_packet()`.

        :raises ProtocolCorruption: The stream contained a malformed packet.

        """
        return self._reader.feed(data)

    def handle_packet(self, packet: Packet) -> None:
        """Handles a packet received from the server.

        :raises SequenceMismatch:
            The packet does not respond to any pending command.
            The packet should be dropped without closing the connection.

        """
        if packet.is_response and not packet.from_server:
            self._handle_response(packet)
        elif not packet.is_response and packet.from_server:
            self._events.append(
                ClientMessageEvent(packet.sequence, packet.decode_words())
            )
            self._to_send.append(
                Packet(packet.sequence, ("OK",), is_response=True, from_server=True)
            )
        else:
            raise SequenceMismatch(
                packet.sequence,
                f"unexpected {'response' if packet.is_response else 'request'} "
                f"originating from the client (sequence {packet.sequence})",
            )

    def events_received(self) -> list[ClientEvent]:
        current_events = self._events
        self._events = []
        return current_events

    def packets_to_send(self) -> list[Packet]:
        current_packets = self._to_send
        self._to_send = []
        return current_packets

    # Utility methods

    @property
    def pending(self) -> frozenset[int]:
        """The sequence numbers of commands waiting for a response."""
        return frozenset(self._pending)

    def invalidate_command(self, sequence: int) -> None:
        """Invalidates any response received for a given command.

        This should be called whenever a command times out.

        If the command sequence was not pending, this is a no-op.

        """
        self._pending.discard(sequence)

    def reset(self) -> None:
        """Resets the protocol to the beginning state.

        This method should be invoked whenever the connection is closed.

        """
        self._events = []
        self._pending = set()
        self._next_sequence = 0
        self._to_send = []
        self._reader.reset()

    def send_command(self, words: Iterable[Word]) -> Packet:
        """Returns a request packet for the given command words.

        Each invocation of this method allocates a new sequence number.

        :raises RuntimeError: Every sequence number is already pending.

        """
        sequence = self._get_next_sequence()
        packet = Packet(sequence, words)
        self._pending.add(sequence)
        return packet

    def _get_next_sequence(self) -> int:
        if len(self._pending) > SEQUENCE_MASK:
            raise RuntimeError("no sequence numbers are available")

        sequence = self._next_sequence
        while sequence in self._pending:
            sequence = (sequence + 1) & SEQUENCE_MASK

        self._next_sequence = (sequence + 1) & SEQUENCE_MASK
        return sequence

    def _handle_response(self, packet: Packet) -> None:
        if packet.sequence not in self._pending:
            raise SequenceMismatch(
                packet.sequence,
                f"unexpected command response (sequence {packet.sequence})",
            )

        self._pending.remove(packet.sequence)
        self._events.append(
            ClientCommandEvent(packet.sequence, packet.decode_words())
        )
