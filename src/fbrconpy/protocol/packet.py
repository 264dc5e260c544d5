"""
Defines the packet format shared by the client and server, along with
a buffer for reassembling packets out of a TCP byte stream.
"""
import functools
from typing import Iterable, Type

from ..errors import ProtocolCorruption

__all__ = (
    "HEADER_SIZE",
    "MAX_PACKET_SIZE",
    "SEQUENCE_MASK",
    "Packet",
    "PacketReader",
    "decode",
    "encode",
)

HEADER_SIZE = 12
"""The size of the sequence, length and word count fields."""
MAX_PACKET_SIZE = 16384
"""The largest packet accepted by Frostbite servers, header included."""

SEQUENCE_MASK = 0x3FFFFFFF
"""The bits of the first header field that hold the sequence number."""
IS_RESPONSE_FLAG = 0x80000000
FROM_SERVER_FLAG = 0x40000000

Word = bytes | str


def _convert_exception(
    from_exc: Type[Exception],
    to_exc: Type[Exception],
    message: str | None = None,
):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except from_exc as e:
                if message is not None:
                    raise to_exc(message) from e
                raise to_exc from e

        return wrapper

    return decorator


def _to_bytes(word: Word) -> bytes:
    if isinstance(word, str):
        word = word.encode()
    if b"\x00" in word:
        raise ValueError(f"words cannot contain a null byte: {word!r}")
    return bytes(word)


def encode(sequence: int, is_response: bool, words: Iterable[Word]) -> bytes:
    """Encodes a packet sent by the client.

    This is a shorthand for ``Packet(sequence, words, is_response=...).data``.

    """
    return Packet(sequence, words, is_response=is_response).data


@_convert_exception(IndexError, ProtocolCorruption, "insufficient data provided")
def decode(buffer: bytes | bytearray) -> "tuple[Packet, int] | None":
    """Decodes the first packet at the start of the given buffer.

    :returns:
        A tuple containing the packet and the number of bytes it occupied,
        or ``None`` if the buffer does not contain a complete packet yet.
    :raises ProtocolCorruption:
        The length field of the packet cannot be trusted.

    """
    if len(buffer) < 8:
        return None

    size = int.from_bytes(buffer[4:8], "little")
    if size < HEADER_SIZE:
        raise ProtocolCorruption(f"packet size {size} is smaller than its header")
    elif size > MAX_PACKET_SIZE:
        raise ProtocolCorruption(
            f"packet size {size} exceeds the maximum of {MAX_PACKET_SIZE} bytes"
        )
    elif len(buffer) < size:
        return None

    return Packet.from_bytes(bytes(buffer[:size])), size


class Packet:
    """A single message sent between a Frostbite RCON server and client.

    Every packet is either a request or the response to a request.
    Requests can be initiated by both sides; requests initiated by the
    server are what the client sees as events.

    :param sequence:
        The sequence number identifying the request and its response.
        Only the lower 30 bits are usable.
    :param words:
        The words contained by the packet. Strings are encoded as UTF-8.
    :param is_response: Whether the packet is a response to a request.
    :param from_server: Whether the request was initiated by the server.
    :raises ValueError:
        The sequence number is out of range, a word contains a null byte,
        or the encoded packet exceeds :py:data:`MAX_PACKET_SIZE`.

    """

    __slots__ = ("data", "words")

    data: bytes
    """The encoded packet, including its header."""
    words: tuple[bytes, ...]
    """The words contained in the packet."""

    def __init__(
        self,
        sequence: int,
        words: Iterable[Word] = (),
        *,
        is_response: bool = False,
        from_server: bool = False,
    ):
        if sequence not in range(SEQUENCE_MASK + 1):
            raise ValueError(
                f"sequence must be within 0-{SEQUENCE_MASK}, not {sequence!r}"
            )

        self.words = tuple(_to_bytes(w) for w in words)

        header = sequence
        if is_response:
            header |= IS_RESPONSE_FLAG
        if from_server:
            header |= FROM_SERVER_FLAG

        body = bytearray()
        for word in self.words:
            body.extend(len(word).to_bytes(4, "little"))
            body.extend(word)
            body.append(0)

        size = HEADER_SIZE + len(body)
        over_size = size - MAX_PACKET_SIZE
        if over_size > 0:
            raise ValueError(f"max packet size exceeded by {over_size} bytes")

        self.data = b"".join(
            (
                header.to_bytes(4, "little"),
                size.to_bytes(4, "little"),
                len(self.words).to_bytes(4, "little"),
                bytes(body),
            )
        )

    def __repr__(self):
        return "{}({!r}, {!r}, is_response={!r}, from_server={!r})".format(
            type(self).__name__,
            self.sequence,
            self.words,
            self.is_response,
            self.from_server,
        )

    def __eq__(self, other):
        if not isinstance(other, Packet):
            return NotImplemented
        return self.data == other.data

    def __hash__(self):
        return hash(self.data)

    @property
    def _header(self) -> int:
        return int.from_bytes(self.data[0:4], "little")

    @property
    def sequence(self) -> int:
        """The sequence number of the packet, without its flags."""
        return self._header & SEQUENCE_MASK

    @property
    def is_response(self) -> bool:
        """Whether this packet is responding to a request."""
        return bool(self._header & IS_RESPONSE_FLAG)

    @property
    def from_server(self) -> bool:
        """Whether the request this packet belongs to was initiated by the server."""
        return bool(self._header & FROM_SERVER_FLAG)

    @property
    def size(self) -> int:
        """The total size of the packet in bytes, as written in its header."""
        return int.from_bytes(self.data[4:8], "little")

    def decode_words(self) -> list[str]:
        """Returns the packet's words decoded as UTF-8 strings.

        Bytes that cannot be decoded are replaced rather than raising.

        """
        return [w.decode(errors="replace") for w in self.words]

    @classmethod
    @_convert_exception(IndexError, ProtocolCorruption, "insufficient data provided")
    def from_bytes(cls, data: bytes) -> "Packet":
        """Constructs a packet from exactly one encoded packet.

        :param data: The data to parse.
        :returns: The corresponding packet.
        :raises ProtocolCorruption:
            The given data is malformed and does not follow
            the packet framing.

        """
        if len(data) < HEADER_SIZE:
            raise ProtocolCorruption("insufficient data provided")

        header = int.from_bytes(data[0:4], "little")
        size = int.from_bytes(data[4:8], "little")
        count = int.from_bytes(data[8:12], "little")

        if size != len(data):
            raise ProtocolCorruption(
                f"packet size field ({size}) does not match "
                f"the data given ({len(data)})"
            )

        words = []
        offset = HEADER_SIZE
        for i in range(count):
            length = int.from_bytes(data[offset : offset + 4], "little")
            start = offset + 4
            end = start + length
            if end >= size:
                raise ProtocolCorruption(f"word {i} overruns the end of the packet")
            elif data[end] != 0:
                raise ProtocolCorruption(f"word {i} is not null-terminated")

            word = data[start:end]
            if b"\x00" in word:
                raise ProtocolCorruption(f"word {i} contains a null byte")

            words.append(word)
            offset = end + 1

        if offset != size:
            raise ProtocolCorruption(
                f"unexpected {size - offset} byte(s) after the last word"
            )

        return cls(
            header & SEQUENCE_MASK,
            words,
            is_response=bool(header & IS_RESPONSE_FLAG),
            from_server=bool(header & FROM_SERVER_FLAG),
        )


class PacketReader:
    """Reassembles packets from a stream of bytes.

    Data can be fed in chunks of any size. Complete packets are returned
    as soon as they are available while partial packets are kept until
    the rest of their data arrives.

    """

    _buffer: bytearray

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.buffered} byte(s) buffered>"

    @property
    def buffered(self) -> int:
        """The number of bytes waiting for the rest of their packet."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Packet]:
        """Adds data to the buffer and returns every complete packet.

        :raises ProtocolCorruption:
            The stream contained a malformed packet. The buffer is left
            in an undefined state and the connection should be closed.

        """
        self._buffer.extend(data)

        packets = []
        while (result := decode(self._buffer)) is not None:
            packet, consumed = result
            packets.append(packet)
            del self._buffer[:consumed]

        return packets

    def reset(self) -> None:
        """Discards any buffered data."""
        self._buffer.clear()
