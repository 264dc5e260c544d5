import pytest

from fbrconpy.protocol import (
    MAX_PACKET_SIZE,
    SEQUENCE_MASK,
    Packet,
    PacketReader,
    decode,
    encode,
)
from fbrconpy.errors import ProtocolCorruption


def test_encoding_layout():
    """Asserts the packet header and words are laid out as on the wire."""
    packet = Packet(1, ["login.hashed"])
    assert packet.data == (
        b"\x01\x00\x00\x00"  # sequence and flags
        b"\x1d\x00\x00\x00"  # total size (29)
        b"\x01\x00\x00\x00"  # word count
        b"\x0c\x00\x00\x00login.hashed\x00"
    )
    assert packet.size == len(packet.data) == 29

    empty = Packet(0)
    assert empty.data == b"\x00\x00\x00\x00\x0c\x00\x00\x00\x00\x00\x00\x00"


def test_flags():
    packet = Packet(5, ["OK"], is_response=True, from_server=True)
    assert packet.data[:4] == (0xC0000005).to_bytes(4, "little")
    assert packet.sequence == 5
    assert packet.is_response
    assert packet.from_server

    packet = Packet(SEQUENCE_MASK, ["player.onJoin"], from_server=True)
    assert packet.data[:4] == (0x7FFFFFFF).to_bytes(4, "little")
    assert packet.sequence == SEQUENCE_MASK
    assert not packet.is_response
    assert packet.from_server


@pytest.mark.parametrize(
    "sequence,is_response,words",
    [
        (0, False, []),
        (42, True, [b"OK", b"BF4", b"179665"]),
        (SEQUENCE_MASK, False, [b"admin.say", "Grüße".encode(), b"all", b""]),
    ],
)
def test_round_trip(sequence: int, is_response: bool, words: list[bytes]):
    data = encode(sequence, is_response, words)
    result = decode(data)
    assert result is not None

    packet, consumed = result
    assert consumed == len(data)
    assert packet.sequence == sequence
    assert packet.is_response == is_response
    assert not packet.from_server
    assert list(packet.words) == words


def test_strings_are_encoded_as_utf8():
    packet = Packet(0, ["Grüße"])
    assert packet.words == ("Grüße".encode(),)
    assert packet.decode_words() == ["Grüße"]


def test_need_more_data():
    data = Packet(7, ["serverInfo"]).data
    for i in range(len(data)):
        assert decode(data[:i]) is None


def test_invalid_packets():
    with pytest.raises(ValueError):
        Packet(-1)
    with pytest.raises(ValueError):
        Packet(SEQUENCE_MASK + 1)
    with pytest.raises(ValueError):
        Packet(0, [b"null\x00byte"])
    with pytest.raises(ValueError):
        Packet(0, [b"x" * MAX_PACKET_SIZE])


def _raw(size: int, count: int, body: bytes) -> bytes:
    return bytes(4) + size.to_bytes(4, "little") + count.to_bytes(4, "little") + body


@pytest.mark.parametrize(
    "data",
    [
        # Size field smaller than the header
        _raw(8, 0, b""),
        # Size field over the maximum packet size
        _raw(MAX_PACKET_SIZE + 1, 0, b""),
        # Word length overruns the packet
        _raw(12 + 4 + 3, 1, b"\x08\x00\x00\x00abc"),
        # Missing null terminator
        _raw(12 + 4 + 3, 1, b"\x02\x00\x00\x00abc"),
        # Word count smaller than the words present
        _raw(12 + 4 + 3, 0, b"\x02\x00\x00\x00ab\x00"),
        # Word count larger than the words present
        _raw(12 + 4 + 3, 2, b"\x02\x00\x00\x00ab\x00"),
        # Null byte inside of a word
        _raw(12 + 4 + 4, 1, b"\x03\x00\x00\x00a\x00b\x00"),
    ],
)
def test_corruption(data: bytes):
    with pytest.raises(ProtocolCorruption):
        decode(data)
    with pytest.raises(ProtocolCorruption):
        PacketReader().feed(data)


def test_reader_reassembly():
    """Asserts that the reader yields the same packets regardless of
    where the stream is split.
    """
    packets = [
        Packet(0, ["login.hashed"]),
        Packet(0, ["OK", "ABCDEF0123"], is_response=True),
        Packet(1, ["player.onJoin", "Alice", "EA_0123"], from_server=True),
        Packet(2, [], is_response=True),
    ]
    stream = b"".join(p.data for p in packets)

    reader = PacketReader()
    assert reader.feed(stream) == packets
    assert reader.buffered == 0

    for i in range(len(stream) + 1):
        reader = PacketReader()
        received = reader.feed(stream[:i])
        received.extend(reader.feed(stream[i:]))
        assert received == packets
        assert reader.buffered == 0


def test_reader_keeps_partial_packet():
    first = Packet(3, ["version"])
    second = Packet(4, ["serverInfo"])

    reader = PacketReader()
    assert reader.feed(first.data + second.data[:5]) == [first]
    assert reader.buffered == 5

    reader.reset()
    assert reader.buffered == 0
    assert reader.feed(second.data) == [second]
