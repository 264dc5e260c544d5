"""Contains a Sans-IO implementation of the Frostbite RCON protocol.

Suggested reading about sansio:
    https://fractalideas.com/blog/sans-io-when-rubber-meets-road/
    https://sans-io.readthedocs.io/index.html

"""

from .base import RCONGenericProtocol as RCONGenericProtocol
from .client import (
    RCONClientProtocol as RCONClientProtocol,
    hash_password as hash_password,
)
from .events import (
    ClientCommandEvent as ClientCommandEvent,
    ClientEvent as ClientEvent,
    ClientMessageEvent as ClientMessageEvent,
    Event as Event,
    ServerAckEvent as ServerAckEvent,
    ServerCommandEvent as ServerCommandEvent,
    ServerEvent as ServerEvent,
)
from .packet import (
    MAX_PACKET_SIZE as MAX_PACKET_SIZE,
    SEQUENCE_MASK as SEQUENCE_MASK,
    Packet as Packet,
    PacketReader as PacketReader,
    decode as decode,
    encode as encode,
)
from .server import RCONServerProtocol as RCONServerProtocol
