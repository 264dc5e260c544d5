from .catalog import CommandCatalog as CommandCatalog
from .client import RCONClient as RCONClient
from .dispatch import EventDispatcher as EventDispatcher
from .errors import (
    CommandTimeout as CommandTimeout,
    ConnectionClosed as ConnectionClosed,
    LoginFailure as LoginFailure,
    LoginRefused as LoginRefused,
    LoginTimeout as LoginTimeout,
    MalformedResponse as MalformedResponse,
    ProtocolCorruption as ProtocolCorruption,
    RCONCommandError as RCONCommandError,
    RCONError as RCONError,
    SequenceMismatch as SequenceMismatch,
)
from .io import (
    AsyncClientConnector as AsyncClientConnector,
    AsyncClientProtocol as AsyncClientProtocol,
    AsyncCommander as AsyncCommander,
    ConnectionState as ConnectionState,
    ConnectorConfig as ConnectorConfig,
)
from .parser import tabulate as tabulate
from .protocol import (
    ClientCommandEvent as ClientCommandEvent,
    ClientEvent as ClientEvent,
    ClientMessageEvent as ClientMessageEvent,
    Packet as Packet,
    PacketReader as PacketReader,
    RCONClientProtocol as RCONClientProtocol,
    RCONGenericProtocol as RCONGenericProtocol,
    RCONServerProtocol as RCONServerProtocol,
    ServerAckEvent as ServerAckEvent,
    ServerCommandEvent as ServerCommandEvent,
    ServerEvent as ServerEvent,
    hash_password as hash_password,
)


def _get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("fbrconpy")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()
