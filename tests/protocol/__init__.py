from typing import Any, Sequence, Type, TypeVar, overload

from fbrconpy.protocol import (
    ClientEvent,
    Packet,
    RCONClientProtocol,
    RCONGenericProtocol,
    RCONServerProtocol,
    ServerEvent,
)

T = TypeVar("T")


def feed(proto: RCONGenericProtocol, data: bytes) -> None:
    """Feeds raw data into a protocol and handles every completed packet."""
    for packet in proto.receive_data(data):
        proto.handle_packet(packet)


@overload
def communicate(
    proto_a: RCONClientProtocol,
    proto_b: RCONServerProtocol,
    *packets: Packet,
) -> Sequence[ServerEvent]: ...


@overload
def communicate(
    proto_a: RCONServerProtocol,
    proto_b: RCONClientProtocol,
    *packets: Packet,
) -> Sequence[ClientEvent]: ...


def communicate(
    proto_a: RCONGenericProtocol,
    proto_b: RCONGenericProtocol,
    *packets: Packet,
) -> Sequence[Any]:
    """Sends the given packets alongside the packets returned from
    :py:meth:`RCONGenericProtocol.packets_to_send()` from one protocol
    to the other and returns the events received by the second protocol.
    """
    for packet in proto_a.packets_to_send():
        feed(proto_b, packet.data)

    for packet in packets:
        feed(proto_b, packet.data)

    return proto_b.events_received()


def first_and_only_event(proto_a: RCONGenericProtocol, event_cls: Type[T]) -> T:
    events = proto_a.events_received()
    assert len(events) == 1
    first_event = events[0]
    assert isinstance(first_event, event_cls)
    return first_event


def first_and_only_packet(proto_a: RCONGenericProtocol) -> Packet:
    packets = proto_a.packets_to_send()
    assert len(packets) == 1
    return packets[0]
