import pytest

from fbrconpy.errors import SequenceMismatch
from fbrconpy.protocol import (
    ClientCommandEvent,
    ClientMessageEvent,
    RCONClientProtocol,
    RCONServerProtocol,
    ServerAckEvent,
    ServerCommandEvent,
)

from . import communicate, feed, first_and_only_event


def test_command_exchange(client: RCONClientProtocol, server: RCONServerProtocol):
    payload = client.send_command(["admin.say", "Hello world!", "all"])
    command = communicate(client, server, payload)[0]
    assert isinstance(command, ServerCommandEvent)
    assert command.sequence == payload.sequence
    assert command.words == ["admin.say", "Hello world!", "all"]

    response = server.respond(command.sequence, ["OK"])
    event = communicate(server, client, response)[0]
    assert isinstance(event, ClientCommandEvent)
    assert event.sequence == payload.sequence
    assert event.words == ["OK"]


def test_event_exchange(client: RCONClientProtocol, server: RCONServerProtocol):
    """Asserts that events are acknowledged and that the server
    does not accept the same acknowledgement twice.
    """
    for i in range(3):
        payload = server.send_event(["player.onChat", "Server", str(i)])
        event = communicate(server, client, payload)[0]
        assert isinstance(event, ClientMessageEvent)
        assert event.words == ["player.onChat", "Server", str(i)]

        ack = client.packets_to_send()[0]
        feed(server, ack.data)
        assert first_and_only_event(server, ServerAckEvent).sequence == payload.sequence

        with pytest.raises(SequenceMismatch):
            feed(server, ack.data)


def test_interleaved_stream(client: RCONClientProtocol, server: RCONServerProtocol):
    """Asserts responses and events sent in one stream, delivered one
    byte at a time, are all handled.
    """
    commands = [client.send_command(["version"]) for _ in range(3)]
    for packet in commands:
        feed(server, packet.data)
    received = server.events_received()

    stream = b""
    for command in reversed(received):
        stream += server.send_event(["server.onRoundOver", "1"]).data
        stream += server.respond(command.sequence, ["OK", "BF4", "179665"]).data

    for i in range(len(stream)):
        feed(client, stream[i : i + 1])

    events = client.events_received()
    responses = [e for e in events if isinstance(e, ClientCommandEvent)]
    messages = [e for e in events if isinstance(e, ClientMessageEvent)]
    assert sorted(e.sequence for e in responses) == [p.sequence for p in commands]
    assert len(messages) == 3
    assert len(client.packets_to_send()) == 3
    assert not client.pending
