import asyncio
from typing import Callable

from fbrconpy import (
    AsyncClientConnector,
    ConnectorConfig,
    RCONClient,
    RCONServerProtocol,
    ServerAckEvent,
    ServerCommandEvent,
    hash_password,
)

expected_password = "foobar2000"
incorrect_password = "abc123"
salt = "E1F4A8B0C3D2"

help_words = ["login.hashed", "admin.help", "vars.serverName", "vars.gamePassword"]
player_words = ["2", "name", "score", "2", "Alice", "10", "Bob", "20"]
players = [{"name": "Alice", "score": "10"}, {"name": "Bob", "score": "20"}]

CommandHandler = Callable[[list[str]], list[str]]


def make_client() -> RCONClient:
    config = ConnectorConfig(
        run_interval=0.05,
        initial_connect_attempts=1,
        connection_timeout=5.0,
        command_timeout=5.0,
        reconnect=False,
    )
    return RCONClient(protocol=AsyncClientConnector(config=config))


class MockServer:
    """A minimal Frostbite server answering commands from a table."""

    commands: dict[str, CommandHandler]
    received: list[list[str]]
    acks: list[ServerAckEvent]

    def __init__(self, password: str = expected_password):
        self.password = password
        self.events_enabled = False
        self.received = []
        self.acks = []
        self.commands = {
            "admin.eventsEnabled": self._events_enabled,
            "admin.help": lambda args: ["OK", *help_words],
            "admin.listPlayers": lambda args: ["OK", *player_words],
            "logout": lambda args: ["OK"],
            "quit": lambda args: ["OK"],
            "serverInfo": lambda args: ["OK", "Mock Server", "2", "64"],
            "version": lambda args: ["OK", "BF4", "179665"],
        }

        self._connections: list[tuple[RCONServerProtocol, asyncio.StreamWriter]] = []
        self._server: asyncio.Server | None = None

    async def start(self) -> int:
        """Starts listening on localhost and returns the port."""
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self._server.sockets[0].getsockname()[1]

    async def close(self) -> None:
        assert self._server is not None
        self._server.close()
        for _, writer in self._connections:
            writer.close()
        await self._server.wait_closed()

    def send_event(self, words: list[str]) -> None:
        for protocol, writer in self._connections:
            writer.write(protocol.send_event(words).data)

    def handle_command(self, words: list[str]) -> list[str]:
        name, args = words[0], words[1:]
        if name == "login.hashed":
            if not args:
                return ["OK", salt]
            elif args[0] == hash_password(salt, self.password):
                return ["OK"]
            return ["InvalidPasswordHash"]

        handler = self.commands.get(name)
        if handler is None:
            return ["UnknownCommand"]
        return handler(args)

    def _events_enabled(self, args: list[str]) -> list[str]:
        if args:
            self.events_enabled = args[0] == "true"
            return ["OK"]
        return ["OK", "true" if self.events_enabled else "false"]

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        protocol = RCONServerProtocol()
        self._connections.append((protocol, writer))

        try:
            while data := await reader.read(4096):
                for packet in protocol.receive_data(data):
                    protocol.handle_packet(packet)

                for event in protocol.events_received():
                    if isinstance(event, ServerAckEvent):
                        self.acks.append(event)
                        continue

                    assert isinstance(event, ServerCommandEvent)
                    self.received.append(event.words)
                    response = self.handle_command(event.words)
                    writer.write(protocol.respond(event.sequence, response).data)

                    if event.words[0] == "quit":
                        await writer.drain()
                        return

                await writer.drain()
        finally:
            self._connections.remove((protocol, writer))
            writer.close()
