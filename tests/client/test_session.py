import asyncio
import contextlib

import pytest

from fbrconpy import (
    ConnectionState,
    LoginRefused,
    RCONClient,
    RCONCommandError,
    hash_password,
)

from . import (
    MockServer,
    expected_password,
    help_words,
    incorrect_password,
    make_client,
    player_words,
    players,
    salt,
)


@contextlib.asynccontextmanager
async def logged_in(server: MockServer):
    """Connects a new client to the server and waits until it is ready."""
    port = await server.start()
    client = make_client()
    ready = asyncio.create_task(client.wait_for("ready", timeout=5))

    try:
        async with client.connect("127.0.0.1", port, expected_password):
            await ready
            yield client
    finally:
        ready.cancel()
        await server.close()


async def wait_until(predicate, timeout: float = 5.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


def test_login_populates_catalog():
    async def main():
        server = MockServer()
        async with logged_in(server) as client:
            assert client.is_logged_in()
            assert client.state is ConnectionState.LOGGED_IN

            digest = hash_password(salt, expected_password)
            assert server.received[:2] == [
                ["login.hashed"],
                ["login.hashed", digest],
            ]

            assert server.events_enabled
            assert client.commands == help_words
            assert client.vars == ["vars.serverName", "vars.gamePassword"]

        assert not client.is_running()
        assert not client.is_connected()
        assert client.state is ConnectionState.DISCONNECTED

    asyncio.run(main())


def test_queries():
    async def main():
        async with logged_in(MockServer()) as client:
            assert await client.version() == ("BF4", "179665")
            assert client.server_version == ("BF4", "179665")
            assert await client.server_info() == ["Mock Server", "2", "64"]
            assert await client.help() == help_words
            assert await client.list_players() == players

    asyncio.run(main())


def test_list_players_fallback():
    async def main():
        server = MockServer()
        del server.commands["admin.listPlayers"]
        server.commands["listPlayers"] = lambda args: ["OK", *player_words]

        async with logged_in(server) as client:
            assert await client.list_players() == players
            assert server.received[-2:] == [
                ["admin.listPlayers", "all"],
                ["listPlayers"],
            ]

            del server.commands["listPlayers"]
            with pytest.raises(RCONCommandError) as info:
                await client.list_players()
            assert info.value.status == "UnknownCommand"
            assert "admin.listPlayers" in str(info.value)

    asyncio.run(main())


def test_events_enabled():
    async def main():
        server = MockServer()
        async with logged_in(server) as client:
            assert await client.events_enabled() is True

            assert await client.events_enabled(False) is False
            assert not server.events_enabled
            assert server.received[-2:] == [
                ["admin.eventsEnabled", "false"],
                ["admin.eventsEnabled"],
            ]

    asyncio.run(main())


def test_send_command():
    async def main():
        server = MockServer()
        async with logged_in(server) as client:
            with pytest.raises(RCONCommandError) as info:
                await client.send_command('admin.say "Hello world!" all')
            assert info.value.status == "UnknownCommand"
            assert server.received[-1] == ["admin.say", "Hello world!", "all"]

            server.commands["admin.say"] = lambda args: ["OK"]
            assert await client.send_command(["admin.say", "Hi", "all"]) == []

            with pytest.raises(ValueError):
                await client.send_command("")

    asyncio.run(main())


def test_send_command_without_connection():
    async def main():
        client = RCONClient()
        with pytest.raises(RuntimeError):
            await client.send_command("version")

    asyncio.run(main())


def test_logout_and_login():
    async def main():
        async with logged_in(MockServer()) as client:
            logged_out = asyncio.create_task(client.wait_for("logout", timeout=5))
            await client.logout()
            await logged_out

            assert client.is_connected()
            assert not client.is_logged_in()
            assert client.state is ConnectionState.CONNECTED

            ready = asyncio.create_task(client.wait_for("ready", timeout=5))
            await client.login()
            await ready

            assert client.is_logged_in()
            assert client.commands == help_words

    asyncio.run(main())


def test_quit():
    async def main():
        server = MockServer()
        async with logged_in(server) as client:
            await client.quit()
            assert server.received[-1] == ["quit"]
            assert client.state is ConnectionState.CLOSING

        assert not client.is_running()
        assert not client.is_connected()

    asyncio.run(main())


def test_incorrect_password():
    async def main():
        server = MockServer()
        port = await server.start()

        client = make_client()
        errors = []
        client.add_listener("on_error", errors.append)

        try:
            with pytest.raises(LoginRefused):
                async with client.connect("127.0.0.1", port, incorrect_password):
                    pass
        finally:
            await server.close()

        await asyncio.sleep(0.01)
        assert len(errors) == 1
        assert isinstance(errors[0], LoginRefused)
        assert not client.is_logged_in()
        assert client.commands == []

    asyncio.run(main())


def test_server_events():
    async def main():
        server = MockServer()
        async with logged_in(server) as client:
            event = asyncio.create_task(client.wait_for("event", timeout=5))
            await asyncio.sleep(0)

            server.send_event(["player.onJoin", "Alice", "EA_0123"])
            name, args = await event
            assert name == "player.onJoin"
            assert args == ["Alice", "EA_0123"]

            await wait_until(lambda: len(server.acks) == 1)
            assert server.acks[0].words == ["OK"]

    asyncio.run(main())
