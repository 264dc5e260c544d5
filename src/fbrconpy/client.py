import asyncio
import contextlib
import logging
import shlex
from typing import Any, Callable, Iterable, TypeVar

from .catalog import CommandCatalog
from .dispatch import EventDispatcher
from .errors import RCONCommandError, RCONError
from .io import AsyncClientConnector, AsyncClientProtocol, ConnectionState
from .parser import parse_bool, tabulate
from .utils import MaybeCoroFunc

T = TypeVar("T")

log = logging.getLogger(__name__)


def _add_cancel_callback(
    fut: asyncio.Future,
    current_task: asyncio.Task | None = None,
):
    """Adds a callback to a future to cancel the current task
    if the future completes with an exception.
    """

    def _actual_canceller(_):
        assert current_task is not None
        if not fut.cancelled() and fut.exception() is not None:
            current_task.cancel()

    current_task = current_task or asyncio.current_task()
    fut.add_done_callback(_actual_canceller)


class RCONClient:
    """An implementation of the Frostbite RCON client protocol using asyncio."""

    def __init__(
        self,
        *,
        catalog: CommandCatalog | None = None,
        dispatch: EventDispatcher | None = None,
        protocol: AsyncClientProtocol | None = None,
    ):
        """
        :param catalog:
            The catalog to store the server's commands in.
            Defaults to an instance of :py:class:`CommandCatalog`.
        :param dispatch:
            The dispatcher object to use for transmitting events.
            Defaults to an instance of :py:class:`EventDispatcher`.
        :param protocol:
            The protocol to use for handling connections.
            Defaults to an instance of :py:class:`AsyncClientConnector`.
        """
        if catalog is None:
            catalog = CommandCatalog()
        if dispatch is None:
            dispatch = EventDispatcher()
        if protocol is None:
            protocol = AsyncClientConnector()

        self.catalog = catalog
        self.dispatch = dispatch
        self.protocol = protocol
        self.protocol.client = self

        self.dispatch.on_login(self._populate_catalog)

    @property
    def state(self) -> ConnectionState:
        """The current state of the connection."""
        return self.protocol.state

    def is_connected(self) -> bool:
        """Indicates if the client has a currently active connection
        with the server.
        """
        return self.protocol.is_connected()

    def is_logged_in(self) -> bool:
        """Indicates if the client is currently authenticated with the server."""
        return self.protocol.is_logged_in()

    def is_running(self) -> bool:
        """Indicates if the client is running. This may not necessarily
        mean that the client is connected.
        """
        return self.protocol.is_running()

    # Connection methods

    @contextlib.asynccontextmanager
    async def connect(self, ip: str, port: int, password: str):
        """Returns an asynchronous context manager for logging into
        the given `IP` and `port` with `password`.

        Example usage::

            client = fbrconpy.RCONClient()
            async with client.connect(ip, port, password):
                print("Connected!")
            print("Disconnected!")

        If an unexpected error occurs after successfully logging in,
        the current task that the context manager is used in will be
        **cancelled** to prevent the script being stuck in an infinite loop.

        :raises LoginFailure:
            The client failed to log into the server.
        :raises LoginRefused:
            The password given to the server was denied.
        :raises RuntimeError:
            This method was called while the client is already connected.

        """
        # Establish connection
        task = None
        try:
            task = self.protocol.run(ip, port, password)

            # Wait for login here to avoid any commands being sent
            # by the user before a connection was made
            await self.protocol.wait_for_login()

            # Interrupt the current task if a fatal error occurs in the protocol
            _add_cancel_callback(task)

            yield self
        finally:
            self.close()

            # Wait for the protocol to cleanly disconnect,
            # and also to propagate any exception
            if task is not None:
                await task

    def close(self):
        """Closes the connection.

        This method is idempotent and can be called multiple times consecutively.

        """
        self.protocol.close()

    # Commands
    # (documentation: Frostbite "Remote Administration Interface" PDFs)

    async def send_command(self, command: str | Iterable[str]) -> list[str]:
        """Sends a command to the server and waits for a response.

        :param command:
            The command followed by its arguments. If a string is given,
            it is split into words with shell-like syntax, allowing
            arguments with spaces to be quoted, e.g.
            ``'admin.say "Hello world!" all'``.
        :returns: The words of the server's response after its "OK" status.
        :raises RCONCommandError:
            The server has rejected the command, or failed to
            respond to our command in time.
        :raises ConnectionClosed:
            The connection closed before the server could respond.
        :raises RuntimeError:
            The client is not connected.

        """
        if isinstance(command, str):
            words = shlex.split(command)
        else:
            words = list(command)
        if not words:
            raise ValueError("command cannot be empty")

        if not self.protocol.is_running():
            raise RuntimeError("cannot send command when not connected")

        response = await self.protocol.send_command(words)
        self._check_status(words, response)
        return response[1:]

    async def version(self) -> tuple[str, str]:
        """Requests the game and version of the server,
        e.g. ``("BF4", "179665")``.

        The result is also stored in :py:attr:`server_version`.

        """
        response = await self.send_command(["version"])
        if len(response) < 2:
            raise RCONCommandError(
                f"expected a game and version, got {response!r}", words=response
            )
        self.catalog.server_version = (response[0], response[1])
        return self.catalog.server_version

    async def help(self) -> list[str]:
        """Requests the list of commands available to the client."""
        return await self.send_command(["admin.help"])

    async def events_enabled(self, enabled: bool | None = None) -> bool:
        """Gets or sets whether the server sends events to this connection.

        When setting, the server is queried again afterwards and its
        answer is returned rather than the requested value, in case the
        server silently ignored the change.

        :param enabled:
            ``True`` to enable events, ``False`` to disable them,
            or ``None`` to only query the current setting.
        :returns: Whether events are enabled according to the server.

        """
        if isinstance(enabled, bool):
            await self.send_command(
                ["admin.eventsEnabled", "true" if enabled else "false"]
            )

        response = await self.send_command(["admin.eventsEnabled"])
        return parse_bool(response)

    async def list_players(self) -> list[dict[str, str]]:
        """Requests the list of players on the server.

        ``admin.listPlayers all`` is attempted first. If the server rejects
        it, the older ``listPlayers`` form is attempted instead.

        :returns: A list of players, each mapping column names to values.
        :raises RCONCommandError:
            Both forms were rejected, in which case the first error is raised.
        :raises MalformedResponse:
            The server's response could not be tabulated.

        """
        try:
            response = await self.send_command(["admin.listPlayers", "all"])
        except RCONCommandError as e:
            log.debug(f"admin.listPlayers failed, falling back to listPlayers: {e}")
            try:
                response = await self.send_command(["listPlayers"])
            except RCONCommandError:
                raise e

        return tabulate(response)

    async def server_info(self) -> list[str]:
        """Requests information about the server, starting with its name."""
        return await self.send_command(["serverInfo"])

    async def login(self, password: str | None = None) -> None:
        """Logs into the server on the current connection.

        This is done automatically by :py:meth:`connect()` and only needs
        to be called again after :py:meth:`logout()`.

        :param password:
            The password to use. If ``None``, the password given
            to :py:meth:`connect()` is used.
        :raises LoginFailure:
            The client failed to log into the server.
            The connection is closed and the ``error`` event is dispatched.
        :raises LoginRefused:
            The password given to the server was denied.

        """
        await self.protocol.login(password)

    async def logout(self) -> None:
        """Logs out of the server while keeping the connection open."""
        await self.send_command(["logout"])
        self.protocol.mark_logged_out()
        self.dispatch("logout")

    async def quit(self) -> None:
        """Ends the session.

        The server closes the connection afterwards, so the client
        is also closed to prevent it from reconnecting.

        """
        await self.send_command(["quit"])
        self.close()

    # Catalog

    @property
    def commands(self) -> list[str]:
        """A shorthand for :py:attr:`CommandCatalog.commands`."""
        return self.catalog.commands

    @property
    def vars(self) -> list[str]:
        """A shorthand for :py:attr:`CommandCatalog.vars`."""
        return self.catalog.vars

    @property
    def server_version(self) -> tuple[str, str] | None:
        """A shorthand for :py:attr:`CommandCatalog.server_version`."""
        return self.catalog.server_version

    # Event dispatcher

    def add_listener(self, event: str, func: Callable) -> None:
        """A shorthand for the :py:meth:`EventDispatcher.add_listener()` method.

        See the :py:class:`EventDispatcher` for a list of supported events.

        :param event:
            The event to listen for.
        :param func:
            The function to dispatch when the event is received.

        """
        return self.dispatch.add_listener(event, func)

    def remove_listener(self, event: str, func: Callable) -> None:
        """A shorthand for the :py:meth:`EventDispatcher.remove_listener()` method.

        This method should be a no-op if the given event and function
        does not match any registered listener.

        :param event: The event used by the listener.
        :param func: The function used by the listener.

        """
        return self.dispatch.remove_listener(event, func)

    def listen(self, event: str | None = None) -> Callable[[T], T]:
        """A shorthand for the :py:meth:`EventDispatcher.listen()` decorator.

        Example usage::

            >>> client = RCONClient()
            >>> @client.listen()
            ... async def on_ready():
            ...     print("We have logged in!")

        :param event:
            The event to listen for. If ``None``, the function name
            is used as the event name.

        """
        return self.dispatch.listen(event)

    async def wait_for(
        self,
        event: str,
        *,
        check: MaybeCoroFunc[..., Any] | None = None,
        timeout: float | int | None = None,
    ):
        """A shorthand for :py:class:`EventDispatcher.wait_for()`."""
        return await self.dispatch.wait_for(event, check=check, timeout=timeout)

    # Utilities

    def _check_status(self, words: list[str], response: list[str]) -> None:
        """Raises :py:exc:`RCONCommandError` if the server did not
        respond with an "OK" status.
        """
        status = response[0] if response else ""
        if status != "OK":
            raise RCONCommandError(
                f"{words[0]} failed with status {status!r}",
                status=status,
                words=response[1:],
            )

    async def _populate_catalog(self) -> None:
        """Fills the catalog after logging in and dispatches the ready event."""
        try:
            await self.events_enabled(True)
        except (RCONError, RuntimeError) as e:
            log.debug(f"could not enable events: {e}")

        try:
            commands = await self.help()
        except (RCONError, RuntimeError) as e:
            log.warning(f"could not fetch the list of commands: {e}")
            self.dispatch("error", e)
            return

        self.catalog.update_commands(commands)
        self.dispatch("ready")
