"""Contains the asyncio implementation of the client-side RCON protocol."""
from __future__ import annotations

import asyncio
import enum
import itertools
import logging
import time
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from .errors import (
    CommandTimeout,
    ConnectionClosed,
    LoginFailure,
    LoginRefused,
    LoginTimeout,
    ProtocolCorruption,
    RCONCommandError,
    RCONError,
    SequenceMismatch,
)
from .protocol import (
    ClientCommandEvent,
    ClientEvent,
    ClientMessageEvent,
    Packet,
    RCONClientProtocol,
    hash_password,
)

log = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .client import RCONClient
    from .protocol.packet import Word


def maybe_replace_future(fut: asyncio.Future | None) -> asyncio.Future:
    if fut is None or fut.done():
        return asyncio.get_running_loop().create_future()
    return fut


class ConnectionState(enum.Enum):
    """Defines the current state of the connection."""

    DISCONNECTED = enum.auto()
    """No connection to the server exists."""
    CONNECTING = enum.auto()
    """A TCP connection is being opened."""
    CONNECTED = enum.auto()
    """The TCP connection is open but the client is not logged in."""
    LOGGING_IN = enum.auto()
    """The ``login.hashed`` handshake is in progress."""
    LOGGED_IN = enum.auto()
    """The client is logged in and able to run privileged commands."""
    CLOSING = enum.auto()
    """The client was asked to close and will not reconnect."""


class AsyncClientProtocol(ABC):
    """
    Provides a bridge between :py:class:`RCONClient` and the underlying
    I/O implementations.
    """

    _client: "RCONClient | None" = None

    @property
    def client(self) -> "RCONClient | None":
        return self._client

    @client.setter
    def client(self, new_client: "RCONClient | None") -> None:
        if new_client is not None:
            new_client = weakref.proxy(new_client)
        self._client = new_client

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """The current state of the connection."""

    @abstractmethod
    def close(self) -> None:
        """Notifies the protocol that it should begin closing."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Indicates if the client has a currently active connection
        with the server.
        """

    @abstractmethod
    def is_logged_in(self) -> bool:
        """Indicates if the client is currently authenticated with the server."""

    @abstractmethod
    def is_running(self) -> bool:
        """Indicates if the client is running. This may not necessarily
        mean that the client is connected.
        """

    @abstractmethod
    async def login(self, password: str | None = None) -> None:
        """Performs the ``login.hashed`` handshake on the current connection.

        :param password:
            The password to log in with. If ``None``, the password
            given to :py:meth:`run()` is used.
        :raises LoginFailure: The handshake could not be completed.
        :raises LoginRefused: The server rejected the password.

        """

    @abstractmethod
    def mark_logged_out(self) -> None:
        """Returns the connection to the connected state after
        the server accepted a ``logout`` command.
        """

    @abstractmethod
    def run(self, ip: str, port: int, password: str) -> asyncio.Task[None]:
        """Starts maintaining a connection to the given server.

        :returns: A task that will handle connections to the server.
        :raises RuntimeError:
            This method was called while the protocol was already connected.

        """

    @abstractmethod
    def send(self, packet: Packet) -> None:
        """Sends a packet to the server."""

    @abstractmethod
    async def send_command(self, words: Iterable[Word]) -> list[str]:
        """Sends a command to the server and waits for its response.

        :param words: The command followed by its arguments.
        :returns: The server's response, starting with its status word.
        :raises CommandTimeout: The server did not respond in time.
        :raises ConnectionClosed: The connection closed before a response.

        """

    @abstractmethod
    async def wait_for_login(self) -> bool:
        """Waits indefinitely until the client has logged in
        or the connection has closed.

        This can also raise any exception when the connection finishes closing.

        :returns: True if authenticated, False otherwise.

        """


class AsyncCommander:
    """Handles sending commands and waiting for responses.

    Every command in flight has one future here, keyed by the same
    sequence number that the protocol layer tracks as pending.

    """

    io_layer: AsyncClientProtocol | None
    proto_layer: RCONClientProtocol | None

    _command_futures: dict[int, asyncio.Future[list[str]]]

    def __init__(self, *, command_timeout: float | None = 10.0) -> None:
        self.io_layer = None
        self.proto_layer = None

        self.command_timeout = command_timeout
        self.reset()

    @property
    def pending(self) -> int:
        """The number of commands waiting for a response."""
        return len(self._command_futures)

    def cancel_command(self, sequence: int) -> None:
        """Cancels a command in the protocol along with its associated future.

        If the command sequence was not queued before, this is a no-op.

        """
        if self.proto_layer is None:
            raise RuntimeError("proto_layer must be assigned")

        self.proto_layer.invalidate_command(sequence)
        fut = self._command_futures.pop(sequence, None)
        if fut is not None:
            fut.cancel()

    def fail_all(self, exc: BaseException) -> None:
        """Fails every pending command with the given exception."""
        futures = self._command_futures
        self._command_futures = {}

        for sequence, fut in futures.items():
            if self.proto_layer is not None:
                self.proto_layer.invalidate_command(sequence)
            if not fut.done():
                fut.set_exception(exc)

    def reset(self) -> None:
        self._command_futures = {}

    def set_command(self, sequence: int, words: list[str]) -> None:
        """Notifies the future waiting on a command response packet.

        If no future was created for the packet, this is a no-op.

        """
        fut = self._command_futures.pop(sequence, None)
        if fut is not None and not fut.done():
            fut.set_result(words)

    async def send_command(self, words: Iterable[Word]) -> list[str]:
        if self.io_layer is None:
            raise RuntimeError("io_layer must be assigned")
        if self.proto_layer is None:
            raise RuntimeError("proto_layer must be assigned")

        words = list(words)
        packet = self.proto_layer.send_command(words)
        fut = self.wait_for_command(packet.sequence)

        try:
            self.io_layer.send(packet)

            # NOTE: if we let wait_for() cancel the future, set_command()
            # could be called just before our finally statement is reached
            # and set_result() would throw an InvalidStateError.
            return await asyncio.wait_for(
                asyncio.shield(fut),
                timeout=self.command_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(
                f"command {packet.sequence} timed out after {self.command_timeout}s"
            )
            raise CommandTimeout(
                f"server did not respond to command: {words[0]!r}"
            ) from None
        finally:
            self.cancel_command(packet.sequence)

    def wait_for_command(self, sequence: int) -> asyncio.Future[list[str]]:
        """Returns a future waiting for a command response with
        the given sequence number.
        """
        fut = self._command_futures.get(sequence)
        if fut is None:
            loop = asyncio.get_running_loop()
            self._command_futures[sequence] = fut = loop.create_future()

        return fut


@dataclass
class ConnectorConfig:
    """Specifies the configuration used for the :py:class:`AsyncClientConnector`."""

    run_interval: float = 1.0
    """
    The amount of time in seconds to wait between each run loop iteration
    (which handles re-connecting and sending keep alive commands).
    """
    keep_alive_interval: float = 30.0
    """
    The amount of time in seconds should the connection wait from the last
    command before sending another command to keep the connection alive.
    """

    initial_connect_attempts: int = 3
    """
    The number of attempts that should be done when the RCON client is
    first connecting.

    After a successful connection, this value is ignored and the connector
    will indefinitely attempt to reconnect unless authentication is denied.
    """
    connection_timeout: float = 5.0
    """
    The amount of time in seconds to wait for a connection and login
    attempt before retrying.
    """
    command_timeout: float | None = 10.0
    """
    The amount of time in seconds to wait for the response to a command.
    If ``None``, commands wait until the connection closes.
    """
    reconnect: bool = True
    """
    Whether the connector should reconnect after the server closes
    the connection. If ``False``, the run task finishes instead.
    """


class AsyncClientConnector(AsyncClientProtocol, asyncio.Protocol):
    """An asyncio implementation of the :py:class:`AsyncClientProtocol`."""

    _addr: tuple[str, int] | None
    _password: str | None
    _last_command: float

    _is_logged_in: asyncio.Future[bool] | None
    _state: ConnectionState
    _task: asyncio.Task | None
    _transport: asyncio.Transport | None

    def __init__(
        self,
        *,
        commander: AsyncCommander | None = None,
        config: ConnectorConfig | None = None,
        protocol: RCONClientProtocol | None = None,
    ):
        if config is None:
            config = ConnectorConfig()
        if protocol is None:
            protocol = RCONClientProtocol()
        if commander is None:
            commander = AsyncCommander(command_timeout=config.command_timeout)

        super().__init__()
        self.commander = commander
        self.commander.io_layer = weakref.proxy(self)
        self.commander.proto_layer = weakref.proxy(protocol)
        self.config = config
        self.protocol = protocol

        self._close_event = asyncio.Event()
        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        self._reset()

    @property
    def state(self) -> ConnectionState:
        return self._state

    def close(self) -> None:
        if self.is_running() or self.is_connected():
            self._set_state(ConnectionState.CLOSING)
        self._close_event.set()

    def is_connected(self) -> bool:
        return self._transport is not None

    def is_logged_in(self) -> bool:
        return self._state is ConnectionState.LOGGED_IN

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def login(self, password: str | None = None) -> None:
        if password is None:
            password = self._password
        if password is None:
            raise LoginFailure("no password was given")
        if not self.is_connected():
            raise ConnectionClosed("cannot log in without a connection")

        assert self.client is not None
        self.client.catalog.reset()
        self._set_state(ConnectionState.LOGGING_IN)

        try:
            salt = await self._login_step("login.hashed")
            if not salt:
                raise LoginFailure("server did not provide a password salt")

            try:
                digest = hash_password(salt[0], password)
            except ValueError:
                raise LoginFailure(
                    f"server provided an invalid salt: {salt[0]!r}"
                ) from None

            await self._login_step("login.hashed", digest)
        except LoginFailure as e:
            log.error(f"failed to log in: {e}")
            self.disconnect()
            self.client.dispatch("error", e)
            raise

        self._set_state(ConnectionState.LOGGED_IN)
        self._is_logged_in = maybe_replace_future(self._is_logged_in)
        self._is_logged_in.set_result(True)
        self.client.dispatch("login")

    def mark_logged_out(self) -> None:
        if self._state is ConnectionState.LOGGED_IN:
            self._set_state(ConnectionState.CONNECTED)
            self._is_logged_in = maybe_replace_future(self._is_logged_in)

    def run(self, ip: str, port: int, password: str) -> asyncio.Task[None]:
        if self.is_running():
            raise RuntimeError("connection is already running")

        self._task = asyncio.create_task(
            self._run_and_handle(ip, port, password),
            name="fbrconpy-run",
        )
        return self._task

    def send(self, packet: Packet) -> None:
        if self._transport is None:
            raise ConnectionClosed("cannot send packets without a connection")

        self._transport.write(packet.data)
        log.debug(f"sent {packet!r}")

        if not packet.is_response:
            self._last_command = time.monotonic()

    async def send_command(self, words: Iterable[Word]) -> list[str]:
        return await self.commander.send_command(words)

    async def wait_for_login(self) -> bool:
        # This method may be called before run() so we need to
        # make sure the futures are initialized with something
        loop = asyncio.get_running_loop()
        if self._is_logged_in is None:
            self._is_logged_in = loop.create_future()

        logged_in = self._is_logged_in
        task = self._task
        waiters: list[asyncio.Future] = [logged_in]
        if task is not None:
            waiters.append(task)

        close_task = asyncio.create_task(
            self._close_event.wait(),
            name="fbrconpy-wait-for-login",
        )
        waiters.append(close_task)

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            close_task.cancel()

        if logged_in.done():
            return logged_in.result()
        elif task is not None and task.done() and not task.cancelled():
            # Propagate the reason the connection stopped
            task.result()

        # Closed without having logged in
        return False

    def _reset(self):
        self._reset_protocol()

        mono = time.monotonic()
        self._addr = None
        self._password = None
        self._last_command = mono

        self._is_logged_in = None
        self._close_event.clear()
        self._task = None

    def _reset_protocol(self):
        self.commander.reset()
        self.protocol.reset()

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            log.debug(f"connection state changed: {self._state.name} -> {state.name}")
        self._state = state

    # Connection methods

    async def connect(self, password: str) -> None:
        """Creates a connection to the server and logs in.

        If necessary, any previous connection will be closed
        before creating a new connection.

        :raises LoginFailure:
            The client could not complete the login handshake.
        :raises LoginRefused:
            The password given to the server was denied.
        :raises OSError:
            An error occurred while attempting to connect to the server.

        """
        log.debug("attempting a new connection")
        if self.is_connected():
            self.disconnect()

        assert self._addr is not None
        self._set_state(ConnectionState.CONNECTING)

        loop = asyncio.get_running_loop()
        try:
            await loop.create_connection(lambda: self, *self._addr)
        except OSError:
            self._set_state(ConnectionState.DISCONNECTED)
            raise

        await self.login(password)

    def disconnect(self, *, abort: bool = False) -> None:
        """Disconnects the protocol from the server.

        Every pending command fails with :py:exc:`ConnectionClosed`.

        :param abort: If ``True``, buffered data is discarded instead of flushed.

        """
        transport = self._transport
        if transport is None:
            return

        self._handle_disconnect()
        if abort:
            transport.abort()
        else:
            transport.close()

    async def _run_and_handle(self, ip: str, port: int, password: str) -> None:
        self._addr = (ip, port)
        self._password = password
        self._close_event.clear()

        try:
            await self._run_loop()
        finally:
            self.disconnect()
            self._reset()
            self._set_state(ConnectionState.DISCONNECTED)

    async def _run_loop(self) -> None:
        first_iteration = True

        while not self._close_event.is_set():
            if not self.is_connected():
                if not first_iteration and not self.config.reconnect:
                    log.info("connection closed by the server")
                    return

                logged_in = await self._try_connect(first_iteration=first_iteration)

                if not logged_in and self._close_event.is_set():
                    return
                elif not logged_in:
                    log.error("failed to connect to the server")
                    raise LoginTimeout("could not connect to the server")
                else:
                    log.info("successfully connected to the server")

            elapsed_time = time.monotonic() - self._last_command
            if self.is_logged_in() and elapsed_time > self.config.keep_alive_interval:
                log.debug("sending keep alive command")
                self._begin_keep_alive()

            try:
                coro = self._close_event.wait()
                await asyncio.wait_for(coro, timeout=self.config.run_interval)
            except asyncio.TimeoutError:
                pass

            first_iteration = False

    async def _try_connect(self, *, first_iteration: bool) -> bool:
        """Attempts to connect to the server, potentially multiple times.

        Connection attempts are spaced out using an exponential backoff
        algorithm.

        :param first_iteration:
            If ``True``, the number of connection attempts will be limited
            to :py:attr:`ConnectorConfig.initial_connect_attempts`. Otherwise,
            this method will attempt to connect indefinitely.
        :returns:
            True if successfully authenticated, and False if all connection
            attempts failed or the protocol was asked to close itself.

        """
        log.info(
            "attempting to {re}connect to server".format(
                re="re" * (not first_iteration)
            )
        )
        assert self._password is not None
        self._is_logged_in = maybe_replace_future(self._is_logged_in)

        attempts = itertools.count()
        if first_iteration:
            attempts = range(self.config.initial_connect_attempts)

        for i in attempts:
            if self._close_event.is_set():
                return False

            try:
                timeout = self.config.connection_timeout
                await asyncio.wait_for(self.connect(self._password), timeout=timeout)
                return True
            except LoginRefused:
                raise  # credentials may be invalid, or server changed it
            except (LoginFailure, asyncio.TimeoutError, OSError) as e:
                if i % 10 == 0:
                    log.warning(
                        "failed {:,d} login attempt{s}: {}".format(
                            i + 1, str(e) or type(e).__name__, s="s" * (i != 0)
                        )
                    )

                # exponential backoff
                self.disconnect()
                try:
                    await asyncio.wait_for(
                        self._close_event.wait(), timeout=2 ** (i % 11)
                    )
                except asyncio.TimeoutError:
                    pass

        return False

    def _begin_keep_alive(self) -> asyncio.Task[None]:
        def done_callback(task: asyncio.Task):
            if task.cancelled():
                return
            if not isinstance(task.exception(), RCONError):
                task.result()  # unexpected error

        # Prevents another keep alive from being sent on the next iteration
        self._last_command = time.monotonic()

        task = asyncio.create_task(
            self._send_keep_alive(),
            name="fbrconpy-keep-alive",
        )
        task.add_done_callback(done_callback)
        return task

    async def _send_keep_alive(self) -> None:
        await self.send_command(["version"])

    def _handle_disconnect(self) -> None:
        """Releases every resource tied to the current connection."""
        self._transport = None

        pending = self.commander.pending
        self.commander.fail_all(
            ConnectionClosed(f"connection closed with {pending} command(s) pending")
        )
        self.protocol.reset()

        if self._state is not ConnectionState.CLOSING:
            self._set_state(ConnectionState.DISCONNECTED)
        self._is_logged_in = maybe_replace_future(self._is_logged_in)

        if self.client is not None:
            self.client.dispatch("disconnect")

    async def _login_step(self, *words: str) -> list[str]:
        """Sends one command of the login handshake.

        :returns: The words following the "OK" status.
        :raises LoginFailure: The command could not be completed.
        :raises LoginRefused: The server did not respond with "OK".

        """
        try:
            response = await self.send_command(words)
        except CommandTimeout as e:
            raise LoginTimeout("server did not respond to login request") from e
        except (ConnectionClosed, RCONCommandError) as e:
            raise LoginFailure(f"could not complete login: {e}") from e

        status = response[0] if response else ""
        if status != "OK":
            raise LoginRefused(f"server refused login with status {status!r}")

        return response[1:]

    # RCONClientProtocol handling

    def _handle_event(self, event: ClientEvent) -> None:
        assert self.client is not None

        if isinstance(event, ClientCommandEvent):
            self.commander.set_command(event.sequence, event.words)
            self.client.dispatch("command", event.words)

        elif isinstance(event, ClientMessageEvent):
            if not event.words:
                return log.debug(f"ignoring empty event (sequence {event.sequence})")
            self.client.dispatch("event", event.words[0], event.words[1:])

        else:
            raise RuntimeError(f"unhandled event type {type(event)}")

    # Protocol

    def connection_made(self, transport):
        """Logs when the protocol has connected.

        .. seealso:: :py:meth:`asyncio.BaseProtocol.connection_made()`

        """
        log.debug("protocol has connected")
        self._transport = transport
        self._set_state(ConnectionState.CONNECTED)

    def connection_lost(self, exc: Exception | None):
        """Fails any pending commands when the protocol has disconnected.

        .. seealso:: :py:meth:`asyncio.BaseProtocol.connection_lost()`

        """
        if exc:
            log.error("protocol has disconnected with error", exc_info=exc)
        else:
            log.debug("protocol has disconnected")

        if self._transport is not None:
            self._handle_disconnect()

    def data_received(self, data: bytes):
        """Handles data from the server.

        .. seealso:: :py:meth:`asyncio.Protocol.data_received()`

        """
        assert self.client is not None

        try:
            packets = self.protocol.receive_data(data)
        except ProtocolCorruption as e:
            log.error("closing connection after receiving malformed data", exc_info=e)
            return self.disconnect(abort=True)

        for packet in packets:
            try:
                self.protocol.handle_packet(packet)
            except SequenceMismatch as e:
                log.warning(f"dropping packet: {e}")
                continue

            log.debug(f"received {packet!r}")
            self.client.dispatch("raw_event", packet)

            for event in self.protocol.events_received():
                self._handle_event(event)
            for to_send in self.protocol.packets_to_send():
                self.send(to_send)

    def eof_received(self):
        """Closes the transport when the server stops sending.

        .. seealso:: :py:meth:`asyncio.Protocol.eof_received()`

        """
        log.debug("server closed its end of the connection")
        return False
