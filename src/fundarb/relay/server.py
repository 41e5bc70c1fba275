"""
Browser relay server.

Venue A only answers requests carrying a logged-in browser session, so its
data is fetched by a script running inside that browser. The script dials
this WebSocket server and executes ``rpc_request`` frames on our behalf.

The relay keeps exactly one browser connection:
- A new connection supersedes the old one
- Server pings every ``ping_interval``; a missing pong drops the browser
- Requests are correlated by id, so out-of-order answers are fine
- Tearing a connection down rejects every in-flight request
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from aiohttp import web

from fundarb.config.constants import (
    RELAY_CLOSE_TIMEOUT,
    RELAY_FETCH_METHOD,
    RELAY_HOST,
    RELAY_MAX_MESSAGE_SIZE,
    RELAY_PING_INTERVAL,
    RELAY_PONG_TIMEOUT,
    RELAY_PORT,
    RELAY_RPC_TIMEOUT,
    RELAY_WAIT_POLL_INTERVAL,
)
from fundarb.core.exceptions import (
    ConnectionUnavailableError,
    MalformedFrameError,
    PeerDisconnectedError,
    RemoteCallError,
    RequestTimeoutError,
    WaitTimeoutError,
)
from fundarb.relay.messages import (
    PingMessage,
    PongMessage,
    ReadyMessage,
    RpcRequest,
    RpcResponse,
    encode_message,
    parse_inbound,
)
from fundarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BrowserConnection:
    """State of one attached browser socket."""

    ws: web.WebSocketResponse
    connection_id: int
    remote: str | None = None
    alive: bool = True
    last_pong_ms: int | None = None
    domain: str | None = None
    connected_at_ms: int = field(default_factory=get_timestamp_ms)
    heartbeat_task: asyncio.Task[None] | None = None
    pong_timer: asyncio.TimerHandle | None = None

    @property
    def is_open(self) -> bool:
        return not self.ws.closed


@dataclass(slots=True)
class PendingRequest:
    """An RPC awaiting its response."""

    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle
    method: str


class BrowserRelay:
    """
    Single-client RPC relay over WebSocket.

    All state lives on the instance: the connection slot, the pending
    request map and the id counter. Everything runs on one event loop, so
    no locking is needed.
    """

    def __init__(
        self,
        host: str = RELAY_HOST,
        port: int = RELAY_PORT,
        ping_interval: float = RELAY_PING_INTERVAL,
        pong_timeout: float = RELAY_PONG_TIMEOUT,
        rpc_timeout: float = RELAY_RPC_TIMEOUT,
    ) -> None:
        """
        Initialize the relay.

        Args:
            host: Interface to bind.
            port: Port to listen on.
            ping_interval: Seconds between server pings.
            pong_timeout: Seconds to wait for a pong after each ping.
            rpc_timeout: Default per-call timeout.
        """
        self._host = host
        self._port = port
        self._ping_interval = ping_interval
        self._pong_timeout = pong_timeout
        self._rpc_timeout = rpc_timeout

        self._connection: BrowserConnection | None = None
        self._pending: dict[int, PendingRequest] = {}
        self._request_id = 0
        self._connection_count = 0
        self._connected = asyncio.Event()

        self._runner: web.AppRunner | None = None
        self._background: set[asyncio.Task[None]] = set()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_connected(self) -> bool:
        """Check if a browser is attached and its socket is open."""
        return self._connection is not None and self._connection.is_open

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    @property
    def connection_count(self) -> int:
        """Total browser connections accepted since start."""
        return self._connection_count

    @property
    def last_pong_ms(self) -> int | None:
        """Time of the last pong from the current browser."""
        return self._connection.last_pong_ms if self._connection else None

    @property
    def browser_domain(self) -> str | None:
        """Domain reported by the current browser's ``ready`` frame."""
        return self._connection.domain if self._connection else None

    def status(self) -> dict[str, Any]:
        """Get relay status for display."""
        return {
            "connected": self.is_connected,
            "domain": self.browser_domain,
            "lastPongMs": self.last_pong_ms,
            "pendingRequests": self.pending_count,
            "connectionCount": self._connection_count,
        }

    # =========================================================================
    # Server Lifecycle
    # =========================================================================

    def build_app(self) -> web.Application:
        """Create the aiohttp application serving the relay endpoint."""
        app = web.Application()
        # The browser script connects to the bare origin; accept any path
        app.router.add_get("/{tail:.*}", self._handle_ws)
        return app

    async def start(self) -> None:
        """Start listening for the browser."""
        self._runner = web.AppRunner(self.build_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        logger.info(f"[Relay] Listening on ws://{self._host}:{self._port}")
        logger.info("[Relay] Waiting for the browser proxy to connect...")

    async def stop(self) -> None:
        """Drop the browser and stop the server."""
        conn = self._connection
        if conn is not None:
            self._teardown(conn, "Relay stopped")
            await self._close_socket(conn)

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

        logger.info("[Relay] Stopped")

    # =========================================================================
    # RPC
    # =========================================================================

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Run a method in the browser and return its result.

        Args:
            method: Remote method name.
            params: Method parameters.
            timeout: Seconds to wait for the response (default ``rpc_timeout``).

        Returns:
            The ``result`` field of the browser's response.

        Raises:
            ConnectionUnavailableError: No browser attached (raised before
                anything is sent).
            RequestTimeoutError: No response within ``timeout``.
            PeerDisconnectedError: The connection was torn down first.
            RemoteCallError: The browser reported an error.
        """
        conn = self._connection
        if conn is None or not conn.is_open:
            raise ConnectionUnavailableError(
                "Browser not connected. Open the venue page and load the relay script"
            )

        timeout = self._rpc_timeout if timeout is None else timeout
        self._request_id += 1
        request_id = self._request_id

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        timer = loop.call_later(timeout, self._expire, request_id, timeout)
        self._pending[request_id] = PendingRequest(future=future, timer=timer, method=method)

        try:
            frame = encode_message(RpcRequest(id=request_id, method=method, params=params or {}))
            try:
                await conn.ws.send_str(frame)
            except ConnectionError as e:
                raise PeerDisconnectedError(f"Failed to send request {request_id}: {e}") from e
            return await future
        finally:
            timer.cancel()
            self._pending.pop(request_id, None)

    async def fetch(
        self,
        url: str,
        options: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Perform an HTTP request from inside the browser session.

        Args:
            url: Absolute URL.
            options: Options handed to the browser's ``fetch``.
            timeout: Seconds to wait for the response.
        """
        return await self.call(RELAY_FETCH_METHOD, {"url": url, "options": options or {}}, timeout)

    async def wait_for_connection(self, timeout: float | None = None) -> None:
        """
        Wait until a browser is attached.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever.

        Raises:
            WaitTimeoutError: If no browser connected in time.
        """
        try:
            async with asyncio.timeout(timeout):
                while not self.is_connected:
                    await self._connected.wait()
                    if not self.is_connected:
                        # Slot still populated by a socket that is closing
                        await asyncio.sleep(RELAY_WAIT_POLL_INTERVAL)
        except TimeoutError as e:
            raise WaitTimeoutError(f"No browser connected within {timeout:.1f}s") from e

    def _expire(self, request_id: int, timeout: float) -> None:
        """Timer callback: fail a request that got no answer."""
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            return
        logger.warning(f"[Relay] Request {request_id} ({pending.method}) timed out after {timeout:.1f}s")
        pending.future.set_exception(RequestTimeoutError(request_id, timeout))

    def _settle(self, response: RpcResponse) -> None:
        """Complete the pending request a response belongs to."""
        pending = self._pending.pop(response.id, None)
        if pending is None:
            logger.debug(f"[Relay] Ignoring response for unknown request {response.id}")
            return

        pending.timer.cancel()
        if pending.future.done():
            return

        if response.failed:
            pending.future.set_exception(RemoteCallError(response.id, response.error_message))
        else:
            pending.future.set_result(response.result)

    # =========================================================================
    # Connection Handling
    # =========================================================================

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        """aiohttp handler for one browser socket."""
        ws = web.WebSocketResponse(max_msg_size=RELAY_MAX_MESSAGE_SIZE)
        await ws.prepare(request)

        conn = self._adopt(ws, request.remote)

        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_text(conn, msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    await self._handle_text(conn, msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"[Relay] Connection {conn.connection_id} error: {ws.exception()}")
        finally:
            logger.info(f"[Relay] Browser {conn.connection_id} disconnected (code: {ws.close_code})")
            self._teardown(conn, "Browser disconnected")

        return ws

    def _adopt(self, ws: web.WebSocketResponse, remote: str | None = None) -> BrowserConnection:
        """Make a freshly accepted socket the sole browser connection."""
        previous = self._connection
        if previous is not None:
            logger.info(f"[Relay] Closing superseded connection {previous.connection_id}")
            self._terminate(previous, "Superseded by a new browser connection")

        self._connection_count += 1
        conn = BrowserConnection(ws=ws, connection_id=self._connection_count, remote=remote)
        self._connection = conn
        conn.heartbeat_task = asyncio.create_task(self._heartbeat(conn))
        self._connected.set()

        logger.info(f"[Relay] Browser {conn.connection_id} connected ({remote or 'unknown'})")
        return conn

    async def _handle_text(self, conn: BrowserConnection, data: str | bytes) -> None:
        """Dispatch one inbound frame."""
        try:
            message = parse_inbound(data)
        except MalformedFrameError as e:
            logger.warning(f"[Relay] Dropping frame: {e}")
            return

        if isinstance(message, RpcResponse):
            self._settle(message)

        elif isinstance(message, PongMessage):
            conn.alive = True
            conn.last_pong_ms = get_timestamp_ms()
            if conn.pong_timer is not None:
                conn.pong_timer.cancel()
                conn.pong_timer = None
            logger.debug(f"[Relay] Pong from browser {conn.connection_id}")

        elif isinstance(message, PingMessage):
            try:
                await conn.ws.send_str(encode_message(PongMessage(timestamp=get_timestamp_ms())))
            except ConnectionError as e:
                logger.warning(f"[Relay] Failed to answer ping: {e}")

        elif isinstance(message, ReadyMessage):
            conn.domain = message.domain
            logger.info(f"[Relay] Browser proxy ready (domain: {message.domain or 'unknown'})")

    async def _heartbeat(self, conn: BrowserConnection) -> None:
        """Ping the browser periodically and arm the pong deadline."""
        loop = asyncio.get_running_loop()

        while True:
            await asyncio.sleep(self._ping_interval)

            if not conn.is_open:
                return

            # Armed before the send: a pong handled while send_str is suspended must win
            if conn.pong_timer is not None:
                conn.pong_timer.cancel()
            conn.alive = False
            conn.pong_timer = loop.call_later(self._pong_timeout, self._on_pong_timeout, conn)

            try:
                await conn.ws.send_str(encode_message(PingMessage(timestamp=get_timestamp_ms())))
            except ConnectionError as e:
                logger.warning(f"[Relay] Failed to send ping: {e}")

    def _on_pong_timeout(self, conn: BrowserConnection) -> None:
        conn.pong_timer = None
        if not conn.alive:
            logger.warning(f"[Relay] No pong within {self._pong_timeout:.1f}s, dropping browser {conn.connection_id}")
            self._terminate(conn, "Heartbeat timed out")

    def _terminate(self, conn: BrowserConnection, reason: str) -> None:
        """Tear a connection down now and close its socket in the background."""
        self._teardown(conn, reason)
        task = asyncio.ensure_future(self._close_socket(conn))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _close_socket(self, conn: BrowserConnection) -> None:
        if conn.ws.closed:
            return
        try:
            await asyncio.wait_for(
                conn.ws.close(code=aiohttp.WSCloseCode.GOING_AWAY),
                timeout=RELAY_CLOSE_TIMEOUT,
            )
        except (TimeoutError, ConnectionError) as e:
            logger.debug(f"[Relay] Close of browser {conn.connection_id} did not complete: {e!r}")

    def _teardown(self, conn: BrowserConnection, reason: str) -> None:
        """
        Detach a connection and fail everything waiting on it.

        No-op unless ``conn`` is the current connection, so the close path
        of a superseded socket cannot clobber its replacement.
        """
        if self._connection is not conn:
            return

        self._connection = None
        self._connected.clear()

        if conn.heartbeat_task is not None:
            conn.heartbeat_task.cancel()
            conn.heartbeat_task = None
        if conn.pong_timer is not None:
            conn.pong_timer.cancel()
            conn.pong_timer = None

        pending = list(self._pending.items())
        self._pending.clear()

        for request_id, request in pending:
            request.timer.cancel()
            if not request.future.done():
                request.future.set_exception(PeerDisconnectedError(f"{reason} (request {request_id})"))

        if pending:
            logger.warning(f"[Relay] {reason}: rejected {len(pending)} pending request(s)")
        else:
            logger.info(f"[Relay] {reason}")

    async def __aenter__(self) -> "BrowserRelay":
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()
