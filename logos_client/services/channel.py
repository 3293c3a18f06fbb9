"""
WebSocket realtime channel.

This module implements the ``Channel`` capability on top of ``websockets``.
Messages travel as one JSON text frame each, ``{"event": name, "data": {...}}``.
A supervisor task owns the socket: it opens it, pumps inbound frames to the
registered handlers and, when allowed, retries with a fixed delay after a
failed attempt or an unexpected drop.
"""

import asyncio
import inspect
import json
from typing import Any, Callable, Dict, List, Optional, Union

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
    InvalidStatus,
    WebSocketException,
)

from logos_client.config.logging_config import get_logger
from logos_client.domain.capabilities import Channel, ChannelHandler
from logos_client.utils.async_helpers import TaskManager, run_with_timeout, wait_for_event
from logos_client.utils.error_handling import AppError, AuthError, ChannelError

logger = get_logger(__name__)

# Lifecycle names dispatched by the channel itself
CONNECT = "connect"
DISCONNECT = "disconnect"
CONNECT_ERROR = "connect_error"

AUTH_REJECTED_STATUSES = (401, 403)


def to_websocket_url(url: str) -> str:
    """Map an http(s) server URL to its ws(s) equivalent."""
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


class WebSocketChannel(Channel):
    """
    Realtime channel over a single WebSocket connection.

    Handles:
    - Opening the socket with optional bearer authentication
    - JSON framing of named messages
    - Dispatching inbound messages and lifecycle edges to handlers
    - Bounded reconnection with a fixed delay
    """

    def __init__(
        self,
        server_url: str,
        api_key: Optional[str] = None,
        auto_reconnect: bool = True,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        open_timeout: float = 10.0,
        close_timeout: float = 5.0,
        connector: Callable[..., Any] = ws_connect,
    ):
        """
        Initialize the channel.

        Args:
            server_url: Backend URL (http, https, ws or wss)
            api_key: Optional API key sent as a bearer token
            auto_reconnect: Whether to retry after failures and drops
            reconnect_attempts: Retries before giving up
            reconnect_delay: Fixed delay between retries, in seconds
            open_timeout: Timeout for a single connection attempt
            close_timeout: How long ``disconnect`` waits for the socket to close
            connector: Callable opening the socket, ``websockets`` by default
        """
        self.url = to_websocket_url(server_url)
        self.api_key = api_key
        self.auto_reconnect = auto_reconnect
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self._connector = connector

        self._handlers: Dict[str, List[ChannelHandler]] = {}
        self._ws = None
        self._supervisor: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self.task_manager = TaskManager("websocket_channel")

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def connecting(self) -> bool:
        return not self.connected and self._supervisor is not None and not self._supervisor.done()

    def on(self, name: str, handler: ChannelHandler) -> None:
        """
        Register a handler for a named message or lifecycle edge.

        Args:
            name: Message name
            handler: Sync or async callable
        """
        self._handlers.setdefault(name, []).append(handler)

    async def connect(self) -> bool:
        """
        Start the supervisor and wait for the first connection attempt.

        Returns:
            bool: True if the first attempt succeeded
        """
        if self.connected:
            logger.warning("Channel already connected")
            return True

        if self.connecting:
            logger.warning("Channel connection already in progress")
            return False

        self._stopping.clear()
        first_attempt = asyncio.get_running_loop().create_future()
        self._supervisor = self.task_manager.create_task(
            self._run(first_attempt),
            "websocket_supervisor"
        )
        return await first_attempt

    async def disconnect(self) -> None:
        """Close the socket and stop any reconnection."""
        self._stopping.set()
        supervisor = self._supervisor
        ws = self._ws

        if ws is not None:
            try:
                await ws.close()
                logger.info("Disconnected from server")
            except Exception as e:
                logger.error(f"Error closing WebSocket connection: {e}")

        if supervisor is None or supervisor.done() or supervisor is asyncio.current_task():
            return

        if ws is not None:
            # Let the supervisor observe the close and report the disconnect
            await asyncio.wait({supervisor}, timeout=self.close_timeout)

        if not supervisor.done():
            supervisor.cancel()
            try:
                await supervisor
            except asyncio.CancelledError:
                pass

    async def emit(self, name: str, payload: Dict[str, Any]) -> bool:
        """
        Send a named message.

        Args:
            name: Message name
            payload: JSON-serializable payload

        Returns:
            bool: True if the frame was written
        """
        ws = self._ws
        if ws is None:
            logger.warning(f"Cannot send {name}: not connected")
            return False

        try:
            await ws.send(json.dumps({"event": name, "data": payload}))
        except (ConnectionClosed, WebSocketException) as e:
            logger.error(f"Error sending {name}: {e}")
            return False

        logger.debug(f"Sent event: {name}")
        return True

    async def _run(self, first_attempt: asyncio.Future) -> None:
        """Supervisor loop: connect, receive, and retry while allowed."""
        attempt = 0
        try:
            while not self._stopping.is_set():
                if attempt:
                    logger.info(f"Reconnection attempt {attempt}/{self.reconnect_attempts}")

                try:
                    ws = await run_with_timeout(
                        self._open(),
                        self.open_timeout,
                        f"connecting to {self.url}"
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    error = self._to_error(e)
                    logger.warning(f"Connection attempt failed: {error}")
                    await self._dispatch(CONNECT_ERROR, error)
                    self._resolve(first_attempt, False)

                    if not self._may_retry(error, attempt):
                        logger.error("Giving up on connecting to the server")
                        break
                    attempt += 1
                    if await wait_for_event(self._stopping, self.reconnect_delay):
                        break
                    continue

                attempt = 0
                self._ws = ws
                logger.info(f"Connected to {self.url}")
                await self._dispatch(CONNECT)
                self._resolve(first_attempt, True)

                await self._receive(ws)

                self._ws = None
                await self._dispatch(DISCONNECT)

                if self._stopping.is_set() or not self._may_retry(None, attempt):
                    break
                attempt += 1
                if await wait_for_event(self._stopping, self.reconnect_delay):
                    break
        finally:
            self._ws = None
            self._resolve(first_attempt, False)

    async def _open(self):
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        return await self._connector(
            self.url,
            additional_headers=headers or None,
            max_size=None,
            ping_interval=30,
            ping_timeout=10,
        )

    async def _receive(self, ws) -> None:
        """Pump inbound frames until the socket closes."""
        try:
            async for message in ws:
                await self._process_message(message)
        except ConnectionClosedOK as e:
            logger.info(f"WebSocket connection closed normally: {e}")
        except ConnectionClosedError as e:
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")

    async def _process_message(self, message: Union[str, bytes]) -> None:
        """
        Decode one frame and dispatch it by name.

        Args:
            message: Raw frame from the socket
        """
        try:
            if isinstance(message, bytes):
                frame = json.loads(message.decode("utf-8"))
            else:
                frame = json.loads(message)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Error decoding message: {e}")
            return

        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.warning("Dropping frame without an event name")
            return

        name = frame["event"]
        logger.debug(f"Received event: {name}")

        if name not in self._handlers:
            logger.debug(f"No handler for event: {name}")
            return

        await self._dispatch(name, frame.get("data"))

    async def _dispatch(self, name: str, *args: Any) -> None:
        for handler in list(self._handlers.get(name, [])):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in channel handler for {name}: {e}", exc_info=True)

    def _may_retry(self, error: Optional[AppError], attempt: int) -> bool:
        if isinstance(error, AuthError):
            return False
        return self.auto_reconnect and attempt < self.reconnect_attempts

    @staticmethod
    def _to_error(exception: Exception) -> AppError:
        """Classify a failed connection attempt."""
        if isinstance(exception, InvalidStatus):
            status_code = exception.response.status_code
            if status_code in AUTH_REJECTED_STATUSES:
                return AuthError(
                    f"Server rejected credentials ({status_code})",
                    details={"status_code": status_code},
                    cause=exception
                )
            return ChannelError(
                f"Server rejected connection ({status_code})",
                details={"status_code": status_code},
                cause=exception
            )

        if isinstance(exception, asyncio.TimeoutError):
            return ChannelError("Connection attempt timed out", cause=exception)

        return ChannelError("Connection failed", cause=exception)

    @staticmethod
    def _resolve(future: asyncio.Future, value: bool) -> None:
        if not future.done():
            future.set_result(value)
