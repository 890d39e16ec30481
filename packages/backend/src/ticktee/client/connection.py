"""Client connection manager — one self-healing WebSocket per client session.

State machine:

    disconnected → connecting → connected → disconnected → connecting → …

connect() opens the socket in a background task. Whenever that socket
goes away (clean close, error, or a failed open) on_close() runs: the
state drops to disconnected and a reconnect is scheduled after a fixed
delay. Only one reconnect timer exists at a time; scheduling again
replaces the pending one.

While connected a keep-alive task sends {"type": "ping"} every
ping_interval seconds. Pongs are dispatched like any other frame; a
missing pong is not treated as a failure.

Inbound frames are JSON objects with a "type". Handlers registered for
that type run first, in registration order, then handlers registered
for ALL_EVENTS. Handler exceptions are logged and do not stop the others.

Usage:

    manager = ConnectionManager("ws://localhost:8000/ws?token=...")
    remove = manager.add_message_handler("orderCreated", on_order)
    manager.connect()
    ...
    await manager.close()
"""

import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

import structlog
from websockets.asyncio.client import connect as ws_connect

from ticktee.config import settings
from ticktee.events.types import ALL_EVENTS, InboundEvent

logger = structlog.get_logger()

MessageHandler = Callable[[dict], None]
VisibilityListener = Callable[[bool], None]


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class Socket(Protocol):
    """What the manager needs from an open connection.

    websockets' ClientConnection fits; tests use an in-memory fake.
    """

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self): ...


Connector = Callable[[str], Awaitable[Socket]]


async def default_connector(url: str) -> Socket:
    return await ws_connect(url)


class PageVisibility:
    """Visible/hidden flag of the surface hosting the connection.

    A GUI shell or terminal app flips it with set_visible(); listeners are
    called only when the value actually changes.
    """

    def __init__(self, visible: bool = True):
        self.visible = visible
        self._listeners: list[VisibilityListener] = []

    def add_listener(self, listener: VisibilityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: VisibilityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_visible(self, visible: bool) -> None:
        if visible == self.visible:
            return
        self.visible = visible
        for listener in list(self._listeners):
            listener(visible)


class ConnectionManager:
    """Keeps one logical connection to the gateway alive."""

    def __init__(
        self,
        url: str,
        connector: Optional[Connector] = None,
        reconnect_delay: Optional[float] = None,
        ping_interval: Optional[float] = None,
        visibility: Optional[PageVisibility] = None,
    ):
        self.url = url
        self.reconnect_delay = (
            settings.client_reconnect_delay_seconds
            if reconnect_delay is None
            else reconnect_delay
        )
        self.ping_interval = (
            settings.client_ping_interval_seconds
            if ping_interval is None
            else ping_interval
        )
        self.status = ConnectionStatus.DISCONNECTED
        self.error: Optional[str] = None

        self._connector = connector or default_connector
        self._socket: Optional[Socket] = None
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._run_task: Optional[asyncio.Task] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

        self._visibility = visibility
        if visibility is not None:
            visibility.add_listener(self._on_visibility_change)

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    # ─── Connection lifecycle ────────────────────────────

    def connect(self) -> None:
        """Start connecting unless already connected or connecting.

        Must be called from inside a running event loop.
        """
        if self._closed or self.status != ConnectionStatus.DISCONNECTED:
            return
        self._cancel_reconnect()
        self.status = ConnectionStatus.CONNECTING
        logger.debug("client.connecting", url=self.url)
        self._run_task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            socket = await self._connector(self.url)
        except Exception as e:
            self.error = str(e) or type(e).__name__
            logger.warning("client.connect_failed", url=self.url, error=self.error)
            self.on_close()
            return

        if self._closed:
            await socket.close()
            return

        self._socket = socket
        self.status = ConnectionStatus.CONNECTED
        self.error = None
        self._keepalive_task = asyncio.get_running_loop().create_task(self._keepalive())
        logger.info("client.connected", url=self.url)

        try:
            async for raw in socket:
                self._dispatch(raw)
        except Exception as e:
            self.error = str(e) or type(e).__name__
            logger.warning("client.connection_error", error=self.error)
        finally:
            if self._socket is socket:
                self._socket = None
            self.on_close()

    def on_close(self) -> None:
        """The socket is gone: go to disconnected and schedule a reconnect.

        Safe to call any number of times; at most one reconnect is pending.
        """
        self.status = ConnectionStatus.DISCONNECTED
        self._stop_keepalive()
        if self._closed:
            return
        self._cancel_reconnect()
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            self.reconnect_delay, self._reconnect
        )
        logger.info("client.disconnected", reconnect_in=self.reconnect_delay)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_visibility_change(self, visible: bool) -> None:
        # Back from sleep or a hidden tab: don't wait for the timer.
        if visible and not self.is_connected:
            self.connect()

    # ─── Keep-alive ──────────────────────────────────────

    async def _keepalive(self) -> None:
        while self.is_connected:
            await asyncio.sleep(self.ping_interval)
            if not self.is_connected:
                return
            await self.send_message({"type": InboundEvent.PING.value})

    def _stop_keepalive(self) -> None:
        task = self._keepalive_task
        self._keepalive_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    # ─── Messages ────────────────────────────────────────

    async def send_message(self, payload: dict[str, Any]) -> bool:
        """Send one frame. False (and a connect attempt) when not connected.

        Nothing is queued: a frame that can't be sent now is dropped.
        """
        socket = self._socket
        if not self.is_connected or socket is None:
            self.connect()
            return False
        try:
            await socket.send(json.dumps(payload, default=str))
            return True
        except Exception as e:
            logger.warning("client.send_failed", error=str(e))
            return False

    def add_message_handler(
        self, event_type: str, handler: MessageHandler
    ) -> Callable[[], None]:
        """Register a handler for one frame type, or ALL_EVENTS for every frame.

        Returns a function that removes the handler again.
        """
        self._handlers.setdefault(event_type, []).append(handler)

        def remove() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return remove

    def _dispatch(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("client.malformed_frame")
            return
        if not isinstance(message, dict):
            logger.warning("client.malformed_frame")
            return

        event_type = message.get("type")
        handlers: list[MessageHandler] = []
        if isinstance(event_type, str) and event_type != ALL_EVENTS:
            handlers.extend(self._handlers.get(event_type, []))
        handlers.extend(self._handlers.get(ALL_EVENTS, []))

        for handler in handlers:
            try:
                handler(message)
            except Exception:
                logger.exception("client.handler_failed", event_type=event_type)

    # ─── Teardown ────────────────────────────────────────

    async def close(self) -> None:
        """Stop for good: no timers, tasks or listeners survive this."""
        self._closed = True
        self._cancel_reconnect()

        keepalive = self._keepalive_task
        self._stop_keepalive()
        if self._visibility is not None:
            self._visibility.remove_listener(self._on_visibility_change)

        socket = self._socket
        self._socket = None
        if socket is not None:
            try:
                await socket.close()
            except Exception as e:
                logger.warning("client.close_failed", error=str(e))

        for task in (keepalive, self._run_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._run_task = None
        self.status = ConnectionStatus.DISCONNECTED
        logger.info("client.closed", url=self.url)
