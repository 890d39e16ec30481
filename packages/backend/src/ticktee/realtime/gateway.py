"""Realtime gateway — fan-out broadcasts and answer client frames.

publish() sends `{"type": ..., "data": ...}` to every open connection.
Connections that are closing or closed are skipped, never queued. The
sends run concurrently and each one is isolated: a dead socket is logged
and the others still get the frame. A send that does not finish within
the send timeout counts as failed and its connection is dropped, so a
peer that stops reading never holds up the publisher.

handle_inbound() parses one client frame and dispatches through a table
keyed by InboundEvent. The table must cover the whole enum; the
constructor refuses to build a gateway with a gap in it.

Reply frames go to the requesting connection only. Malformed frames
(not JSON, not an object) are logged and dropped without a reply.
"""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticktee.config import settings
from ticktee.events.types import InboundEvent, OutboundEvent
from ticktee.realtime.connections import Connection, ConnectionRegistry
from ticktee.schemas.message import MessageRead
from ticktee.schemas.order import OrderRead
from ticktee.schemas.product import ProductRead
from ticktee.services.catalog_service import CatalogService
from ticktee.services.message_service import MessageService
from ticktee.services.order_service import OrderService

logger = structlog.get_logger()

InboundHandler = Callable[[str, Connection, dict], Awaitable[None]]


def encode_frame(frame: dict[str, Any]) -> str:
    return json.dumps(frame, default=str)


class Gateway:
    """Owns the connection registry and the inbound dispatch table."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: async_sessionmaker[AsyncSession],
        send_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.send_timeout = (
            settings.ws_send_timeout_seconds if send_timeout is None else send_timeout
        )
        self._handlers: dict[InboundEvent, InboundHandler] = {
            InboundEvent.GET_PRODUCTS: self._get_products,
            InboundEvent.GET_ORDERS: self._get_orders,
            InboundEvent.GET_MESSAGES: self._get_messages,
            InboundEvent.GET_CONVERSATION: self._get_conversation,
            InboundEvent.MESSAGE_SENT: self._message_sent,
            InboundEvent.PING: self._ping,
        }
        missing = set(InboundEvent) - set(self._handlers)
        if missing:
            raise RuntimeError(
                f"No gateway handler for: {sorted(e.value for e in missing)}"
            )

    # ─── Lifecycle ───────────────────────────────────────

    async def connect(self, connection: Connection) -> str:
        """Register a freshly accepted connection and greet it."""
        connection_id = self.registry.add(connection)
        logger.info(
            "gateway.connected",
            connection_id=connection_id,
            account_id=connection.account_id,
            open_connections=len(self.registry),
        )
        await self.send(
            connection_id,
            {
                "type": OutboundEvent.CONNECTION.value,
                "message": "Connected to server",
                "clientId": connection_id,
            },
        )
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.registry.remove(connection_id) is not None:
            logger.info(
                "gateway.disconnected",
                connection_id=connection_id,
                open_connections=len(self.registry),
            )

    async def close_all(self) -> None:
        """Shutdown hook: close every socket and empty the registry."""
        for connection_id, connection in self.registry.items():
            try:
                await connection.close(code=1001)
            except Exception as e:
                logger.warning(
                    "gateway.close_failed", connection_id=connection_id, error=str(e)
                )
        self.registry.clear()

    # ─── Outbound ────────────────────────────────────────

    async def publish(self, event_type: OutboundEvent, payload: Any) -> int:
        """Broadcast to every open connection. Returns how many sends succeeded."""
        text = encode_frame({"type": event_type.value, "data": payload})
        targets = [
            (connection_id, connection)
            for connection_id, connection in self.registry.items()
            if connection.is_open
        ]
        results = await asyncio.gather(
            *(self._send_text(cid, connection, text) for cid, connection in targets)
        )
        delivered = sum(results)
        logger.debug(
            "gateway.published",
            event_type=event_type.value,
            attempted=len(targets),
            delivered=delivered,
        )
        return delivered

    async def send(self, connection_id: str, frame: dict[str, Any]) -> bool:
        """Send one frame to one connection. False if it is gone or the send failed."""
        connection = self.registry.get(connection_id)
        if connection is None or not connection.is_open:
            return False
        return await self._send_text(connection_id, connection, encode_frame(frame))

    async def _send_text(
        self, connection_id: str, connection: Connection, text: str
    ) -> bool:
        try:
            await asyncio.wait_for(connection.send_text(text), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                "gateway.send_timeout",
                connection_id=connection_id,
                timeout=self.send_timeout,
            )
            # Stalled peer: stop sending to it. The endpoint's receive loop
            # ends on its own once the socket finally goes away.
            self.disconnect(connection_id)
            return False
        except Exception as e:
            logger.warning(
                "gateway.send_failed", connection_id=connection_id, error=str(e)
            )
            return False

    async def _error(self, connection_id: str, message: str) -> None:
        await self.send(
            connection_id, {"type": OutboundEvent.ERROR.value, "message": message}
        )

    # ─── Inbound ─────────────────────────────────────────

    async def handle_inbound(self, connection_id: str, raw: str) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("gateway.malformed_frame", connection_id=connection_id)
            return
        if not isinstance(message, dict):
            logger.warning("gateway.malformed_frame", connection_id=connection_id)
            return

        connection = self.registry.get(connection_id)
        if connection is None:
            return

        try:
            event = InboundEvent(message.get("type"))
        except (TypeError, ValueError):
            await self._error(connection_id, "Unknown message type")
            return

        try:
            await self._handlers[event](connection_id, connection, message)
        except Exception:
            logger.exception(
                "gateway.handler_failed",
                connection_id=connection_id,
                event_type=event.value,
            )
            await self._error(connection_id, "Failed to process message")

    async def _get_products(
        self, connection_id: str, connection: Connection, message: dict
    ) -> None:
        async with self.session_factory() as db:
            products = await CatalogService(db).list_products()
            data = [ProductRead.model_validate(p).model_dump(mode="json") for p in products]
        await self.send(connection_id, {"type": OutboundEvent.PRODUCTS.value, "data": data})

    async def _get_orders(
        self, connection_id: str, connection: Connection, message: dict
    ) -> None:
        account_id = await self._require_account(connection_id, connection)
        if account_id is None:
            return
        async with self.session_factory() as db:
            orders = await OrderService(db).list_orders(account_id)
            data = [OrderRead.model_validate(o).model_dump(mode="json") for o in orders]
        await self.send(connection_id, {"type": OutboundEvent.ORDERS.value, "data": data})

    async def _get_messages(
        self, connection_id: str, connection: Connection, message: dict
    ) -> None:
        account_id = await self._require_account(connection_id, connection)
        if account_id is None:
            return
        async with self.session_factory() as db:
            messages = await MessageService(db).list_for_account(account_id)
            data = [MessageRead.model_validate(m).model_dump(mode="json") for m in messages]
        await self.send(connection_id, {"type": OutboundEvent.MESSAGES.value, "data": data})

    async def _get_conversation(
        self, connection_id: str, connection: Connection, message: dict
    ) -> None:
        account_id = await self._require_account(connection_id, connection)
        if account_id is None:
            return
        other = message.get("otherUserId")
        if isinstance(other, bool) or not isinstance(other, int):
            await self._error(connection_id, "otherUserId is required")
            return
        async with self.session_factory() as db:
            messages = await MessageService(db).conversation(account_id, other)
            data = [MessageRead.model_validate(m).model_dump(mode="json") for m in messages]
        await self.send(
            connection_id, {"type": OutboundEvent.CONVERSATION.value, "data": data}
        )

    async def _message_sent(
        self, connection_id: str, connection: Connection, message: dict
    ) -> None:
        # Client-side nudge after a POST /messages: echo to everyone, stamped
        # with the connection's own identity.
        account_id = await self._require_account(connection_id, connection)
        if account_id is None:
            return
        data = message.get("data")
        if not data:
            return
        if not isinstance(data, dict):
            await self._error(connection_id, "data must be an object")
            return
        claimed = data.get("from_account_id")
        if claimed is not None and claimed != account_id:
            logger.warning(
                "gateway.sender_mismatch",
                connection_id=connection_id,
                account_id=account_id,
                claimed=claimed,
            )
            await self._error(connection_id, "Cannot send messages as another user")
            return
        await self.publish(
            OutboundEvent.NEW_MESSAGE, {**data, "from_account_id": account_id}
        )

    async def _ping(
        self, connection_id: str, connection: Connection, message: dict
    ) -> None:
        await self.send(
            connection_id,
            {"type": OutboundEvent.PONG.value, "timestamp": int(time.time() * 1000)},
        )

    async def _require_account(
        self, connection_id: str, connection: Connection
    ) -> Optional[int]:
        if connection.account_id is None:
            await self._error(connection_id, "Authentication required")
        return connection.account_id
