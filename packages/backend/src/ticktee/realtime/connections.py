"""Connection registry — the set of open WebSocket connections.

The registry is created once per app (app.state.gateway.registry) and is
only touched from the event loop, so it needs no locking. Connections
are duck-typed: anything with is_open, send_text() and close() can be
registered, which is how tests plug in fakes.
"""

import uuid
from typing import Iterator, Optional, Protocol

from starlette.websockets import WebSocket, WebSocketState


class Connection(Protocol):
    account_id: Optional[int]

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class WebSocketConnection:
    """Adapter from a Starlette WebSocket to the Connection protocol."""

    def __init__(self, websocket: WebSocket, account_id: Optional[int] = None):
        self.websocket = websocket
        self.account_id = account_id

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def close(self, code: int = 1000) -> None:
        if self.is_open:
            await self.websocket.close(code=code)


class ConnectionRegistry:
    """Open connections keyed by an opaque ID assigned on add()."""

    def __init__(self):
        self._connections: dict[str, Connection] = {}

    def add(self, connection: Connection) -> str:
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = connection
        return connection_id

    def remove(self, connection_id: str) -> Optional[Connection]:
        return self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def items(self) -> list[tuple[str, Connection]]:
        """Snapshot, safe to iterate while connections come and go."""
        return list(self._connections.items())

    def clear(self) -> None:
        self._connections.clear()

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._connections))

    def __len__(self) -> int:
        return len(self._connections)
