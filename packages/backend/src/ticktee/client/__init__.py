"""Realtime client — the consumer side of the /ws gateway."""

from ticktee.client.connection import ConnectionManager, ConnectionStatus, PageVisibility

__all__ = ["ConnectionManager", "ConnectionStatus", "PageVisibility"]
