"""Realtime event types.

Two closed sets: frames a client may send (InboundEvent) and frames the
server emits (OutboundEvent). Both are str enums, so a member compares
equal to the raw tag and serializes as-is into JSON.
"""

from enum import Enum


class InboundEvent(str, Enum):
    """Frames accepted on the WebSocket."""

    GET_PRODUCTS = "getProducts"
    GET_ORDERS = "getOrders"
    GET_MESSAGES = "getMessages"
    GET_CONVERSATION = "getConversation"
    MESSAGE_SENT = "messageSent"
    PING = "ping"


class OutboundEvent(str, Enum):
    """Frames pushed to clients."""

    # Replies to a single connection
    CONNECTION = "connection"
    PRODUCTS = "products"
    ORDERS = "orders"
    MESSAGES = "messages"
    CONVERSATION = "conversation"
    PONG = "pong"
    ERROR = "error"

    # Broadcasts
    PRODUCT_CREATED = "productCreated"
    ORDER_CREATED = "orderCreated"
    MESSAGE_CREATED = "messageCreated"
    NEW_MESSAGE = "newMessage"


# Wildcard handler key used by the client connection manager.
ALL_EVENTS = "all"
