"""Realtime gateway tests with in-memory connections.

- publish reaches every open connection exactly once
- closed, disconnected, failing and stalled connections never break a broadcast
- inbound frames are answered on the requesting connection only
"""

import asyncio
import json

import pytest

from ticktee.events.bus import EventBus
from ticktee.events.types import InboundEvent, OutboundEvent
from ticktee.realtime.connections import ConnectionRegistry
from ticktee.realtime.gateway import Gateway


@pytest.fixture()
def gw(session_factory):
    return Gateway(ConnectionRegistry(), session_factory)


# ═══════════════════════════════════════════════════════════
# Fan-out
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_publish_reaches_every_open_connection(gw, make_connection):
    conns = [make_connection() for _ in range(3)]
    for conn in conns:
        await gw.connect(conn)

    sent = await gw.publish(OutboundEvent.PRODUCT_CREATED, {"id": 7, "name": "Tee"})

    assert sent == 3
    for conn in conns:
        assert conn.of_type("productCreated") == [
            {"type": "productCreated", "data": {"id": 7, "name": "Tee"}}
        ]


@pytest.mark.asyncio
async def test_disconnected_connection_gets_nothing(gw, make_connection):
    stays = make_connection()
    leaves = make_connection()
    await gw.connect(stays)
    leaving_id = await gw.connect(leaves)
    gw.disconnect(leaving_id)

    await gw.publish(OutboundEvent.ORDER_CREATED, {"id": 1})

    assert len(stays.of_type("orderCreated")) == 1
    assert leaves.of_type("orderCreated") == []
    assert leaving_id not in gw.registry


@pytest.mark.asyncio
async def test_closing_connection_is_skipped(gw, make_connection):
    ok = make_connection()
    closing = make_connection()
    await gw.connect(ok)
    await gw.connect(closing)
    closing.open = False

    sent = await gw.publish(OutboundEvent.MESSAGE_CREATED, {"id": 3})

    assert sent == 1
    assert closing.of_type("messageCreated") == []


@pytest.mark.asyncio
async def test_failing_send_does_not_abort_fanout(gw, make_connection):
    before = make_connection()
    broken = make_connection()
    after = make_connection()
    await gw.connect(before)
    await gw.connect(broken)
    await gw.connect(after)
    broken.fail = True

    sent = await gw.publish(OutboundEvent.PRODUCT_CREATED, {"id": 9})

    assert sent == 2
    assert len(before.of_type("productCreated")) == 1
    assert len(after.of_type("productCreated")) == 1


class StalledConnection:
    """A peer that stopped reading: sends never complete."""

    account_id = None
    is_open = True

    async def send_text(self, data: str) -> None:
        await asyncio.Event().wait()

    async def close(self, code: int = 1000) -> None:
        self.is_open = False


@pytest.mark.asyncio
async def test_stalled_send_does_not_block_publisher(session_factory, make_connection):
    gw = Gateway(ConnectionRegistry(), session_factory, send_timeout=0.05)
    healthy = make_connection()
    await gw.connect(healthy)
    stalled_id = gw.registry.add(StalledConnection())

    sent = await asyncio.wait_for(
        gw.publish(OutboundEvent.ORDER_CREATED, {"id": 4}), timeout=2
    )

    assert sent == 1
    assert healthy.of_type("orderCreated") == [
        {"type": "orderCreated", "data": {"id": 4}}
    ]
    assert stalled_id not in gw.registry


@pytest.mark.asyncio
async def test_connect_greets_with_client_id(gw, make_connection):
    conn = make_connection()
    connection_id = await gw.connect(conn)

    assert conn.frames[0] == {
        "type": "connection",
        "message": "Connected to server",
        "clientId": connection_id,
    }


@pytest.mark.asyncio
async def test_close_all(gw, make_connection):
    conns = [make_connection() for _ in range(2)]
    for conn in conns:
        await gw.connect(conn)

    await gw.close_all()

    assert len(gw.registry) == 0
    assert [c.closed_with for c in conns] == [1001, 1001]


@pytest.mark.asyncio
async def test_bus_drives_gateway(gw, make_connection):
    bus = EventBus()
    unsubscribe = bus.subscribe(gw.publish)
    conn = make_connection()
    await gw.connect(conn)

    await bus.publish(OutboundEvent.ORDER_CREATED, {"id": 5})
    unsubscribe()
    await bus.publish(OutboundEvent.ORDER_CREATED, {"id": 6})

    assert [f["data"]["id"] for f in conn.of_type("orderCreated")] == [5]


@pytest.mark.asyncio
async def test_bus_isolates_failing_subscriber():
    bus = EventBus()
    seen = []

    async def broken(event_type, payload):
        raise RuntimeError("boom")

    async def recorder(event_type, payload):
        seen.append((event_type, payload))

    bus.subscribe(broken)
    bus.subscribe(recorder)
    await bus.publish(OutboundEvent.PRODUCT_CREATED, {"id": 1})

    assert seen == [(OutboundEvent.PRODUCT_CREATED, {"id": 1})]


# ═══════════════════════════════════════════════════════════
# Inbound frames
# ═══════════════════════════════════════════════════════════


def test_handler_table_covers_every_inbound_event(gw):
    assert set(gw._handlers) == set(InboundEvent)


@pytest.mark.asyncio
async def test_ping_replies_pong_to_sender_only(gw, make_connection):
    asker = make_connection()
    bystander = make_connection()
    asker_id = await gw.connect(asker)
    await gw.connect(bystander)

    await gw.handle_inbound(asker_id, json.dumps({"type": "ping"}))

    pong = asker.of_type("pong")
    assert len(pong) == 1
    assert isinstance(pong[0]["timestamp"], int)
    assert bystander.of_type("pong") == []


@pytest.mark.asyncio
async def test_get_products_replies_catalog(gw, make_connection, create_product):
    await create_product(name="Ticket A")
    await create_product(name="Tee B", type="tshirt", sizes="S,M")
    conn = make_connection()
    conn_id = await gw.connect(conn)

    await gw.handle_inbound(conn_id, '{"type": "getProducts"}')

    (reply,) = conn.of_type("products")
    assert [p["name"] for p in reply["data"]] == ["Ticket A", "Tee B"]


@pytest.mark.asyncio
async def test_unknown_type_gets_error(gw, make_connection):
    conn = make_connection()
    conn_id = await gw.connect(conn)

    await gw.handle_inbound(conn_id, '{"type": "launchRocket"}')

    assert conn.of_type("error") == [{"type": "error", "message": "Unknown message type"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"ping"', ""])
async def test_malformed_frame_dropped_silently(gw, make_connection, raw):
    conn = make_connection()
    conn_id = await gw.connect(conn)
    greeting_count = len(conn.frames)

    await gw.handle_inbound(conn_id, raw)

    assert len(conn.frames) == greeting_count


@pytest.mark.asyncio
async def test_account_scoped_requests_need_identity(gw, make_connection):
    anonymous = make_connection(account_id=None)
    conn_id = await gw.connect(anonymous)

    await gw.handle_inbound(conn_id, '{"type": "getOrders"}')

    assert anonymous.of_type("error") == [
        {"type": "error", "message": "Authentication required"}
    ]


@pytest.mark.asyncio
async def test_get_conversation(gw, make_connection, create_account, db_session):
    from ticktee.services.message_service import MessageService

    a = await create_account()
    b = await create_account()
    await MessageService(db_session).send_message(a.id, b.id, "hello")
    await MessageService(db_session).send_message(b.id, a.id, "hi back")

    conn = make_connection(account_id=a.id)
    conn_id = await gw.connect(conn)
    await gw.handle_inbound(
        conn_id, json.dumps({"type": "getConversation", "otherUserId": b.id})
    )
    await gw.handle_inbound(conn_id, json.dumps({"type": "getConversation"}))

    (reply,) = conn.of_type("conversation")
    assert [m["content"] for m in reply["data"]] == ["hello", "hi back"]
    assert conn.of_type("error") == [
        {"type": "error", "message": "otherUserId is required"}
    ]


@pytest.mark.asyncio
async def test_message_sent_rebroadcasts_new_message(gw, make_connection):
    sender = make_connection(account_id=3)
    other = make_connection(account_id=4)
    sender_id = await gw.connect(sender)
    await gw.connect(other)

    await gw.handle_inbound(
        sender_id, json.dumps({"type": "messageSent", "data": {"id": 12}})
    )

    for conn in (sender, other):
        assert conn.of_type("newMessage") == [
            {"type": "newMessage", "data": {"id": 12, "from_account_id": 3}}
        ]


@pytest.mark.asyncio
async def test_message_sent_needs_identity(gw, make_connection):
    anonymous = make_connection(account_id=None)
    listener = make_connection(account_id=4)
    anon_id = await gw.connect(anonymous)
    await gw.connect(listener)

    await gw.handle_inbound(
        anon_id,
        json.dumps(
            {"type": "messageSent", "data": {"from_account_id": 1, "content": "x"}}
        ),
    )

    assert anonymous.of_type("error") == [
        {"type": "error", "message": "Authentication required"}
    ]
    assert listener.of_type("newMessage") == []


@pytest.mark.asyncio
async def test_message_sent_as_someone_else_is_refused(gw, make_connection):
    sender = make_connection(account_id=3)
    listener = make_connection(account_id=4)
    sender_id = await gw.connect(sender)
    await gw.connect(listener)

    await gw.handle_inbound(
        sender_id,
        json.dumps(
            {"type": "messageSent", "data": {"from_account_id": 1, "content": "x"}}
        ),
    )

    assert sender.of_type("error") == [
        {"type": "error", "message": "Cannot send messages as another user"}
    ]
    assert listener.of_type("newMessage") == []
