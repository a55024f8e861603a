import asyncio
import json
import logging
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from campuscycle import core, messaging
from campuscycle.main import app
from campuscycle.realtime import ChatGateway
from campuscycle.ws_manager import ConnectionContext, RoomManager, room_name, AUTHENTICATED, DISCONNECTED


class FakeWebSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.broken = broken
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError('connection reset')
        self.sent.append(data)

    def events(self, name):
        return [frame['data'] for frame in self.sent if frame['event'] == name]


@pytest.fixture
def rooms():
    return RoomManager()


@pytest.fixture
def gateway(rooms):
    return ChatGateway(rooms)


async def _connect(rooms, factory, user, broken=False):
    ctx = ConnectionContext(FakeWebSocket(broken), factory.principal(user))
    await rooms.connect(ctx)
    return ctx


@pytest.mark.asyncio
async def test_buyer_message_reaches_seller(marketplace, factory, rooms, gateway):
    buyer, seller = marketplace['buyer'], marketplace['seller']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))

    buyer_ctx = await _connect(rooms, factory, buyer)
    seller_ctx = await _connect(rooms, factory, seller)
    assert buyer_ctx.state == AUTHENTICATED and buyer_ctx.websocket.accepted
    for ctx in (buyer_ctx, seller_ctx):
        await gateway.dispatch(ctx, {'event': 'join-threads'})
        assert ctx.rooms == {room_name(thread.id)}

    await gateway.dispatch(buyer_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'Is this available?'}})

    # the sender gets the authoritative copy too
    for ctx in (buyer_ctx, seller_ctx):
        [event] = ctx.websocket.events('message')
        assert event['body'] == 'Is this available?'
        assert event['sender_id'] == buyer.id
        assert event['thread_id'] == thread.id
        assert event['sender']['name'] == 'Bea Buyer'

    await gateway.dispatch(seller_ctx, {'event': 'mark-read', 'data': {'threadId': thread.id}})
    for ctx in (buyer_ctx, seller_ctx):
        assert ctx.websocket.events('messages-read') == [{'threadId': thread.id, 'userId': seller.id}]

    [summary] = await messaging.list_threads_for_user(buyer.id)
    assert summary.unread_count == 0
    assert summary.last_message.body == 'Is this available?'
    assert await messaging.unread_count(thread.id, seller.id) == 0
    assert buyer_ctx.websocket.events('error') == []


@pytest.mark.asyncio
async def test_join_thread_checks_participancy(marketplace, factory, rooms, gateway):
    buyer = marketplace['buyer']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))

    outsider_ctx = await _connect(rooms, factory, marketplace['outsider'])
    await gateway.dispatch(outsider_ctx, {'event': 'join-thread', 'data': thread.id})
    assert outsider_ctx.rooms == set()
    assert outsider_ctx.websocket.events('error') == [{'message': 'Not a participant of this thread'}]

    buyer_ctx = await _connect(rooms, factory, buyer)
    await gateway.dispatch(buyer_ctx, {'event': 'join-thread', 'data': {'threadId': thread.id}})
    assert buyer_ctx.rooms == {room_name(thread.id)}

    await gateway.dispatch(buyer_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'hi'}})
    assert outsider_ctx.websocket.events('message') == []
    assert len(buyer_ctx.websocket.events('message')) == 1

    await gateway.dispatch(buyer_ctx, {'event': 'join-thread', 'data': 9999})
    assert buyer_ctx.websocket.events('error') == [{'message': 'Thread not found'}]


@pytest.mark.asyncio
async def test_failures_go_to_the_sender_only(marketplace, factory, rooms, gateway):
    buyer, seller = marketplace['buyer'], marketplace['seller']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))
    buyer_ctx = await _connect(rooms, factory, buyer)
    seller_ctx = await _connect(rooms, factory, seller)
    outsider_ctx = await _connect(rooms, factory, marketplace['outsider'])
    for ctx in (buyer_ctx, seller_ctx):
        await gateway.dispatch(ctx, {'event': 'join-threads'})

    await gateway.dispatch(buyer_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': '   '}})
    [error] = buyer_ctx.websocket.events('error')
    assert 'empty' in error['message']
    assert seller_ctx.websocket.sent == []

    await gateway.dispatch(outsider_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'let me in'}})
    assert outsider_ctx.websocket.events('error') == [{'message': 'Not a participant of this thread'}]
    assert seller_ctx.websocket.sent == []
    assert await messaging.list_messages(thread.id, buyer.id) == []

    await gateway.dispatch(outsider_ctx, {'event': 'mark-read', 'data': {'threadId': thread.id}})
    assert len(outsider_ctx.websocket.events('error')) == 2

    # business-rule failures keep the connection open
    assert buyer_ctx.state == AUTHENTICATED and outsider_ctx.state == AUTHENTICATED


@pytest.mark.asyncio
async def test_malformed_frames(marketplace, factory, rooms, gateway):
    ctx = await _connect(rooms, factory, marketplace['buyer'])
    await gateway.dispatch(ctx, 'hello')
    await gateway.dispatch(ctx, {'event': 'dance'})
    await gateway.dispatch(ctx, {'event': 'message', 'data': {'body': 'no thread'}})
    await gateway.dispatch(ctx, {'event': 'join-thread'})
    assert ctx.websocket.events('error') == [
        {'message': 'Malformed frame'},
        {'message': 'Unknown event: dance'},
        {'message': 'Invalid payload for message'},
        {'message': 'Invalid payload for join-thread'},
    ]


@pytest.mark.asyncio
async def test_unexpected_errors_are_reported(marketplace, factory, rooms, gateway, monkeypatch):
    buyer = marketplace['buyer']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))
    ctx = await _connect(rooms, factory, buyer)

    async def explode(*args, **kwargs):
        raise RuntimeError('db went away')

    monkeypatch.setattr(messaging, 'append_message', explode)
    await gateway.dispatch(ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'hello'}})
    assert ctx.websocket.events('error') == [{'message': 'Failed to send message'}]


@pytest.mark.asyncio
async def test_rest_sends_are_broadcast(client, marketplace, factory, monkeypatch):
    from campuscycle import realtime
    rooms = RoomManager()
    monkeypatch.setattr(realtime.gateway, 'rooms', rooms)

    buyer, seller = marketplace['buyer'], marketplace['seller']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))
    seller_ctx = await _connect(rooms, factory, seller)
    rooms.join(seller_ctx, room_name(thread.id))

    res = await client.post(f'/api/conversations/{thread.id}/messages', json={'body': 'via rest'},
                            headers=factory.auth(buyer))
    assert res.status_code == 201
    [event] = seller_ctx.websocket.events('message')
    assert event['id'] == res.json()['id']

    await client.post(f'/api/conversations/{thread.id}/read', headers=factory.auth(seller))
    assert seller_ctx.websocket.events('messages-read') == [{'threadId': thread.id, 'userId': seller.id}]


@pytest.mark.asyncio
async def test_disconnect_releases_rooms(marketplace, factory, rooms, gateway):
    buyer, seller = marketplace['buyer'], marketplace['seller']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))
    buyer_ctx = await _connect(rooms, factory, buyer)
    dead_ctx = await _connect(rooms, factory, seller, broken=True)
    for ctx in (buyer_ctx, dead_ctx):
        await gateway.dispatch(ctx, {'event': 'join-threads'})
    assert rooms.room_members(room_name(thread.id)) == {buyer_ctx, dead_ctx}

    # a failed send drops that connection and nobody else
    await gateway.dispatch(buyer_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'anyone?'}})
    assert dead_ctx.state == DISCONNECTED
    assert rooms.room_members(room_name(thread.id)) == {buyer_ctx}
    assert len(buyer_ctx.websocket.events('message')) == 1
    assert len(await messaging.list_messages(thread.id, buyer.id)) == 1

    assert buyer_ctx.in_room
    rooms.disconnect(buyer_ctx)
    assert not buyer_ctx.in_room
    assert rooms.rooms == {}
    assert rooms.connections == set()


@pytest.mark.asyncio
async def test_dropped_connection_cannot_rejoin(rooms):
    ctx = ConnectionContext(FakeWebSocket(broken=True), {'id': 1})
    await rooms.connect(ctx)
    rooms.join(ctx, 'thread:1')
    await rooms.emit_to_room('thread:1', 'message', {'body': 'x'})
    assert ctx.state == DISCONNECTED

    # the connection's own handler resumes after the drop
    rooms.join(ctx, 'thread:2')
    rooms.disconnect(ctx)
    assert rooms.rooms == {}
    assert not ctx.in_room


@pytest.mark.asyncio
async def test_disconnect_always_releases_rooms(rooms):
    ctx = ConnectionContext(FakeWebSocket(), {'id': 1})
    await rooms.connect(ctx)
    rooms.join(ctx, 'thread:3')
    ctx.state = DISCONNECTED
    rooms.disconnect(ctx)
    assert rooms.room_members('thread:3') == set()
    assert not ctx.in_room

@pytest.mark.asyncio
async def test_concurrent_realtime_sends(marketplace, factory, rooms, gateway):
    buyer, seller = marketplace['buyer'], marketplace['seller']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))
    buyer_ctx = await _connect(rooms, factory, buyer)
    seller_ctx = await _connect(rooms, factory, seller)
    for ctx in (buyer_ctx, seller_ctx):
        await gateway.dispatch(ctx, {'event': 'join-threads'})

    await asyncio.gather(
        gateway.dispatch(buyer_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'offer 10?'}}),
        gateway.dispatch(seller_ctx, {'event': 'message', 'data': {'threadId': thread.id, 'body': 'make it 12'}}),
    )
    for ctx in (buyer_ctx, seller_ctx):
        assert sorted(e['body'] for e in ctx.websocket.events('message')) == ['make it 12', 'offer 10?']
    assert len(await messaging.list_messages(thread.id, seller.id)) == 2


def test_handshake_without_token_is_refused():
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect('/api/ws/chat') as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_handshake_with_unverified_account_is_refused(factory):
    async def setup():
        campus = await factory.campus('stateu')
        return await factory.user(campus, verified=False)

    user = asyncio.run(setup())
    token = factory.auth(user)['Authorization'].split(' ', 1)[1]
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f'/api/ws/chat?token={token}') as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_socket_round_trip(factory):
    async def setup():
        campus = await factory.campus('stateu')
        seller = await factory.user(campus, 'seller@stateu.edu')
        buyer = await factory.user(campus, 'buyer@stateu.edu')
        listing = await factory.listing(seller)
        thread = await messaging.create_or_get_thread(listing.id, factory.principal(buyer))
        return buyer, thread

    buyer, thread = asyncio.run(setup())
    client = TestClient(app)
    with client.websocket_connect('/api/ws/chat', headers=factory.auth(buyer)) as ws:
        ws.send_json({'event': 'join-threads'})
        ws.send_json({'event': 'message', 'data': {'threadId': thread.id, 'body': 'over the wire'}})
        frame = ws.receive_json()
        assert frame['event'] == 'message'
        assert frame['data']['body'] == 'over the wire'

        ws.send_text('{not json')
        assert ws.receive_json() == {'event': 'error', 'data': {'message': 'Malformed frame'}}


@pytest.mark.asyncio
async def test_repeated_read_sweep_is_silent(marketplace, factory, rooms, gateway):
    buyer, seller = marketplace['buyer'], marketplace['seller']
    thread = await messaging.create_or_get_thread(marketplace['listing'].id, factory.principal(buyer))
    await messaging.append_message(thread.id, buyer.id, 'ping')
    buyer_ctx = await _connect(rooms, factory, buyer)
    seller_ctx = await _connect(rooms, factory, seller)
    for ctx in (buyer_ctx, seller_ctx):
        await gateway.dispatch(ctx, {'event': 'join-threads'})

    await gateway.dispatch(seller_ctx, {'event': 'mark-read', 'data': {'threadId': thread.id}})
    await gateway.dispatch(seller_ctx, {'event': 'mark-read', 'data': {'threadId': thread.id}})
    assert buyer_ctx.websocket.events('messages-read') == [{'threadId': thread.id, 'userId': seller.id}]
    assert seller_ctx.websocket.events('error') == []


class FakePubSub:
    def __init__(self, items):
        self.items = items
        self.channels = []
        self.closed = False
        self.drained = asyncio.Event()

    async def subscribe(self, channel):
        self.channels.append(channel)

    async def listen(self):
        for item in self.items:
            yield item
        self.drained.set()
        # a live subscription stays open until the listener is cancelled
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class FakeRedis:
    def __init__(self, items=(), broken=False):
        self.published = []
        self.broken = broken
        self.channel = FakePubSub(list(items))

    async def publish(self, channel, payload):
        if self.broken:
            raise ConnectionError('redis down')
        self.published.append((channel, payload))
        return 1

    def pubsub(self):
        return self.channel


@pytest.mark.asyncio
async def test_relay_publishes_room_events(rooms, monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(core, 'REDIS', redis)
    local = ConnectionContext(FakeWebSocket(), {'id': 1})
    await rooms.connect(local)
    rooms.join(local, 'thread:7')

    rooms.start_relay()
    await asyncio.wait_for(redis.channel.drained.wait(), timeout=1)
    assert rooms.relay_active
    assert redis.channel.channels == ['ws_events']

    await rooms.emit_to_room('thread:7', 'messages-read', {'threadId': 7, 'userId': 2})
    [(channel, payload)] = redis.published
    assert channel == 'ws_events'
    assert json.loads(payload) == {'room': 'thread:7', 'event': 'messages-read', 'data': {'threadId': 7, 'userId': 2}}
    # local members hear it when it comes back through the channel
    assert local.websocket.sent == []

    await rooms.stop_relay()
    assert redis.channel.closed
    assert not rooms.relay_active


@pytest.mark.asyncio
async def test_relay_listener_delivers_and_skips_bad_envelopes(rooms, monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger='campuscycle.ws_manager')
    good = {'room': 'thread:7', 'event': 'message', 'data': {'body': 'from another instance'}}
    redis = FakeRedis(items=[
        {'type': 'subscribe', 'channel': b'ws_events', 'data': 1},
        {'type': 'message', 'channel': b'ws_events', 'data': b'not json'},
        {'type': 'message', 'channel': b'ws_events', 'data': json.dumps({'room': 'thread:7'}).encode()},
        {'type': 'message', 'channel': b'ws_events', 'data': json.dumps(good).encode()},
    ])
    monkeypatch.setattr(core, 'REDIS', redis)
    member = ConnectionContext(FakeWebSocket(), {'id': 1})
    bystander = ConnectionContext(FakeWebSocket(), {'id': 2})
    for ctx in (member, bystander):
        await rooms.connect(ctx)
    rooms.join(member, 'thread:7')
    rooms.join(bystander, 'thread:8')

    rooms.start_relay()
    await asyncio.wait_for(redis.channel.drained.wait(), timeout=1)
    await rooms.stop_relay()

    assert member.websocket.sent == [{'event': 'message', 'data': {'body': 'from another instance'}}]
    assert bystander.websocket.sent == []
    bad = [r for r in caplog.records if isinstance(r.msg, dict) and r.msg.get('msg') == 'ws_relay_bad_event']
    assert len(bad) == 2


@pytest.mark.asyncio
async def test_failed_publish_falls_back_to_local_delivery(rooms, monkeypatch):
    redis = FakeRedis(broken=True)
    monkeypatch.setattr(core, 'REDIS', redis)
    local = ConnectionContext(FakeWebSocket(), {'id': 1})
    await rooms.connect(local)
    rooms.join(local, 'thread:7')

    rooms.start_relay()
    await asyncio.wait_for(redis.channel.drained.wait(), timeout=1)
    await rooms.emit_to_room('thread:7', 'message', {'body': 'still delivered'})
    await rooms.stop_relay()

    assert local.websocket.sent == [{'event': 'message', 'data': {'body': 'still delivered'}}]
