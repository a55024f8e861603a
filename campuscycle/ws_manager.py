from typing import Dict, Set
from fastapi import WebSocket
import asyncio
import itertools
import json
import logging
from . import core

logger = logging.getLogger(__name__)

RELAY_CHANNEL = 'ws_events'

CONNECTING = 'connecting'
AUTHENTICATED = 'authenticated'
DISCONNECTED = 'disconnected'

_connection_ids = itertools.count(1)


def room_name(thread_id: int) -> str:
    return f'thread:{thread_id}'


class ConnectionContext:
    """State for one live socket, built once at the handshake and handed to every handler."""

    def __init__(self, websocket: WebSocket, user: dict = None):
        self.id = next(_connection_ids)
        self.websocket = websocket
        self.user = user
        self.rooms: Set[str] = set()
        self.state = CONNECTING

    @property
    def user_id(self):
        return self.user['id'] if self.user else None

    @property
    def in_room(self) -> bool:
        return bool(self.rooms)


class RoomManager:
    def __init__(self):
        self.connections: Set[ConnectionContext] = set()
        self.rooms: Dict[str, Set[ConnectionContext]] = {}
        self.relay_task = None

    async def connect(self, ctx: ConnectionContext):
        await ctx.websocket.accept()
        ctx.state = AUTHENTICATED
        self.connections.add(ctx)
        core.WS_CONNECTIONS.set(len(self.connections))
        logger.info({'msg': 'ws_connected', 'user_id': ctx.user_id, 'conn': ctx.id})

    def disconnect(self, ctx: ConnectionContext):
        for room in list(ctx.rooms):
            self.leave(ctx, room)
        if ctx.state == DISCONNECTED:
            return
        ctx.state = DISCONNECTED
        self.connections.discard(ctx)
        core.WS_CONNECTIONS.set(len(self.connections))
        logger.info({'msg': 'ws_disconnected', 'user_id': ctx.user_id, 'conn': ctx.id})

    def join(self, ctx: ConnectionContext, room: str):
        # a handler can resume after its socket was already dropped
        if ctx.state == DISCONNECTED:
            return
        self.rooms.setdefault(room, set()).add(ctx)
        ctx.rooms.add(room)

    def leave(self, ctx: ConnectionContext, room: str):
        members = self.rooms.get(room)
        if members is not None:
            members.discard(ctx)
            if not members:
                del self.rooms[room]
        ctx.rooms.discard(room)

    def room_members(self, room: str) -> Set[ConnectionContext]:
        return set(self.rooms.get(room, ()))

    async def send(self, ctx: ConnectionContext, event: str, data):
        try:
            await ctx.websocket.send_json({'event': event, 'data': data})
        except Exception as e:
            logger.warning({'msg': 'ws_send_failed', 'user_id': ctx.user_id, 'conn': ctx.id, 'error': str(e)})
            self.disconnect(ctx)

    async def deliver_local(self, room: str, event: str, data):
        for ctx in self.room_members(room):
            await self.send(ctx, event, data)

    @property
    def relay_active(self) -> bool:
        return core.REDIS is not None and self.relay_task is not None and not self.relay_task.done()

    async def emit_to_room(self, room: str, event: str, data):
        """Fan an event out to every connection joined to the room.

        With the Redis relay running the event goes through the shared
        channel so members connected to other instances receive it too.
        """
        if self.relay_active:
            try:
                payload = json.dumps({'room': room, 'event': event, 'data': data})
                await core.REDIS.publish(RELAY_CHANNEL, payload)
                return
            except Exception as e:
                logger.warning({'msg': 'ws_relay_publish_failed', 'room': room, 'error': str(e)})
        await self.deliver_local(room, event, data)

    # Redis pub/sub listener to route events between app instances
    async def start_redis_listener(self):
        if not core.REDIS:
            return
        pubsub = core.REDIS.pubsub()
        await pubsub.subscribe(RELAY_CHANNEL)
        logger.info({'msg': 'ws_relay_listening', 'channel': RELAY_CHANNEL})
        try:
            async for item in pubsub.listen():
                if not item or item.get('type') != 'message':
                    continue
                try:
                    envelope = json.loads(item['data'])
                    await self.deliver_local(envelope['room'], envelope['event'], envelope['data'])
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning({'msg': 'ws_relay_bad_event', 'error': str(e)})
        finally:
            await pubsub.aclose()

    def start_relay(self):
        if core.REDIS and self.relay_task is None:
            self.relay_task = asyncio.create_task(self.start_redis_listener())

    async def stop_relay(self):
        if self.relay_task is None:
            return
        self.relay_task.cancel()
        try:
            await self.relay_task
        except asyncio.CancelledError:
            pass
        self.relay_task = None


manager = RoomManager()
