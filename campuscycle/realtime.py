"""
Realtime chat handlers.

Every write goes through the message log in ``messaging``; this module only
decides who hears about it. Business-rule failures are reported to the
offending connection as an ``error`` event and never close the socket.
"""
import os
import logging
from pydantic import ValidationError as PayloadError
from . import core, messaging
from .cache import check_rate_limit
from .errors import CampusCycleError, Forbidden
from .schemas.messages import MessageOut, MessagesReadOut, RealtimeMessageIn, ThreadRef
from .ws_manager import ConnectionContext, RoomManager, manager as default_manager, room_name

logger = logging.getLogger(__name__)

MESSAGE_RATE_LIMIT = int(os.getenv('MESSAGE_RATE_LIMIT', '100'))


def message_payload(message) -> dict:
    return MessageOut.model_validate(message).model_dump(mode='json')


class ChatGateway:
    def __init__(self, rooms: RoomManager):
        self.rooms = rooms

    async def emit_error(self, ctx: ConnectionContext, message: str):
        await self.rooms.send(ctx, 'error', {'message': message})

    async def join_all_my_threads(self, ctx: ConnectionContext):
        for thread_id in await messaging.get_thread_ids_for_user(ctx.user_id):
            self.rooms.join(ctx, room_name(thread_id))

    async def join_thread(self, ctx: ConnectionContext, data):
        thread_id = _thread_id(data)
        # participancy is checked before the subscription is admitted
        await messaging.get_thread(thread_id, ctx.user_id)
        self.rooms.join(ctx, room_name(thread_id))

    async def on_message(self, ctx: ConnectionContext, data):
        payload = RealtimeMessageIn.model_validate(data)
        if not await check_rate_limit(ctx.user_id, 'send_message', limit=MESSAGE_RATE_LIMIT, window=3600):
            raise Forbidden('Rate limit exceeded. Too many messages.')
        message = await messaging.append_message(payload.thread_id, ctx.user_id, payload.body)
        core.MESSAGES_SENT.labels(transport='realtime').inc()
        await self.broadcast_message(message)

    async def on_mark_read(self, ctx: ConnectionContext, data):
        payload = ThreadRef.model_validate(data)
        # same rule as the REST path: only a sweep that changed rows is announced
        if await messaging.mark_read(payload.thread_id, ctx.user_id):
            await self.broadcast_read(payload.thread_id, ctx.user_id)

    async def broadcast_message(self, message):
        await self.rooms.emit_to_room(room_name(message.thread_id), 'message', message_payload(message))

    async def broadcast_read(self, thread_id: int, reader_id: int):
        event = MessagesReadOut(threadId=thread_id, userId=reader_id).model_dump()
        await self.rooms.emit_to_room(room_name(thread_id), 'messages-read', event)

    async def dispatch(self, ctx: ConnectionContext, frame):
        if not isinstance(frame, dict) or not isinstance(frame.get('event'), str):
            await self.emit_error(ctx, 'Malformed frame')
            return
        event = frame['event']
        data = frame.get('data')
        handlers = {
            'join-threads': lambda: self.join_all_my_threads(ctx),
            'join-thread': lambda: self.join_thread(ctx, data),
            'message': lambda: self.on_message(ctx, data),
            'mark-read': lambda: self.on_mark_read(ctx, data),
        }
        handler = handlers.get(event)
        if handler is None:
            await self.emit_error(ctx, f'Unknown event: {event}')
            return
        try:
            await handler()
        except CampusCycleError as e:
            await self.emit_error(ctx, e.message)
        except PayloadError:
            await self.emit_error(ctx, f'Invalid payload for {event}')
        except Exception:
            logger.exception({'msg': 'ws_handler_failed', 'event': event, 'user_id': ctx.user_id})
            await self.emit_error(ctx, 'Failed to send message' if event == 'message' else f'Failed to handle {event}')


def _thread_id(data) -> int:
    if isinstance(data, dict):
        return ThreadRef.model_validate(data).thread_id
    return ThreadRef.model_validate({'thread_id': data}).thread_id


gateway = ChatGateway(default_manager)
