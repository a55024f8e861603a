from fastapi import APIRouter, Depends, HTTPException
from typing import List
from ..schemas.messages import ThreadIn, ThreadOut, MessageIn, MessageOut, MarkReadOut
from ..messaging import (
    create_or_get_thread,
    list_threads_for_user,
    get_thread_summary,
    list_messages,
    append_message,
    mark_read,
)
from ..cache import check_rate_limit
from ..auth import get_current_user
from ..realtime import gateway, MESSAGE_RATE_LIMIT
from .. import core

router = APIRouter()


@router.post('', response_model=ThreadOut)
async def open_thread(payload: ThreadIn, current_user: dict = Depends(get_current_user)):
    return await create_or_get_thread(payload.listing_id, current_user)


@router.get('', response_model=List[ThreadOut])
async def inbox(current_user: dict = Depends(get_current_user)):
    return await list_threads_for_user(current_user['id'])


@router.get('/{thread_id}', response_model=ThreadOut)
async def thread_detail(thread_id: int, current_user: dict = Depends(get_current_user)):
    return await get_thread_summary(thread_id, current_user['id'])


@router.get('/{thread_id}/messages', response_model=List[MessageOut])
async def transcript(thread_id: int, current_user: dict = Depends(get_current_user)):
    return await list_messages(thread_id, current_user['id'])


@router.post('/{thread_id}/messages', response_model=MessageOut, status_code=201)
async def send(thread_id: int, payload: MessageIn, current_user: dict = Depends(get_current_user)):
    # Rate limiting - shared with the realtime path
    if not await check_rate_limit(
        current_user['id'],
        "send_message",
        limit=MESSAGE_RATE_LIMIT,
        window=3600
    ):
        raise HTTPException(429, "Rate limit exceeded. Too many messages.")

    message = await append_message(thread_id, current_user['id'], payload.body)
    core.MESSAGES_SENT.labels(transport='rest').inc()

    # live participants see REST sends too
    await gateway.broadcast_message(message)
    return message


@router.post('/{thread_id}/read', response_model=MarkReadOut)
async def read(thread_id: int, current_user: dict = Depends(get_current_user)):
    updated = await mark_read(thread_id, current_user['id'])
    if updated:
        await gateway.broadcast_read(thread_id, current_user['id'])
    return {'ok': True, 'updated': updated}
