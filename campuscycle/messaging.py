"""
Buyer/seller conversations: the thread directory and the message log.

The message log is the single source of truth for chat; the realtime layer
only fans out what these functions have already committed. Every function
opens its own session, the same way the rest of the data layer does.
"""
from typing import Dict, List, Optional
from sqlalchemy import select, update, func, case, literal, or_
from sqlalchemy.exc import IntegrityError
from .models import AsyncSessionLocal, utcnow
from .models.listings import Listing
from .models.threads import Thread
from .models.messages import Message, MAX_MESSAGE_LENGTH
from .errors import ValidationError, Forbidden, NotFound
import logging

logger = logging.getLogger(__name__)


def _participant_thread(thread: Optional[Thread], user_id: int) -> Thread:
    if not thread:
        raise NotFound('Thread not found')
    if not thread.has_participant(user_id):
        raise Forbidden('Not a participant of this thread')
    return thread


def validate_body(body) -> str:
    if not isinstance(body, str) or not body.strip():
        raise ValidationError('Message body must not be empty')
    if len(body) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f'Message body must be at most {MAX_MESSAGE_LENGTH} characters')
    return body


# thread directory
async def create_or_get_thread(listing_id: int, requester: dict) -> Thread:
    """Open the requester's conversation about a listing, or return the existing one."""
    async with AsyncSessionLocal() as session:
        listing = await session.get(Listing, listing_id)
        if not listing or listing.campus_id != requester['campus_id']:
            raise NotFound('Listing not found')
        if listing.seller_id == requester['id']:
            raise ValidationError('Cannot message yourself')

        existing = await session.execute(
            select(Thread).where(Thread.listing_id == listing_id, Thread.buyer_id == requester['id'])
        )
        thread = existing.scalars().first()
        if thread:
            return thread

        thread = Thread(listing_id=listing_id, buyer_id=requester['id'], seller_id=listing.seller_id)
        session.add(thread)
        try:
            await session.commit()
        except IntegrityError:
            # a concurrent request created it first
            await session.rollback()
            res = await session.execute(
                select(Thread).where(Thread.listing_id == listing_id, Thread.buyer_id == requester['id'])
            )
            return res.scalars().one()
        thread_id = thread.id

    logger.info({'msg': 'thread_created', 'thread_id': thread_id, 'listing_id': listing_id, 'buyer_id': requester['id']})
    async with AsyncSessionLocal() as session:
        return await session.get(Thread, thread_id)


async def get_thread(thread_id: int, requester_id: int) -> Thread:
    async with AsyncSessionLocal() as session:
        thread = await session.get(Thread, thread_id)
        return _participant_thread(thread, requester_id)


async def get_thread_ids_for_user(user_id: int) -> List[int]:
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            select(Thread.id).where(or_(Thread.buyer_id == user_id, Thread.seller_id == user_id))
        )
        return list(res.scalars().all())


async def _latest_messages(session, thread_ids: List[int]) -> Dict[int, Message]:
    ranked = (
        select(
            Message.id.label('message_id'),
            func.row_number().over(
                partition_by=Message.thread_id,
                order_by=(Message.created_at.desc(), Message.id.desc()),
            ).label('rn'),
        )
        .where(Message.thread_id.in_(thread_ids))
        .subquery()
    )
    res = await session.execute(
        select(Message).join(ranked, ranked.c.message_id == Message.id).where(ranked.c.rn == 1)
    )
    return {m.thread_id: m for m in res.scalars().all()}


async def _unread_counts(session, thread_ids: List[int], viewer_id: int) -> Dict[int, int]:
    res = await session.execute(
        select(Message.thread_id, func.count(Message.id))
        .where(
            Message.thread_id.in_(thread_ids),
            Message.sender_id != viewer_id,
            Message.read_at.is_(None),
        )
        .group_by(Message.thread_id)
    )
    return {thread_id: count for thread_id, count in res.all()}


async def list_threads_for_user(user_id: int) -> List[Thread]:
    """Inbox: every thread the user takes part in, most recently active first.

    Each thread carries ``last_message`` and ``unread_count`` (messages from
    the other participant that the user has not read yet).
    """
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            select(Thread)
            .where(or_(Thread.buyer_id == user_id, Thread.seller_id == user_id))
            .order_by(Thread.updated_at.desc(), Thread.id.desc())
        )
        threads = res.scalars().all()
        if not threads:
            return []
        thread_ids = [t.id for t in threads]
        latest = await _latest_messages(session, thread_ids)
        unread = await _unread_counts(session, thread_ids, user_id)

    for thread in threads:
        thread.last_message = latest.get(thread.id)
        thread.unread_count = unread.get(thread.id, 0)
    return threads


async def get_thread_summary(thread_id: int, requester_id: int) -> Thread:
    async with AsyncSessionLocal() as session:
        thread = _participant_thread(await session.get(Thread, thread_id), requester_id)
        latest = await _latest_messages(session, [thread.id])
        unread = await _unread_counts(session, [thread.id], requester_id)
    thread.last_message = latest.get(thread.id)
    thread.unread_count = unread.get(thread.id, 0)
    return thread


# message log
async def append_message(thread_id: int, sender_id: int, body: str) -> Message:
    """Persist a message and advance the thread's ordering key in one transaction."""
    async with AsyncSessionLocal() as session:
        async with session.begin():
            thread = await session.get(Thread, thread_id)
            _participant_thread(thread, sender_id)
            validate_body(body)

            now = utcnow()
            message = Message(thread_id=thread_id, sender_id=sender_id, body=body, created_at=now)
            session.add(message)
            # updated_at only moves forward when appends interleave
            await session.execute(
                update(Thread)
                .where(Thread.id == thread_id)
                .values(updated_at=case(
                    (Thread.updated_at < now, literal(now, Thread.updated_at.type)),
                    else_=Thread.updated_at,
                ))
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            message_id = message.id

    async with AsyncSessionLocal() as session:
        return await session.get(Message, message_id)


async def list_messages(thread_id: int, requester_id: int) -> List[Message]:
    async with AsyncSessionLocal() as session:
        _participant_thread(await session.get(Thread, thread_id), requester_id)
        res = await session.execute(
            select(Message)
            .where(Message.thread_id == thread_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return res.scalars().all()


async def mark_read(thread_id: int, requester_id: int) -> int:
    """Mark every message from the other participant as read.

    Returns the number of messages that changed state. An unknown thread is a
    no-op; a non-participant gets Forbidden. Safe to repeat: read_at is only
    ever set on rows where it is still null.
    """
    async with AsyncSessionLocal() as session:
        async with session.begin():
            thread = await session.get(Thread, thread_id)
            if not thread:
                return 0
            _participant_thread(thread, requester_id)
            res = await session.execute(
                update(Message)
                .where(
                    Message.thread_id == thread_id,
                    Message.sender_id != requester_id,
                    Message.read_at.is_(None),
                )
                .values(read_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return res.rowcount


async def unread_count(thread_id: int, viewer_id: int) -> int:
    async with AsyncSessionLocal() as session:
        counts = await _unread_counts(session, [thread_id], viewer_id)
    return counts.get(thread_id, 0)
