from .models import AsyncSessionLocal
from .models.campuses import Campus
from .models.users import User, ROLE_ADMIN
from .models.listings import Listing, ListingImage
from .models.threads import Thread
from .models.messages import Message
from .models.blocks import Block
from .models.reports import Report
from .auth import hash_password, verify_password, create_access_token, create_refresh_token, decode_token, user_id_from_payload
from .errors import ValidationError, Unauthorized, Forbidden, NotFound
from sqlalchemy import select, func, delete, or_
from sqlalchemy.exc import IntegrityError
import math
import uuid
import logging

logger = logging.getLogger(__name__)

LISTING_PAGE_SIZE = 30
LISTING_SORTS = {
    'newest': (Listing.created_at.desc(), Listing.id.desc()),
    'price-low': (Listing.price.asc(), Listing.id.asc()),
    'price-high': (Listing.price.desc(), Listing.id.desc()),
}

# campuses
async def list_campuses():
    async with AsyncSessionLocal() as session:
        res = await session.execute(select(Campus).order_by(Campus.name.asc()))
        return res.scalars().all()

# accounts
async def create_user(payload):
    """Register an unverified account and return it with its verification token."""
    async with AsyncSessionLocal() as session:
        campus = await session.get(Campus, payload.campus_id)
        if not campus:
            raise ValidationError('Invalid campus')

        email = payload.email.lower()
        existing = await session.execute(select(User.id).where(User.email == email))
        if existing.scalars().first() is not None:
            raise ValidationError('Email already registered')

        user = User(
            email=email,
            password_hash=hash_password(payload.password),
            name=payload.name,
            campus_id=payload.campus_id,
            grad_year=payload.grad_year,
            verify_token=uuid.uuid4().hex,
        )
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ValidationError('Email already registered')
        await session.refresh(user)
        return user

async def verify_email(token: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.verify_token == token))
        user = q.scalars().first()
        if not user:
            raise ValidationError('Invalid or expired token')
        user.is_verified = True
        user.verify_token = None
        await session.commit()
        return user

async def authenticate_user(email: str, password: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.email == email.lower()))
        user = q.scalars().first()
        if not user:
            raise Unauthorized('Invalid email or password')
        if not user.is_verified:
            raise Forbidden('Email not verified. Please check your email.')
        if not verify_password(password, user.password_hash):
            raise Unauthorized('Invalid email or password')
        return {
            'access_token': create_access_token(user),
            'refresh_token': create_refresh_token(user),
            'token_type': 'bearer',
            'user': user,
        }

async def refresh_access_token(refresh_token: str):
    payload = decode_token(refresh_token, refresh=True)
    user_id = user_id_from_payload(payload) if payload else None
    if user_id is None:
        raise Unauthorized('Invalid refresh token')
    user = await get_user_by_id(user_id)
    if not user or not user.is_verified:
        raise Unauthorized('Invalid token')
    return {'access_token': create_access_token(user), 'token_type': 'bearer'}

async def get_user_by_id(user_id: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        return q.scalars().first()

async def update_profile(user_id: int, changes: dict):
    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            raise NotFound('User not found')
        for field, value in changes.items():
            setattr(user, field, value)
        await session.commit()
    return await get_user_by_id(user_id)

async def change_password(user_id: int, current_password: str, new_password: str):
    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user or not user.password_hash:
            raise ValidationError('No password set')
        if not verify_password(current_password, user.password_hash):
            raise Unauthorized('Current password is incorrect')
        user.password_hash = hash_password(new_password)
        await session.commit()

# listings
async def search_listings(campus_id: int, category=None, condition=None, status=None, is_giveaway=None,
                          min_price=None, max_price=None, q=None, zipcode=None, sort='newest', page=1):
    filters = [Listing.campus_id == campus_id]
    # sold listings are hidden unless asked for
    if status:
        filters.append(Listing.status == status)
    else:
        filters.append(Listing.status.in_(['AVAILABLE', 'CLAIMED']))
    if category:
        filters.append(Listing.category == category)
    if condition:
        filters.append(Listing.condition == condition)
    if is_giveaway:
        filters.append(Listing.is_giveaway.is_(True))
    if zipcode:
        filters.append(Listing.zipcode == zipcode)
    if min_price is not None:
        filters.append(Listing.price >= min_price)
    if max_price is not None:
        filters.append(Listing.price <= max_price)
    if q:
        pattern = f'%{q}%'
        filters.append(or_(Listing.title.ilike(pattern), Listing.description.ilike(pattern)))

    page = max(page or 1, 1)
    order_by = LISTING_SORTS.get(sort, LISTING_SORTS['newest'])
    async with AsyncSessionLocal() as session:
        total = (await session.execute(select(func.count(Listing.id)).where(*filters))).scalar_one()
        res = await session.execute(
            select(Listing).where(*filters).order_by(*order_by)
            .offset((page - 1) * LISTING_PAGE_SIZE).limit(LISTING_PAGE_SIZE)
        )
        listings = res.scalars().all()
    return {
        'listings': listings,
        'pagination': {
            'page': page,
            'page_size': LISTING_PAGE_SIZE,
            'total': total,
            'total_pages': math.ceil(total / LISTING_PAGE_SIZE),
        },
    }

async def create_listing(seller: dict, payload):
    data = payload.model_dump(exclude={'image_urls'})
    async with AsyncSessionLocal() as session:
        listing = Listing(**data, campus_id=seller['campus_id'], seller_id=seller['id'])
        listing.images = [ListingImage(url=url) for url in payload.image_urls]
        session.add(listing)
        await session.commit()
        listing_id = listing.id
    return await _load_listing(listing_id)

async def _load_listing(listing_id: int):
    async with AsyncSessionLocal() as session:
        return await session.get(Listing, listing_id)

async def get_listing(listing_id: int, viewer: dict):
    listing = await _load_listing(listing_id)
    # listings from other campuses are indistinguishable from missing ones
    if not listing or listing.campus_id != viewer['campus_id']:
        raise NotFound('Listing not found')
    return listing

async def _owned_listing(session, listing_id: int, actor: dict):
    listing = await session.get(Listing, listing_id)
    if not listing:
        raise NotFound('Listing not found')
    if listing.seller_id != actor['id'] and actor['role'] != ROLE_ADMIN:
        raise Forbidden('Not authorized')
    return listing

async def update_listing(listing_id: int, actor: dict, changes: dict):
    async with AsyncSessionLocal() as session:
        listing = await _owned_listing(session, listing_id, actor)
        for field, value in changes.items():
            setattr(listing, field, value)
        await session.commit()
    return await _load_listing(listing_id)

async def delete_listing(listing_id: int, actor: dict):
    async with AsyncSessionLocal() as session:
        async with session.begin():
            await _owned_listing(session, listing_id, actor)
            thread_ids = select(Thread.id).where(Thread.listing_id == listing_id).scalar_subquery()
            await session.execute(delete(Message).where(Message.thread_id.in_(thread_ids)))
            await session.execute(delete(Thread).where(Thread.listing_id == listing_id))
            await session.execute(delete(ListingImage).where(ListingImage.listing_id == listing_id))
            await session.execute(delete(Listing).where(Listing.id == listing_id))
    logger.info({'msg': 'listing_deleted', 'listing_id': listing_id, 'actor_id': actor['id']})

async def list_user_listings(seller_id: int):
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            select(Listing).where(Listing.seller_id == seller_id).order_by(Listing.created_at.desc(), Listing.id.desc())
        )
        return res.scalars().all()

# blocks
async def block_user(blocker: dict, blocked_id: int):
    if blocked_id == blocker['id']:
        raise ValidationError('Cannot block yourself')
    async with AsyncSessionLocal() as session:
        target = await session.get(User, blocked_id)
        if not target or target.campus_id != blocker['campus_id']:
            raise NotFound('User not found')
        block = Block(blocker_id=blocker['id'], blocked_id=blocked_id)
        session.add(block)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise ValidationError('User already blocked')
        block_id = block.id
    async with AsyncSessionLocal() as session:
        return await session.get(Block, block_id)

async def unblock_user(blocker_id: int, blocked_id: int):
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            delete(Block).where(Block.blocker_id == blocker_id, Block.blocked_id == blocked_id)
        )
        await session.commit()
        if res.rowcount == 0:
            raise NotFound('Block not found')

async def list_blocks(blocker_id: int):
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            select(Block).where(Block.blocker_id == blocker_id).order_by(Block.created_at.desc(), Block.id.desc())
        )
        return res.scalars().all()

# reports
async def create_report(reporter: dict, payload):
    async with AsyncSessionLocal() as session:
        if payload.listing_id is not None:
            listing = await session.get(Listing, payload.listing_id)
            if not listing or listing.campus_id != reporter['campus_id']:
                raise NotFound('Listing not found')
        if payload.target_user_id is not None:
            target = await session.get(User, payload.target_user_id)
            if not target or target.campus_id != reporter['campus_id']:
                raise NotFound('User not found')
            if payload.target_user_id == reporter['id']:
                raise ValidationError('Cannot report yourself')
        report = Report(
            reporter_id=reporter['id'],
            listing_id=payload.listing_id,
            target_user_id=payload.target_user_id,
            reason=payload.reason,
        )
        session.add(report)
        await session.commit()
        report_id = report.id
    logger.info({'msg': 'report_created', 'report_id': report_id, 'reporter_id': reporter['id']})
    async with AsyncSessionLocal() as session:
        return await session.get(Report, report_id)

async def list_reports():
    async with AsyncSessionLocal() as session:
        res = await session.execute(select(Report).order_by(Report.created_at.desc(), Report.id.desc()))
        return res.scalars().all()
