import asyncio
import os
import sys
import tempfile
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Configure test environment: a throwaway sqlite file, no Redis
TEST_DB = Path(tempfile.gettempdir()) / f'campuscycle-test-{os.getpid()}.db'
os.environ.setdefault('DATABASE_URL', f'sqlite+aiosqlite:///{TEST_DB}')
os.environ.pop('REDIS_URL', None)

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from campuscycle.main import app  # noqa: E402
from campuscycle.models import AsyncSessionLocal, Base, engine  # noqa: E402
from campuscycle.models.campuses import Campus  # noqa: E402
from campuscycle.models.users import User, ROLE_USER  # noqa: E402
from campuscycle.models.listings import Listing, ListingImage  # noqa: E402
from campuscycle.auth import hash_password, create_access_token, principal_for  # noqa: E402

PASSWORD = 'password123'
_PASSWORD_HASH = hash_password(PASSWORD)


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def fresh_db():
    asyncio.run(_reset_schema())
    yield


class Factory:
    """Creates rows directly, bypassing the HTTP layer."""

    async def campus(self, code=None, name=None):
        code = code or f'campus-{uuid.uuid4().hex[:6]}'
        async with AsyncSessionLocal() as session:
            campus = Campus(name=name or code.title(), code=code)
            session.add(campus)
            await session.commit()
            return campus

    async def user(self, campus, email=None, name=None, verified=True, role=ROLE_USER):
        email = email or f'user-{uuid.uuid4().hex[:8]}@{campus.code}.edu'
        async with AsyncSessionLocal() as session:
            user = User(
                email=email,
                name=name or email.split('@')[0],
                password_hash=_PASSWORD_HASH,
                campus_id=campus.id,
                is_verified=verified,
                role=role,
            )
            session.add(user)
            await session.commit()
            return user

    async def listing(self, seller, **overrides):
        data = {
            'title': 'Desk lamp',
            'description': 'Works fine, LED bulb included',
            'category': 'furniture',
            'condition': 'good',
            'price': 10.0,
            'status': 'AVAILABLE',
        }
        images = overrides.pop('images', [])
        data.update(overrides)
        async with AsyncSessionLocal() as session:
            listing = Listing(**data, campus_id=seller.campus_id, seller_id=seller.id)
            listing.images = [ListingImage(url=url) for url in images]
            session.add(listing)
            await session.commit()
            return listing

    @staticmethod
    def principal(user):
        return principal_for(user)

    @staticmethod
    def auth(user):
        return {'Authorization': f'Bearer {create_access_token(user)}'}


@pytest.fixture
def factory():
    return Factory()


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac


@pytest_asyncio.fixture
async def marketplace(factory):
    """One campus with a seller, a buyer, an outsider and a listing; plus a user on another campus."""
    campus = await factory.campus('stateu', 'State University')
    other_campus = await factory.campus('techu', 'Tech University')
    seller = await factory.user(campus, 'seller@stateu.edu', 'Sam Seller')
    buyer = await factory.user(campus, 'buyer@stateu.edu', 'Bea Buyer')
    outsider = await factory.user(campus, 'outsider@stateu.edu', 'Uma Outsider')
    stranger = await factory.user(other_campus, 'stranger@techu.edu', 'Tom Stranger')
    listing = await factory.listing(seller, title='Calculus textbook', price=15.0)
    return {
        'campus': campus,
        'other_campus': other_campus,
        'seller': seller,
        'buyer': buyer,
        'outsider': outsider,
        'stranger': stranger,
        'listing': listing,
    }
