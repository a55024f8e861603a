"""
Demo data for local development.

    python -m campuscycle.seed

Drops and recreates every table, then loads two campuses, five verified
users (password ``password123``), a handful of listings and one
conversation.
"""
import asyncio
import logging
from sqlalchemy import update
from .models import AsyncSessionLocal, Base, engine, utcnow
from .models.campuses import Campus
from .models.users import User, ROLE_ADMIN
from .models.listings import Listing, ListingImage
from .models.messages import Message
from .auth import hash_password, principal_for
from .cache import invalidate_campuses_cache
from .core import redis_startup, shutdown_connections
from .messaging import create_or_get_thread, append_message

logger = logging.getLogger('campuscycle.seed')

DEMO_PASSWORD = 'password123'

CAMPUSES = [
    ('State University', 'stateu'),
    ('Tech University', 'techu'),
]

USERS = [
    ('alice@stateu.edu', 'Alice Johnson', 'stateu', ROLE_ADMIN),
    ('bob@stateu.edu', 'Bob Smith', 'stateu', None),
    ('charlie@stateu.edu', 'Charlie Brown', 'stateu', None),
    ('diana@techu.edu', 'Diana Prince', 'techu', None),
    ('eve@techu.edu', 'Eve Wilson', 'techu', None),
]

LISTINGS = [
    {
        'seller': 'alice@stateu.edu',
        'title': 'Calculus Textbook - Used but Good',
        'description': 'Calculus textbook used for one semester. Good condition with some highlighting.',
        'category': 'textbooks', 'condition': 'good', 'price': 15.0, 'status': 'AVAILABLE',
        'location': 'State University Library', 'zipcode': '12345', 'image': '/uploads/calc-book.jpg',
    },
    {
        'seller': 'bob@stateu.edu',
        'title': 'Free Desk Chair',
        'description': 'Office chair in good condition. Moving out and need to get rid of it.',
        'category': 'furniture', 'condition': 'good', 'price': 0, 'is_giveaway': True, 'status': 'AVAILABLE',
        'location': 'State University Dorms', 'zipcode': '12345', 'image': '/uploads/chair.jpg',
    },
    {
        'seller': 'charlie@stateu.edu',
        'title': 'Laptop - Slightly Used',
        'description': 'MacBook Pro 13" from 2020. Still works great, just upgrading.',
        'category': 'electronics', 'condition': 'excellent', 'price': 450.0, 'status': 'CLAIMED',
        'location': 'State University Campus', 'zipcode': '12345', 'image': '/uploads/laptop.jpg',
    },
    {
        'seller': 'diana@techu.edu',
        'title': 'Programming Textbooks Bundle',
        'description': 'Data Structures, Algorithms, and OS books. All in great condition.',
        'category': 'textbooks', 'condition': 'excellent', 'price': 50.0, 'status': 'AVAILABLE',
        'location': 'Tech University Bookstore', 'zipcode': '54321', 'image': '/uploads/cs-books.jpg',
    },
    {
        'seller': 'eve@techu.edu',
        'title': 'Free Plant Collection',
        'description': "Moving out and can't take my plants. Free to good home!",
        'category': 'other', 'condition': 'good', 'price': 0, 'is_giveaway': True, 'status': 'AVAILABLE',
        'location': 'Tech University Apartments', 'zipcode': '54321', 'image': '/uploads/plants.jpg',
    },
]


async def reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def seed():
    await reset_schema()
    password_hash = hash_password(DEMO_PASSWORD)

    async with AsyncSessionLocal() as session:
        campuses = {code: Campus(name=name, code=code) for name, code in CAMPUSES}
        session.add_all(campuses.values())
        await session.flush()

        users = {}
        for email, name, campus_code, role in USERS:
            user = User(
                email=email,
                name=name,
                password_hash=password_hash,
                campus_id=campuses[campus_code].id,
                is_verified=True,
            )
            if role:
                user.role = role
            users[email] = user
        session.add_all(users.values())
        await session.flush()

        listings = []
        for entry in LISTINGS:
            data = dict(entry)
            seller = users[data.pop('seller')]
            image = data.pop('image')
            listing = Listing(**data, campus_id=seller.campus_id, seller_id=seller.id)
            listing.images = [ListingImage(url=image)]
            listings.append(listing)
        session.add_all(listings)
        await session.commit()

        alice, bob = users['alice@stateu.edu'], users['bob@stateu.edu']
        textbook_id = listings[0].id

    # the demo conversation goes through the same message log as live traffic
    thread = await create_or_get_thread(textbook_id, principal_for(bob))
    await append_message(thread.id, bob.id, 'Hi! Is the calculus textbook still available?')
    reply = await append_message(thread.id, alice.id, 'Yes, it is! Would you like to meet up tomorrow?')

    async with AsyncSessionLocal() as session:
        await session.execute(update(Message).where(Message.id == reply.id).values(read_at=utcnow()))
        await session.commit()

    await invalidate_campuses_cache()
    logger.info({'msg': 'seed_complete', 'campuses': len(CAMPUSES), 'users': len(USERS), 'listings': len(LISTINGS)})
    return {'campuses': campuses, 'users': users, 'listings': listings, 'thread': thread}


async def run():
    await redis_startup()
    try:
        await seed()
    finally:
        await shutdown_connections()


def main():
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s %(message)s')
    asyncio.run(run())
    print(f'Seeding complete. Demo accounts use the password {DEMO_PASSWORD!r}:')
    for email, name, campus_code, role in USERS:
        print(f"  {email} ({'admin' if role else 'student'} at {campus_code})")


if __name__ == '__main__':
    main()
