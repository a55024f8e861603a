"""initial

Revision ID: 0001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('campuses',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_campuses_code', 'campuses', ['code'], unique=True)
    op.create_table('users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('grad_year', sa.Integer, nullable=True),
        sa.Column('campus_id', sa.Integer, sa.ForeignKey('campuses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='USER'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verify_token', sa.String(64), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_campus_id', 'users', ['campus_id'])
    op.create_table('listings',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('condition', sa.String(100), nullable=False),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('is_giveaway', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='AVAILABLE'),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('zipcode', sa.String(20), nullable=True),
        sa.Column('available_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('available_to', sa.DateTime(timezone=True), nullable=True),
        sa.Column('campus_id', sa.Integer, sa.ForeignKey('campuses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seller_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_listings_category', 'listings', ['category'])
    op.create_index('ix_listings_status', 'listings', ['status'])
    op.create_index('ix_listings_campus_id', 'listings', ['campus_id'])
    op.create_index('ix_listings_seller_id', 'listings', ['seller_id'])
    op.create_index('ix_listings_created_at', 'listings', ['created_at'])
    op.create_table('listing_images',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('listing_id', sa.Integer, sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.String(1000), nullable=False)
    )
    op.create_index('ix_listing_images_listing_id', 'listing_images', ['listing_id'])
    op.create_table('chat_threads',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('listing_id', sa.Integer, sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('buyer_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seller_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('listing_id', 'buyer_id', name='uix_thread_listing_buyer')
    )
    op.create_index('ix_chat_threads_listing_id', 'chat_threads', ['listing_id'])
    op.create_index('ix_chat_threads_buyer_id', 'chat_threads', ['buyer_id'])
    op.create_index('ix_chat_threads_seller_id', 'chat_threads', ['seller_id'])
    op.create_index('ix_chat_threads_updated_at', 'chat_threads', ['updated_at'])
    op.create_table('messages',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('thread_id', sa.Integer, sa.ForeignKey('chat_threads.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True)
    )
    op.create_index('ix_messages_thread_id', 'messages', ['thread_id'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])
    op.create_table('blocks',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('blocker_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('blocked_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('blocker_id', 'blocked_id', name='uix_block_pair')
    )
    op.create_index('ix_blocks_blocker_id', 'blocks', ['blocker_id'])
    op.create_index('ix_blocks_blocked_id', 'blocks', ['blocked_id'])
    op.create_table('reports',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('reporter_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('listing_id', sa.Integer, sa.ForeignKey('listings.id', ondelete='SET NULL'), nullable=True),
        sa.Column('target_user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_reports_reporter_id', 'reports', ['reporter_id'])
    op.create_index('ix_reports_created_at', 'reports', ['created_at'])

def downgrade():
    op.drop_table('reports')
    op.drop_table('blocks')
    op.drop_table('messages')
    op.drop_table('chat_threads')
    op.drop_table('listing_images')
    op.drop_table('listings')
    op.drop_table('users')
    op.drop_table('campuses')
