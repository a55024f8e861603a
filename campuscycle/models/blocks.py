from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from . import Base, utcnow

class Block(Base):
    __tablename__ = 'blocks'
    id = Column(Integer, primary_key=True)
    blocker_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    blocked_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    __table_args__ = (
        UniqueConstraint('blocker_id', 'blocked_id', name='uix_block_pair'),
    )

    blocked = relationship('User', foreign_keys=[blocked_id], lazy='joined')
