from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from . import Base, utcnow

class Thread(Base):
    __tablename__ = 'chat_threads'
    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey('listings.id', ondelete='CASCADE'), index=True, nullable=False)
    buyer_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    seller_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    __table_args__ = (
        UniqueConstraint('listing_id', 'buyer_id', name='uix_thread_listing_buyer'),
    )

    listing = relationship('Listing', lazy='joined')
    buyer = relationship('User', foreign_keys=[buyer_id], lazy='joined')
    seller = relationship('User', foreign_keys=[seller_id], lazy='joined')

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.buyer_id, self.seller_id)
