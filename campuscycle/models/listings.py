from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from . import Base, utcnow

LISTING_STATUSES = ('AVAILABLE', 'CLAIMED', 'SOLD')

class Listing(Base):
    __tablename__ = 'listings'
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), index=True, nullable=False)
    condition = Column(String(100), nullable=False)
    price = Column(Float, nullable=False, default=0)
    is_giveaway = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), index=True, nullable=False, default='AVAILABLE')
    location = Column(String(255), nullable=True)
    zipcode = Column(String(20), nullable=True)
    available_from = Column(DateTime(timezone=True), nullable=True)
    available_to = Column(DateTime(timezone=True), nullable=True)
    campus_id = Column(Integer, ForeignKey('campuses.id', ondelete='CASCADE'), index=True, nullable=False)
    seller_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    seller = relationship('User', lazy='joined')
    images = relationship('ListingImage', lazy='selectin', order_by='ListingImage.id')


class ListingImage(Base):
    __tablename__ = 'listing_images'
    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey('listings.id', ondelete='CASCADE'), index=True, nullable=False)
    url = Column(String(1000), nullable=False)
