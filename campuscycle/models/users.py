from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from . import Base, utcnow

ROLE_USER = 'USER'
ROLE_ADMIN = 'ADMIN'

class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=True)
    name = Column(String(100), nullable=True)
    avatar = Column(String(500), nullable=True)
    grad_year = Column(Integer, nullable=True)
    campus_id = Column(Integer, ForeignKey('campuses.id', ondelete='CASCADE'), index=True, nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_USER)
    is_verified = Column(Boolean, nullable=False, default=False)
    verify_token = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    campus = relationship('Campus', lazy='joined')
