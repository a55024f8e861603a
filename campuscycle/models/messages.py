from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from . import Base, utcnow

MAX_MESSAGE_LENGTH = 5000

class Message(Base):
    __tablename__ = 'messages'
    id = Column(Integer, primary_key=True)
    thread_id = Column(Integer, ForeignKey('chat_threads.id', ondelete='CASCADE'), index=True, nullable=False)
    sender_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    sender = relationship('User', lazy='joined')
