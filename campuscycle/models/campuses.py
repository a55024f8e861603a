from sqlalchemy import Column, Integer, String, DateTime
from . import Base, utcnow

class Campus(Base):
    __tablename__ = 'campuses'
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
