# viewing/models.py
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from database import Base, utcnow
from datetime import datetime, date
from typing import Optional

class ViewingRequest(Base):
    """A request to visit a property, optionally tied to a listing."""
    __tablename__ = "viewing_requests"

    id: int = Column(Integer, primary_key=True, index=True)
    name: str = Column(String, nullable=False)
    phone: str = Column(String, nullable=False, index=True)
    preferred_date: Optional[date] = Column(Date, nullable=True)
    preferred_time: Optional[str] = Column(String, nullable=True)
    property_type: Optional[str] = Column(String, nullable=True)
    location: Optional[str] = Column(String, nullable=True)
    property_link: Optional[str] = Column(String, nullable=True)
    message: Optional[str] = Column(Text, nullable=True)
    property_id: Optional[int] = Column(Integer, ForeignKey("properties.id"), nullable=True, index=True)
    user_id: Optional[int] = Column(Integer, ForeignKey("users.id"), nullable=True)
    status: str = Column(String, nullable=False, default="pending")  # pending, confirmed, completed, cancelled
    created_at: datetime = Column(DateTime, default=utcnow)
    updated_at: datetime = Column(DateTime, default=utcnow, onupdate=utcnow)

    property = relationship("Property")
