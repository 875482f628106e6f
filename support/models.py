# support/models.py
from sqlalchemy import Column, Integer, String, Text, DateTime
from database import Base, utcnow
from datetime import datetime
from typing import Optional

class SupportTicket(Base):
    """A message sent through the public contact form."""
    __tablename__ = "support_tickets"

    id: int = Column(Integer, primary_key=True, index=True)
    name: str = Column(String, nullable=False)
    email: str = Column(String, nullable=False, index=True)
    phone: Optional[str] = Column(String, nullable=True)
    message: str = Column(Text, nullable=False)
    status: str = Column(String, nullable=False, default="pending")  # pending, in_progress, resolved, closed
    created_at: datetime = Column(DateTime, default=utcnow)
    updated_at: datetime = Column(DateTime, default=utcnow, onupdate=utcnow)
