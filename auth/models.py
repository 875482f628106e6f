# auth/models.py
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base, utcnow
from datetime import datetime, date
from typing import Optional

class User(Base):
    """Represents a tenant, property owner or admin."""
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)
    name: str = Column(String, nullable=False)
    email: str = Column(String, unique=True, index=True, nullable=False)
    phone: str = Column(String, unique=True, index=True, nullable=False)
    password_hash: str = Column(String, nullable=False)
    user_type: str = Column(String, nullable=False, default="tenant")  # tenant, owner, admin
    is_verified: bool = Column(Boolean, nullable=False, default=False)

    # tenant
    occupation: Optional[str] = Column(String, nullable=True)
    family_members: Optional[str] = Column(String, nullable=True)
    preferred_location: Optional[str] = Column(String, nullable=True)
    budget: Optional[int] = Column(Integer, nullable=True)
    move_in_date: Optional[date] = Column(Date, nullable=True)
    # owner
    property_type: Optional[str] = Column(String, nullable=True)
    total_properties: Optional[str] = Column(String, nullable=True)
    company_name: Optional[str] = Column(String, nullable=True)
    address: Optional[str] = Column(String, nullable=True)
    total_properties_allowed: int = Column(Integer, nullable=False, default=0)
    # admin
    department: Optional[str] = Column(String, nullable=True)

    # credit state, mutated only by the ledger together with a CreditTransaction
    credits: int = Column(Integer, nullable=False, default=0)
    credit_expiry: Optional[datetime] = Column(DateTime, nullable=True)
    total_purchased_credits: int = Column(Integer, nullable=False, default=0)
    total_used_credits: int = Column(Integer, nullable=False, default=0)

    created_at: datetime = Column(DateTime, default=utcnow)
    updated_at: datetime = Column(DateTime, default=utcnow, onupdate=utcnow)

    properties = relationship("Property", back_populates="owner")
    payments = relationship("Payment", back_populates="user")
    credit_transactions = relationship("CreditTransaction", back_populates="user")
    admin_actions = relationship("AdminActionLog", back_populates="admin")

    __table_args__ = (CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),)

class VerificationToken(Base):
    """Email verification and password reset tokens."""
    __tablename__ = "verification_tokens"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)
    token: str = Column(String, unique=True, index=True, nullable=False)
    token_type: str = Column(String, nullable=False)  # verify, reset
    expiry: datetime = Column(DateTime, nullable=False)

class AdminActionLog(Base):
    """Represents a log of admin actions."""
    __tablename__ = "admin_action_logs"

    id: int = Column(Integer, primary_key=True, index=True)
    admin_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)
    action: str = Column(String, nullable=False)
    timestamp: datetime = Column(DateTime, nullable=False, default=utcnow)

    admin = relationship("User", back_populates="admin_actions")
