# payment/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Float, Index
from sqlalchemy.orm import relationship
from database import Base, utcnow
from datetime import datetime
from typing import Optional

class Payment(Base):
    """One credit purchase attempt: pending -> completed | failed."""
    __tablename__ = "payments"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id: str = Column(String, unique=True, index=True, nullable=False)
    gateway: str = Column(String, nullable=False)  # razorpay, local
    gateway_payment_id: Optional[str] = Column(String, nullable=True)
    signature: Optional[str] = Column(String, nullable=True)

    plan_type: str = Column(String, nullable=False)
    credits: int = Column(Integer, nullable=False)
    base_price: float = Column(Float, nullable=False)
    tax_percentage: int = Column(Integer, nullable=False)
    tax_amount: int = Column(Integer, nullable=False)
    amount: int = Column(Integer, nullable=False)  # base_price + tax, major units
    currency: str = Column(String, nullable=False)
    validity_days: int = Column(Integer, nullable=False)
    expires_at: datetime = Column(DateTime, nullable=False)

    status: str = Column(String, nullable=False, default="pending")
    payment_method: Optional[str] = Column(String, nullable=True)
    payment_details: Optional[str] = Column(Text, nullable=True)  # raw gateway entity (JSON)
    created_at: datetime = Column(DateTime, default=utcnow)
    updated_at: datetime = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="payments")

class CreditTransaction(Base):
    """Append-only ledger entry; replaying a user's entries reproduces users.credits."""
    __tablename__ = "credit_transactions"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)
    transaction_type: str = Column(String, nullable=False)  # purchase, used, bonus
    credits: int = Column(Integer, nullable=False)  # signed delta
    balance_after: int = Column(Integer, nullable=False)
    payment_id: Optional[int] = Column(Integer, ForeignKey("payments.id"), nullable=True)
    property_id: Optional[int] = Column(Integer, ForeignKey("properties.id"), nullable=True)
    description: Optional[str] = Column(String, nullable=True)
    expires_at: Optional[datetime] = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="credit_transactions")
    payment = relationship("Payment")

    __table_args__ = (
        Index("ix_credit_transactions_user_property", "user_id", "property_id", "transaction_type"),
        Index("ix_credit_transactions_user_created", "user_id", "created_at"),
    )
