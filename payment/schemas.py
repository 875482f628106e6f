# payment/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

class CreateOrderRequest(BaseModel):
    """Schema for a credit purchase order. Business checks happen in the ledger."""
    plan_type: Optional[str] = None
    credits: Optional[int] = None
    base_price: Optional[float] = None
    validity_days: Optional[int] = None

class OrderResponse(BaseModel):
    order_id: str
    amount: int  # minor units (paise)
    total_amount: int
    currency: str
    key: str
    offline: bool
    user_id: int
    plan_type: str
    credits: int
    base_price: float
    tax_amount: int
    validity_days: int
    expires_at: datetime
    test_payment_id: Optional[str] = None
    test_signature: Optional[str] = None

class VerifyPaymentRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str

class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    payment_id: str
    credits: int
    amount: int
    expires_at: datetime
    balance: int
    already_processed: bool = False

class UseCreditRequest(BaseModel):
    property_id: Any = None

class ContactDetails(BaseModel):
    name: str
    phone: str
    email: str
    whatsapp: Optional[str] = None

class UseCreditResponse(BaseModel):
    contact_details: ContactDetails
    remaining_credits: int
    first_time_view: bool
    charged: bool
    message: str

class CreditTransactionResponse(BaseModel):
    id: int
    transaction_type: str
    credits: int
    balance_after: int
    payment_id: Optional[int]
    property_id: Optional[int]
    description: Optional[str]
    expires_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True

class ExpiryInfo(BaseModel):
    date: datetime
    days_remaining: int
    is_expired: bool

class BalanceResponse(BaseModel):
    balance: int
    stored_credits: int
    credit_expiry: Optional[datetime]
    expiry_info: Optional[ExpiryInfo]
    total_purchased: int
    total_used: int
    is_expired: bool
    recent_transactions: List[CreditTransactionResponse] = Field(default_factory=list)

class PaymentResponse(BaseModel):
    """Schema for payment response."""
    id: int
    user_id: int
    order_id: str
    gateway: str
    gateway_payment_id: Optional[str]
    plan_type: str
    credits: int
    base_price: float
    tax_percentage: int
    tax_amount: int
    amount: int
    currency: str
    validity_days: int
    expires_at: datetime
    status: str
    payment_method: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentResponse]
    pagination: Pagination

class TransactionHistoryResponse(BaseModel):
    transactions: List[CreditTransactionResponse]
    pagination: Pagination

class WebhookAck(BaseModel):
    success: bool
    detail: Optional[Dict[str, Any]] = None
