# support/schemas.py
from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import List, Optional

from payment.schemas import Pagination

class TicketCreate(BaseModel):
    """Schema for the public contact form."""
    name: str
    email: EmailStr
    phone: Optional[str] = None
    message: str

class TicketResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]
    message: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True

class TicketListResponse(BaseModel):
    tickets: List[TicketResponse]
    pagination: Pagination

class StatusUpdate(BaseModel):
    status: str
