# viewing/schemas.py
from pydantic import BaseModel
from datetime import datetime, date
from typing import List, Optional

from payment.schemas import Pagination

class ViewingCreate(BaseModel):
    name: str
    phone: str
    preferred_date: Optional[date] = None
    preferred_time: Optional[str] = None
    property_type: Optional[str] = None
    location: Optional[str] = None
    property_link: Optional[str] = None
    message: Optional[str] = None
    property_id: Optional[int] = None

class ViewingResponse(BaseModel):
    id: int
    name: str
    phone: str
    preferred_date: Optional[date]
    preferred_time: Optional[str]
    property_type: Optional[str]
    location: Optional[str]
    property_link: Optional[str]
    message: Optional[str]
    property_id: Optional[int]
    user_id: Optional[int]
    status: str
    created_at: datetime

    class Config:
        from_attributes = True

class ViewingListResponse(BaseModel):
    viewings: List[ViewingResponse]
    pagination: Pagination

class ViewingStatusUpdate(BaseModel):
    status: str
