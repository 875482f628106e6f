# properties/schemas.py
from pydantic import BaseModel, EmailStr
from datetime import datetime, date
from typing import List, Optional

from payment.schemas import Pagination

class PropertyBase(BaseModel):
    title: str
    description: Optional[str] = None
    property_type: str = "apartment"
    property_for: str = "Rent"
    address: str = ""
    city: str
    state: str = ""
    pincode: str = ""
    locality: str = ""
    landmark: Optional[str] = None
    bedrooms: int = 1
    bathrooms: int = 1
    total_floors: Optional[int] = None
    floor_number: Optional[int] = None
    built_up_area: int = 0
    area_unit: str = "sq ft"
    price: float
    price_type: str = "Monthly"
    maintenance_charge: Optional[float] = None
    security_deposit: Optional[float] = None
    furnishing_status: str = "semi"
    facing: Optional[str] = None
    property_age: Optional[str] = None
    available_from: Optional[date] = None
    preferred_tenant_type: str = "any"
    additional_features: Optional[str] = None

class PropertyCreate(PropertyBase):
    """Schema for creating a listing; the contact block is what credits unlock."""
    contact_person_name: str
    contact_person_phone: str
    contact_person_email: EmailStr
    contact_person_whatsapp: Optional[str] = None
    amenities: List[str] = []

class PropertyUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    property_type: Optional[str] = None
    property_for: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    locality: Optional[str] = None
    landmark: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    total_floors: Optional[int] = None
    floor_number: Optional[int] = None
    built_up_area: Optional[int] = None
    area_unit: Optional[str] = None
    price: Optional[float] = None
    price_type: Optional[str] = None
    maintenance_charge: Optional[float] = None
    security_deposit: Optional[float] = None
    furnishing_status: Optional[str] = None
    facing: Optional[str] = None
    property_age: Optional[str] = None
    available_from: Optional[date] = None
    preferred_tenant_type: Optional[str] = None
    additional_features: Optional[str] = None
    contact_person_name: Optional[str] = None
    contact_person_phone: Optional[str] = None
    contact_person_email: Optional[EmailStr] = None
    contact_person_whatsapp: Optional[str] = None
    amenities: Optional[List[str]] = None

class PropertyImageResponse(BaseModel):
    id: int
    url: str
    public_id: Optional[str]
    resource_type: str
    format: Optional[str]
    bytes: Optional[int]
    caption: str
    is_primary: bool

    class Config:
        from_attributes = True

class PropertyResponse(PropertyBase):
    """Public view of a listing. Never carries the contact block."""
    id: int
    property_code: Optional[str]
    owner_id: int
    currency: str
    status: str
    is_featured: bool
    views: int
    created_at: datetime
    images: List[PropertyImageResponse] = []
    amenities: List[str] = []
    contact_unlocked: Optional[bool] = None

    @classmethod
    def from_orm(cls, obj, contact_unlocked: Optional[bool] = None):
        data = {name: getattr(obj, name) for name in PropertyBase.model_fields}
        return cls(
            **data,
            id=obj.id,
            property_code=obj.property_code,
            owner_id=obj.owner_id,
            currency=obj.currency,
            status=obj.status,
            is_featured=obj.is_featured,
            views=obj.views,
            created_at=obj.created_at,
            images=[PropertyImageResponse.model_validate(image) for image in obj.images],
            amenities=[a.amenity for a in obj.amenities],
            contact_unlocked=contact_unlocked,
        )

    class Config:
        from_attributes = True

class OwnerPropertyResponse(PropertyResponse):
    """What the owner (or an admin) sees, contact block and moderation state included."""
    contact_person_name: str
    contact_person_phone: str
    contact_person_email: str
    contact_person_whatsapp: Optional[str]
    is_active: bool
    rejection_reason: Optional[str]

    @classmethod
    def from_orm(cls, obj, contact_unlocked: Optional[bool] = None):
        public = PropertyResponse.from_orm(obj, contact_unlocked)
        return cls(
            **public.model_dump(),
            contact_person_name=obj.contact_person_name,
            contact_person_phone=obj.contact_person_phone,
            contact_person_email=obj.contact_person_email,
            contact_person_whatsapp=obj.contact_person_whatsapp,
            is_active=obj.is_active,
            rejection_reason=obj.rejection_reason,
        )

class PropertyListResponse(BaseModel):
    properties: List[PropertyResponse]
    pagination: Pagination

class RejectRequest(BaseModel):
    reason: str
