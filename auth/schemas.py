# auth/schemas.py
from pydantic import BaseModel, EmailStr
from datetime import datetime, date
from typing import Optional

class UserCreate(BaseModel):
    """Schema for user registration. Role specific rules are checked by AuthService."""
    name: str
    email: EmailStr
    phone: str
    password: str
    confirm_password: str
    user_type: str = "tenant"
    # tenant
    occupation: Optional[str] = None
    family_members: Optional[str] = None
    preferred_location: Optional[str] = None
    budget: Optional[int] = None
    move_in_date: Optional[date] = None
    # owner
    property_type: Optional[str] = None
    total_properties: Optional[str] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    # admin
    admin_code: Optional[str] = None
    department: Optional[str] = None

class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    """Schema for user response."""
    id: int
    name: str
    email: str
    phone: str
    user_type: str
    is_verified: bool
    credits: int
    credit_expiry: Optional[datetime] = None
    total_properties_allowed: int
    occupation: Optional[str] = None
    family_members: Optional[str] = None
    preferred_location: Optional[str] = None
    budget: Optional[int] = None
    move_in_date: Optional[date] = None
    property_type: Optional[str] = None
    total_properties: Optional[str] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    department: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    occupation: Optional[str] = None
    family_members: Optional[str] = None
    preferred_location: Optional[str] = None
    budget: Optional[int] = None
    move_in_date: Optional[date] = None
    property_type: Optional[str] = None
    company_name: Optional[str] = None
    address: Optional[str] = None
    department: Optional[str] = None

class Token(BaseModel):
    """Schema for token response."""
    access_token: str
    token_type: str
    user: Optional[UserResponse] = None

class RegisterResponse(BaseModel):
    message: str
    user: UserResponse
    access_token: str
    token_type: str = "bearer"

class AdminActionLogResponse(BaseModel):
    """Schema for admin action log response."""
    id: int
    admin_id: int
    action: str
    timestamp: datetime

    class Config:
        from_attributes = True

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str
