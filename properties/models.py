# properties/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, DateTime, Date, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base, utcnow
from datetime import datetime, date
from typing import Optional

class Property(Base):
    """A rental listing. Contact fields are only released through the credit gate."""
    __tablename__ = "properties"

    id: int = Column(Integer, primary_key=True, index=True)
    property_code: Optional[str] = Column(String, unique=True, nullable=True)  # PROP000123
    owner_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title: str = Column(String, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    property_type: str = Column(String, nullable=False, default="apartment")
    property_for: str = Column(String, nullable=False, default="Rent")

    address: str = Column(String, nullable=False, default="")
    city: str = Column(String, nullable=False, index=True)
    state: str = Column(String, nullable=False, default="")
    pincode: str = Column(String, nullable=False, default="")
    locality: str = Column(String, nullable=False, default="")
    landmark: Optional[str] = Column(String, nullable=True)

    bedrooms: int = Column(Integer, nullable=False, default=1)
    bathrooms: int = Column(Integer, nullable=False, default=1)
    total_floors: Optional[int] = Column(Integer, nullable=True)
    floor_number: Optional[int] = Column(Integer, nullable=True)
    built_up_area: int = Column(Integer, nullable=False, default=0)
    area_unit: str = Column(String, nullable=False, default="sq ft")

    price: float = Column(Float, nullable=False, default=0)
    currency: str = Column(String, nullable=False, default="INR")
    price_type: str = Column(String, nullable=False, default="Monthly")
    maintenance_charge: Optional[float] = Column(Float, nullable=True)
    security_deposit: Optional[float] = Column(Float, nullable=True)
    furnishing_status: str = Column(String, nullable=False, default="semi")
    facing: Optional[str] = Column(String, nullable=True)
    property_age: Optional[str] = Column(String, nullable=True)
    available_from: Optional[date] = Column(Date, nullable=True)
    preferred_tenant_type: str = Column(String, nullable=False, default="any")
    additional_features: Optional[str] = Column(Text, nullable=True)

    contact_person_name: str = Column(String, nullable=False, default="")
    contact_person_phone: str = Column(String, nullable=False, default="")
    contact_person_email: str = Column(String, nullable=False, default="")
    contact_person_whatsapp: Optional[str] = Column(String, nullable=True)

    status: str = Column(String, nullable=False, default="pending")  # pending, approved, rejected
    rejection_reason: Optional[str] = Column(String, nullable=True)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    is_featured: bool = Column(Boolean, nullable=False, default=False)
    views: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(DateTime, default=utcnow)
    updated_at: datetime = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="properties")
    images = relationship("PropertyImage", back_populates="property", cascade="all, delete-orphan",
                          order_by="PropertyImage.id")
    amenities = relationship("PropertyAmenity", back_populates="property", cascade="all, delete-orphan",
                             order_by="PropertyAmenity.id")

class PropertyImage(Base):
    """Media stored in the remote object store."""
    __tablename__ = "property_images"

    id: int = Column(Integer, primary_key=True, index=True)
    property_id: int = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    url: str = Column(String, nullable=False)
    public_id: Optional[str] = Column(String, nullable=True)
    resource_type: str = Column(String, nullable=False, default="image")  # image, video, audio
    format: Optional[str] = Column(String, nullable=True)
    bytes: Optional[int] = Column(Integer, nullable=True)
    caption: str = Column(String, nullable=False, default="")
    is_primary: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=utcnow)

    property = relationship("Property", back_populates="images")

class PropertyAmenity(Base):
    __tablename__ = "property_amenities"

    id: int = Column(Integer, primary_key=True, index=True)
    property_id: int = Column(Integer, ForeignKey("properties.id"), nullable=False)
    amenity: str = Column(String, nullable=False)

    property = relationship("Property", back_populates="amenities")

    __table_args__ = (UniqueConstraint('property_id', 'amenity', name='unique_property_amenity'),)
