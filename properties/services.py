# properties/services.py
import logging
import math
import re
from typing import List, Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from auth.models import AdminActionLog, User
from config import settings
from media.storage import MediaStorage
from payment.consumption import has_unlocked
from payment.errors import InvalidInput, NotFound, unit_of_work
from payment.schemas import Pagination
from properties.models import Property, PropertyAmenity, PropertyImage
from properties.schemas import (
    OwnerPropertyResponse, PropertyCreate, PropertyListResponse, PropertyResponse, PropertyUpdate,
)

logger = logging.getLogger(__name__)

PROPERTY_STATUSES = ("pending", "approved", "rejected")
SORT_ORDERS = {
    "newest": Property.created_at.desc(),
    "oldest": Property.created_at.asc(),
    "price-low": Property.price.asc(),
    "price-high": Property.price.desc(),
    "views": Property.views.desc(),
}
PHONE_PATTERN = re.compile(r"^\d{10}$")


def _clean_amenities(amenities: Optional[List[str]]) -> List[str]:
    seen = []
    for amenity in amenities or []:
        amenity = amenity.strip()
        if amenity and amenity not in seen:
            seen.append(amenity)
    return seen


class PropertyService:
    @staticmethod
    def _validate(data: dict) -> None:
        if "title" in data and not (data["title"] or "").strip():
            raise InvalidInput("title", "Title is required")
        if "city" in data and not (data["city"] or "").strip():
            raise InvalidInput("city", "City is required")
        if data.get("price") is not None and data["price"] < 0:
            raise InvalidInput("price", "Price must be a positive number")
        for field in ("bedrooms", "bathrooms", "built_up_area"):
            if data.get(field) is not None and data[field] < 0:
                raise InvalidInput(field, f"{field.replace('_', ' ').capitalize()} cannot be negative")
        if "contact_person_phone" in data and not PHONE_PATTERN.match(data["contact_person_phone"] or ""):
            raise InvalidInput("contact_person_phone", "Contact phone must be exactly 10 digits")

    @staticmethod
    def get_owned_property(property_id: int, user: User, db: Session) -> Property:
        """The property if the user owns it (admins own everything)."""
        prop = db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            raise NotFound("Property not found")
        if user.user_type != "admin" and prop.owner_id != user.id:
            raise HTTPException(status_code=403, detail="You can only manage your own properties")
        return prop

    @staticmethod
    def create_property(data: PropertyCreate, owner: User, db: Session) -> OwnerPropertyResponse:
        values = data.dict(exclude={"amenities"})
        PropertyService._validate(values)
        if owner.user_type != "admin":
            listed = db.query(func.count(Property.id)).filter(
                Property.owner_id == owner.id, Property.is_active == True  # noqa: E712
            ).scalar()
            if listed >= owner.total_properties_allowed:
                raise HTTPException(
                    status_code=403,
                    detail=f"Property limit reached ({owner.total_properties_allowed}). Contact support to list more.",
                )

        prop = Property(**values, owner_id=owner.id, currency=settings.CURRENCY, status="pending")
        with unit_of_work(db, "create_property", owner_id=owner.id):
            db.add(prop)
            db.flush()
            prop.property_code = f"PROP{prop.id:06d}"
            for amenity in _clean_amenities(data.amenities):
                db.add(PropertyAmenity(property_id=prop.id, amenity=amenity))
        db.refresh(prop)
        logger.info(f"Property {prop.property_code} created by user {owner.id}, awaiting approval")
        return OwnerPropertyResponse.from_orm(prop)

    @staticmethod
    def list_properties(
            db: Session,
            property_type: Optional[str] = None,
            city: Optional[str] = None,
            min_price: Optional[float] = None,
            max_price: Optional[float] = None,
            bedrooms: Optional[int] = None,
            property_for: Optional[str] = None,
            search: Optional[str] = None,
            sort: str = "newest",
            page: int = 1,
            limit: int = 12
    ) -> PropertyListResponse:
        """Approved, active listings with filters, search, sort and pagination."""
        query = db.query(Property).filter(Property.status == "approved", Property.is_active == True)  # noqa: E712
        if property_type:
            query = query.filter(Property.property_type == property_type)
        if city:
            query = query.filter(Property.city.ilike(f"%{city}%"))
        if min_price is not None:
            query = query.filter(Property.price >= min_price)
        if max_price is not None:
            query = query.filter(Property.price <= max_price)
        if bedrooms is not None:
            query = query.filter(Property.bedrooms == bedrooms)
        if property_for:
            query = query.filter(Property.property_for == property_for)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Property.title.ilike(pattern), Property.locality.ilike(pattern), Property.city.ilike(pattern)
            ))

        total = query.count()
        order = SORT_ORDERS.get(sort, SORT_ORDERS["newest"])
        properties = query.order_by(order, Property.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return PropertyListResponse(
            properties=[PropertyResponse.from_orm(p) for p in properties],
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_items=total,
                items_per_page=limit,
            ),
        )

    @staticmethod
    def featured_properties(limit: int, db: Session) -> List[PropertyResponse]:
        properties = db.query(Property).filter(
            Property.status == "approved",
            Property.is_active == True,  # noqa: E712
            Property.is_featured == True  # noqa: E712
        ).order_by(Property.created_at.desc()).limit(limit).all()
        return [PropertyResponse.from_orm(p) for p in properties]

    @staticmethod
    def get_property_detail(property_id: int, viewer: Optional[User], db: Session) -> PropertyResponse:
        prop = db.query(Property).filter(Property.id == property_id).first()
        is_manager = viewer is not None and (viewer.user_type == "admin" or viewer.id == (prop.owner_id if prop else None))
        if not prop or (not is_manager and (prop.status != "approved" or not prop.is_active)):
            raise NotFound("Property not found")

        with unit_of_work(db, "count_property_view", property_id=property_id):
            db.execute(
                update(Property)
                .where(Property.id == property_id)
                .values(views=Property.views + 1)
                .execution_options(synchronize_session=False)
            )
        db.refresh(prop)
        contact_unlocked = has_unlocked(db, viewer.id, property_id) if viewer is not None else None
        return PropertyResponse.from_orm(prop, contact_unlocked)

    @staticmethod
    def owner_properties(owner: User, db: Session) -> List[OwnerPropertyResponse]:
        properties = db.query(Property).filter(Property.owner_id == owner.id).order_by(Property.id.desc()).all()
        return [OwnerPropertyResponse.from_orm(p) for p in properties]

    @staticmethod
    def update_property(property_id: int, data: PropertyUpdate, user: User, db: Session) -> OwnerPropertyResponse:
        prop = PropertyService.get_owned_property(property_id, user, db)
        changes = data.dict(exclude_unset=True)
        amenities = changes.pop("amenities", None)
        PropertyService._validate(changes)

        with unit_of_work(db, "update_property", property_id=property_id):
            for key, value in changes.items():
                setattr(prop, key, value)
            if amenities is not None:
                existing = {a.amenity: a for a in prop.amenities}
                prop.amenities = [existing.get(a) or PropertyAmenity(amenity=a) for a in _clean_amenities(amenities)]
        db.refresh(prop)
        return OwnerPropertyResponse.from_orm(prop)

    @staticmethod
    def delete_property(property_id: int, user: User, storage: MediaStorage, db: Session) -> dict:
        """Unlist a property and drop its media. The row stays for the credit ledger's references."""
        prop = PropertyService.get_owned_property(property_id, user, db)
        for image in list(prop.images):
            if image.public_id:
                storage.delete(image.public_id)
        with unit_of_work(db, "delete_property", property_id=property_id):
            prop.images = []
            prop.is_active = False
            prop.is_featured = False
        logger.info(f"Property {property_id} deleted by user {user.id}")
        return {"message": "Property deleted successfully"}

    @staticmethod
    def upload_image(
            property_id: int,
            file: UploadFile,
            caption: str,
            user: User,
            storage: MediaStorage,
            db: Session
    ) -> Property:
        prop = PropertyService.get_owned_property(property_id, user, db)
        stored = storage.upload(file, folder=f"properties/{property_id}")
        metadata = stored["metadata"]
        image = PropertyImage(
            property_id=prop.id,
            url=stored["url"],
            public_id=stored["public_id"],
            resource_type=metadata["resource_type"],
            format=metadata["format"],
            bytes=metadata["bytes"],
            caption=caption or "",
            is_primary=len(prop.images) == 0,
        )
        with unit_of_work(db, "upload_property_image", property_id=property_id):
            db.add(image)
        db.refresh(prop)
        return prop

    @staticmethod
    def delete_image(property_id: int, image_id: int, user: User, storage: MediaStorage, db: Session) -> Property:
        prop = PropertyService.get_owned_property(property_id, user, db)
        image = db.query(PropertyImage).filter(
            PropertyImage.id == image_id, PropertyImage.property_id == property_id
        ).first()
        if not image:
            raise NotFound("Image not found")
        if image.public_id:
            storage.delete(image.public_id)
        with unit_of_work(db, "delete_property_image", property_id=property_id, image_id=image_id):
            was_primary = image.is_primary
            db.delete(image)
            db.flush()
            if was_primary:
                successor = db.query(PropertyImage).filter(
                    PropertyImage.property_id == property_id
                ).order_by(PropertyImage.id).first()
                if successor:
                    successor.is_primary = True
        db.refresh(prop)
        return prop

    # -- moderation -------------------------------------------------------

    @staticmethod
    def _moderate(property_id: int, admin: User, action: str, db: Session, **values) -> OwnerPropertyResponse:
        prop = db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            raise NotFound("Property not found")
        with unit_of_work(db, "moderate_property", property_id=property_id, action=action):
            for key, value in values.items():
                setattr(prop, key, value)
            db.add(AdminActionLog(admin_id=admin.id, action=f"{action} property {property_id}"))
        db.refresh(prop)
        return OwnerPropertyResponse.from_orm(prop)

    @staticmethod
    def approve(property_id: int, admin: User, db: Session) -> OwnerPropertyResponse:
        return PropertyService._moderate(property_id, admin, "Approved", db, status="approved", rejection_reason=None)

    @staticmethod
    def reject(property_id: int, reason: str, admin: User, db: Session) -> OwnerPropertyResponse:
        if not (reason or "").strip():
            raise InvalidInput("reason", "Rejection reason is required")
        return PropertyService._moderate(
            property_id, admin, "Rejected", db, status="rejected", rejection_reason=reason.strip(), is_featured=False,
        )

    @staticmethod
    def set_featured(property_id: int, featured: bool, admin: User, db: Session) -> OwnerPropertyResponse:
        action = "Featured" if featured else "Unfeatured"
        return PropertyService._moderate(property_id, admin, action, db, is_featured=featured)

    @staticmethod
    def stats(db: Session) -> dict:
        by_status = dict(
            db.query(Property.status, func.count(Property.id))
            .filter(Property.is_active == True)  # noqa: E712
            .group_by(Property.status).all()
        )
        return {
            "total": sum(by_status.values()),
            "pending": by_status.get("pending", 0),
            "approved": by_status.get("approved", 0),
            "rejected": by_status.get("rejected", 0),
            "featured": db.query(func.count(Property.id)).filter(Property.is_featured == True).scalar(),  # noqa: E712
            "total_views": db.query(func.coalesce(func.sum(Property.views), 0)).scalar(),
        }
