# properties/routes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from auth.models import User
from auth.routes import get_optional_user, require_roles
from database import get_db
from media.storage import MediaStorage, get_media_storage
from properties.schemas import (
    OwnerPropertyResponse, PropertyCreate, PropertyListResponse, PropertyResponse, PropertyUpdate,
)
from properties.services import PropertyService

router = APIRouter(prefix="/properties", tags=["properties"])

require_lister = require_roles("owner", "admin")


@router.get("/", response_model=PropertyListResponse)
def list_properties(
    type: Optional[str] = None,
    city: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    bedrooms: Optional[int] = Query(None, ge=0),
    property_for: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Public listing of approved properties."""
    return PropertyService.list_properties(
        db, property_type=type, city=city, min_price=min_price, max_price=max_price, bedrooms=bedrooms,
        property_for=property_for, search=search, sort=sort, page=page, limit=limit,
    )


@router.get("/featured", response_model=List[PropertyResponse])
def featured_properties(limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    return PropertyService.featured_properties(limit, db)


@router.get("/mine", response_model=List[OwnerPropertyResponse])
def my_properties(db: Session = Depends(get_db), current_user: User = Depends(require_lister)):
    return PropertyService.owner_properties(current_user, db)


@router.get("/{property_id}", response_model=PropertyResponse)
def get_property(
    property_id: int,
    db: Session = Depends(get_db),
    viewer: Optional[User] = Depends(get_optional_user)
):
    """Listing detail. Contact details are only released through /payments/use-credit."""
    return PropertyService.get_property_detail(property_id, viewer, db)


@router.post("/", response_model=OwnerPropertyResponse, status_code=201)
def create_property(
    data: PropertyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_lister)
):
    return PropertyService.create_property(data, current_user, db)


@router.put("/{property_id}", response_model=OwnerPropertyResponse)
def update_property(
    property_id: int,
    data: PropertyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_lister)
):
    return PropertyService.update_property(property_id, data, current_user, db)


@router.delete("/{property_id}")
def delete_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_lister),
    storage: MediaStorage = Depends(get_media_storage)
):
    return PropertyService.delete_property(property_id, current_user, storage, db)


@router.post("/{property_id}/images", response_model=OwnerPropertyResponse)
def upload_image(
    property_id: int,
    file: UploadFile = File(...),
    caption: str = Form(""),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_lister),
    storage: MediaStorage = Depends(get_media_storage)
):
    prop = PropertyService.upload_image(property_id, file, caption, current_user, storage, db)
    return OwnerPropertyResponse.from_orm(prop)


@router.delete("/{property_id}/images/{image_id}", response_model=OwnerPropertyResponse)
def delete_image(
    property_id: int,
    image_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_lister),
    storage: MediaStorage = Depends(get_media_storage)
):
    prop = PropertyService.delete_image(property_id, image_id, current_user, storage, db)
    return OwnerPropertyResponse.from_orm(prop)
