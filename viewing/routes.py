# viewing/routes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.models import User
from auth.routes import get_optional_user, require_roles
from database import get_db
from viewing.schemas import ViewingCreate, ViewingListResponse, ViewingResponse, ViewingStatusUpdate
from viewing.services import ViewingService

router = APIRouter(prefix="/viewings", tags=["viewings"])

require_manager = require_roles("owner", "admin")


@router.post("/request", response_model=ViewingResponse, status_code=201)
def request_viewing(
    data: ViewingCreate,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user)
):
    return ViewingService.create_request(data, user, db)


@router.get("/phone/{phone}", response_model=List[ViewingResponse])
def viewings_by_phone(phone: str, db: Session = Depends(get_db)):
    """Let a visitor check on the requests made with their phone number."""
    return ViewingService.by_phone(phone, db)


@router.get("/", response_model=ViewingListResponse)
def list_viewings(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    return ViewingService.list_requests(current_user, status, page, limit, db)


@router.get("/{viewing_id}", response_model=ViewingResponse)
def get_viewing(viewing_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_manager)):
    return ViewingResponse.from_orm(ViewingService.get_request(viewing_id, current_user, db))


@router.put("/{viewing_id}/status", response_model=ViewingResponse)
def update_viewing_status(
    viewing_id: int,
    update: ViewingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_manager)
):
    return ViewingService.update_status(viewing_id, update.status, current_user, db)
