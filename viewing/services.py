# viewing/services.py
import logging
import math
import re
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from auth.models import AdminActionLog, User
from database import utcnow
from payment.errors import InvalidInput, NotFound, unit_of_work
from payment.schemas import Pagination
from properties.models import Property
from viewing.models import ViewingRequest
from viewing.schemas import ViewingCreate, ViewingListResponse, ViewingResponse

logger = logging.getLogger(__name__)

VIEWING_STATUSES = ("pending", "confirmed", "completed", "cancelled")
PHONE_PATTERN = re.compile(r"^\d{10}$")


class ViewingService:
    @staticmethod
    def create_request(data: ViewingCreate, user: Optional[User], db: Session) -> ViewingResponse:
        if not data.name.strip():
            raise InvalidInput("name", "Name is required")
        phone = data.phone.strip()
        if not PHONE_PATTERN.match(phone):
            raise InvalidInput("phone", "Phone number must be exactly 10 digits")
        if data.preferred_date is not None and data.preferred_date < utcnow().date():
            raise InvalidInput("preferred_date", "Preferred date cannot be in the past")
        if data.property_id is not None:
            prop = db.query(Property).filter(Property.id == data.property_id, Property.is_active == True).first()  # noqa: E712
            if not prop:
                raise NotFound("Property not found")

        viewing = ViewingRequest(
            **data.dict(exclude={"name", "phone"}),
            name=data.name.strip(),
            phone=phone,
            user_id=user.id if user else None,
            status="pending",
        )
        with unit_of_work(db, "create_viewing_request", phone=phone):
            db.add(viewing)
        db.refresh(viewing)
        logger.info(f"Viewing request {viewing.id} created for property {viewing.property_id}")
        return ViewingResponse.from_orm(viewing)

    @staticmethod
    def by_phone(phone: str, db: Session) -> List[ViewingResponse]:
        viewings = db.query(ViewingRequest).filter(
            ViewingRequest.phone == phone.strip()
        ).order_by(ViewingRequest.id.desc()).all()
        return [ViewingResponse.from_orm(v) for v in viewings]

    @staticmethod
    def _scoped_query(user: User, db: Session):
        """Admins see every request; owners only those for their listings."""
        query = db.query(ViewingRequest)
        if user.user_type != "admin":
            query = query.join(Property, ViewingRequest.property_id == Property.id).filter(Property.owner_id == user.id)
        return query

    @staticmethod
    def list_requests(user: User, status: Optional[str], page: int, limit: int, db: Session) -> ViewingListResponse:
        query = ViewingService._scoped_query(user, db)
        if status:
            query = query.filter(ViewingRequest.status == status)
        total = query.count()
        viewings = query.order_by(ViewingRequest.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return ViewingListResponse(
            viewings=[ViewingResponse.from_orm(v) for v in viewings],
            pagination=Pagination(
                current_page=page, total_pages=math.ceil(total / limit), total_items=total, items_per_page=limit,
            ),
        )

    @staticmethod
    def get_request(viewing_id: int, user: User, db: Session) -> ViewingRequest:
        viewing = ViewingService._scoped_query(user, db).filter(ViewingRequest.id == viewing_id).first()
        if not viewing:
            raise NotFound("Viewing request not found")
        return viewing

    @staticmethod
    def update_status(viewing_id: int, status: str, user: User, db: Session) -> ViewingResponse:
        if status not in VIEWING_STATUSES:
            raise InvalidInput("status", f"Status must be one of {', '.join(VIEWING_STATUSES)}")
        viewing = ViewingService.get_request(viewing_id, user, db)
        if viewing.status in ("completed", "cancelled") and status != viewing.status:
            raise HTTPException(status_code=409, detail=f"Viewing request is already {viewing.status}")
        with unit_of_work(db, "update_viewing_status", viewing_id=viewing_id):
            viewing.status = status
            if user.user_type == "admin":
                db.add(AdminActionLog(admin_id=user.id, action=f"Set viewing request {viewing_id} to {status}"))
        db.refresh(viewing)
        return ViewingResponse.from_orm(viewing)
