# support/routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth.models import User
from auth.routes import require_roles
from database import get_db
from support.schemas import StatusUpdate, TicketCreate, TicketListResponse, TicketResponse
from support.services import SupportService

router = APIRouter(prefix="/support", tags=["support"])

require_admin = require_roles("admin")


@router.post("/ticket", response_model=TicketResponse, status_code=201)
def create_ticket(ticket: TicketCreate, db: Session = Depends(get_db)):
    """Public contact form."""
    return SupportService.create_ticket(ticket, db)


@router.get("/tickets", response_model=TicketListResponse)
def list_tickets(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return SupportService.list_tickets(status, page, limit, db)


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return TicketResponse.from_orm(SupportService.get_ticket(ticket_id, db))


@router.put("/tickets/{ticket_id}/status", response_model=TicketResponse)
def update_ticket_status(
    ticket_id: int,
    update: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return SupportService.update_status(ticket_id, update.status, current_user, db)
