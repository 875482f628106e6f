# support/services.py
import logging
import math
from typing import Optional

from sqlalchemy.orm import Session

from auth.models import AdminActionLog, User
from payment.errors import InvalidInput, NotFound, unit_of_work
from payment.schemas import Pagination
from support.models import SupportTicket
from support.schemas import TicketCreate, TicketListResponse, TicketResponse

logger = logging.getLogger(__name__)

TICKET_STATUSES = ("pending", "in_progress", "resolved", "closed")


class SupportService:
    @staticmethod
    def create_ticket(data: TicketCreate, db: Session) -> TicketResponse:
        if not data.name.strip():
            raise InvalidInput("name", "Name is required")
        if not data.message.strip():
            raise InvalidInput("message", "Message is required")
        ticket = SupportTicket(
            name=data.name.strip(),
            email=data.email,
            phone=(data.phone or "").strip() or None,
            message=data.message.strip(),
            status="pending",
        )
        with unit_of_work(db, "create_support_ticket", email=data.email):
            db.add(ticket)
        db.refresh(ticket)
        logger.info(f"Support ticket {ticket.id} opened by {ticket.email}")
        return TicketResponse.from_orm(ticket)

    @staticmethod
    def list_tickets(status: Optional[str], page: int, limit: int, db: Session) -> TicketListResponse:
        query = db.query(SupportTicket)
        if status:
            query = query.filter(SupportTicket.status == status)
        total = query.count()
        tickets = query.order_by(SupportTicket.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return TicketListResponse(
            tickets=[TicketResponse.from_orm(t) for t in tickets],
            pagination=Pagination(
                current_page=page, total_pages=math.ceil(total / limit), total_items=total, items_per_page=limit,
            ),
        )

    @staticmethod
    def get_ticket(ticket_id: int, db: Session) -> SupportTicket:
        ticket = db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
        if not ticket:
            raise NotFound("Support ticket not found")
        return ticket

    @staticmethod
    def update_status(ticket_id: int, status: str, admin: User, db: Session) -> TicketResponse:
        if status not in TICKET_STATUSES:
            raise InvalidInput("status", f"Status must be one of {', '.join(TICKET_STATUSES)}")
        ticket = SupportService.get_ticket(ticket_id, db)
        with unit_of_work(db, "update_ticket_status", ticket_id=ticket_id):
            ticket.status = status
            db.add(AdminActionLog(admin_id=admin.id, action=f"Set support ticket {ticket_id} to {status}"))
        db.refresh(ticket)
        return TicketResponse.from_orm(ticket)
