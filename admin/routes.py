# admin/routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
from auth.models import User, AdminActionLog
from auth.routes import require_roles
from auth.schemas import UserResponse, AdminActionLogResponse
from payment.models import Payment, CreditTransaction
from payment.schemas import PaymentResponse, CreditTransactionResponse
from properties.models import Property
from properties.schemas import OwnerPropertyResponse, RejectRequest
from properties.services import PropertyService
from support.models import SupportTicket
from viewing.models import ViewingRequest
from database import get_db

router = APIRouter(prefix="/admin", tags=["admin"])

check_admin_role = require_roles("admin")

@router.get("/users", response_model=List[UserResponse])
def get_users(
    user_type: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Retrieve users with optional user type filter."""
    query = db.query(User)
    if user_type:
        query = query.filter(User.user_type == user_type)
    return [UserResponse.from_orm(user) for user in query.order_by(User.id.desc()).offset(skip).limit(limit).all()]

@router.get("/payments", response_model=List[PaymentResponse])
def get_payments(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Retrieve payments with optional status and user filters."""
    query = db.query(Payment)
    if status:
        query = query.filter(Payment.status == status)
    if user_id:
        query = query.filter(Payment.user_id == user_id)
    return [PaymentResponse.from_orm(p) for p in query.order_by(Payment.id.desc()).offset(skip).limit(limit).all()]

@router.get("/ledger", response_model=List[CreditTransactionResponse])
def get_ledger_entries(
    user_id: Optional[int] = None,
    transaction_type: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Credit ledger entries, newest first."""
    query = db.query(CreditTransaction)
    if user_id:
        query = query.filter(CreditTransaction.user_id == user_id)
    if transaction_type:
        query = query.filter(CreditTransaction.transaction_type == transaction_type)
    entries = query.order_by(CreditTransaction.id.desc()).offset(skip).limit(limit).all()
    return [CreditTransactionResponse.from_orm(e) for e in entries]

@router.get("/properties", response_model=List[OwnerPropertyResponse])
def get_properties(
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Listings in any moderation state."""
    query = db.query(Property)
    if status:
        query = query.filter(Property.status == status)
    properties = query.order_by(Property.id.desc()).offset(skip).limit(limit).all()
    return [OwnerPropertyResponse.from_orm(p) for p in properties]

@router.put("/properties/{property_id}/approve", response_model=OwnerPropertyResponse)
def approve_property(property_id: int, db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    return PropertyService.approve(property_id, current_user, db)

@router.put("/properties/{property_id}/reject", response_model=OwnerPropertyResponse)
def reject_property(
    property_id: int,
    req: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    return PropertyService.reject(property_id, req.reason, current_user, db)

@router.put("/properties/{property_id}/feature", response_model=OwnerPropertyResponse)
def feature_property(
    property_id: int,
    featured: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    return PropertyService.set_featured(property_id, featured, current_user, db)

@router.get("/stats")
def get_stats(db: Session = Depends(get_db), current_user: User = Depends(check_admin_role)):
    """Dashboard counters."""
    users_by_type = dict(db.query(User.user_type, func.count(User.id)).group_by(User.user_type).all())
    payments_by_status = dict(db.query(Payment.status, func.count(Payment.id)).group_by(Payment.status).all())
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(Payment.status == "completed").scalar()
    credits_sold = db.query(func.coalesce(func.sum(Payment.credits), 0)).filter(Payment.status == "completed").scalar()
    credits_used = db.query(func.count(CreditTransaction.id)).filter(CreditTransaction.transaction_type == "used").scalar()
    return {
        "users": users_by_type,
        "properties": PropertyService.stats(db),
        "payments": payments_by_status,
        "revenue": revenue,
        "credits_sold": credits_sold,
        "credits_used": credits_used,
        "open_tickets": db.query(func.count(SupportTicket.id)).filter(
            SupportTicket.status.in_(("pending", "in_progress"))
        ).scalar(),
        "pending_viewings": db.query(func.count(ViewingRequest.id)).filter(ViewingRequest.status == "pending").scalar(),
    }

@router.get("/logs", response_model=List[AdminActionLogResponse])
def get_admin_logs(
    admin_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Retrieve admin action logs with optional admin filter."""
    query = db.query(AdminActionLog)
    if admin_id:
        query = query.filter(AdminActionLog.admin_id == admin_id)
    logs = query.order_by(AdminActionLog.id.desc()).limit(limit).all()
    return [AdminActionLogResponse.from_orm(log) for log in logs]
