# payment/routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from auth.models import User
from auth.routes import get_current_user
from config import settings
from database import get_db
from payment.consumption import ConsumptionGate
from payment.gateway import GatewayAdapter, get_gateway
from payment.schemas import (
    BalanceResponse, CreateOrderRequest, OrderResponse, PaymentHistoryResponse, TransactionHistoryResponse,
    UseCreditRequest, UseCreditResponse, VerifyPaymentRequest, VerifyPaymentResponse, WebhookAck,
)
from payment.services import CreditLedger

router = APIRouter(prefix="/payments", tags=["payments"])


def get_ledger(gateway: GatewayAdapter = Depends(get_gateway)) -> CreditLedger:
    return CreditLedger(
        gateway,
        webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
        allow_unsigned_webhooks=settings.ALLOW_UNSIGNED_WEBHOOKS,
    )


def get_consumption_gate() -> ConsumptionGate:
    return ConsumptionGate(charge_repeat_unlocks=settings.CHARGE_REPEAT_UNLOCKS)


@router.post("/create-order", response_model=OrderResponse)
def create_order(
    order: CreateOrderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger)
):
    """Create a pending credit purchase and a gateway order for it."""
    return ledger.create_order(
        current_user.id, order.plan_type, order.credits, order.base_price, order.validity_days, db
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    req: VerifyPaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger)
):
    return ledger.confirm_payment(req.order_id, current_user.id, req.payment_id, req.signature, db)


@router.get("/balance", response_model=BalanceResponse)
def get_balance(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return CreditLedger.get_balance(current_user.id, db)


@router.post("/use-credit", response_model=UseCreditResponse)
def use_credit(
    req: UseCreditRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gate: ConsumptionGate = Depends(get_consumption_gate)
):
    """Spend one credit to reveal a listing's contact details."""
    return gate.consume_credit(current_user.id, req.property_id, db)


@router.get("/history", response_model=PaymentHistoryResponse)
def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return CreditLedger.get_payment_history(current_user.id, page, limit, db)


@router.get("/transactions", response_model=TransactionHistoryResponse)
def credit_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return CreditLedger.get_transactions(current_user.id, page, limit, db)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    ledger: CreditLedger = Depends(get_ledger)
):
    """Gateway notifications. The signature covers the raw body, so it is read before any parsing."""
    raw_body = await request.body()
    result = await run_in_threadpool(ledger.handle_webhook, raw_body, x_razorpay_signature, db)
    return WebhookAck(success=True, detail=result)
