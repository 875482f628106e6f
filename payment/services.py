# payment/services.py
import json
import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from auth.models import User
from config import settings
from database import utcnow
from payment.errors import ConflictError, InvalidInput, NotFound, VerificationFailed, WebhookAuthenticationError, unit_of_work
from payment.gateway import GatewayAdapter, GatewayError, LocalGateway
from payment.models import Payment, CreditTransaction
from payment.schemas import (
    BalanceResponse, CreditTransactionResponse, ExpiryInfo, OrderResponse, Pagination,
    PaymentHistoryResponse, PaymentResponse, TransactionHistoryResponse, VerifyPaymentResponse,
)
from payment.signatures import verify_payment_signature, verify_webhook_signature
from payment.webhooks import PaymentCaptured, PaymentFailed, RefundCreated, Unhandled, WebhookEvent, decode_event

logger = logging.getLogger(__name__)

TAX_PERCENTAGE = 18


def round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_order_amounts(base_price: float) -> Tuple[int, int]:
    """Return (tax_amount, total) for a plan price, both rounded half up."""
    base = Decimal(str(base_price))
    tax_amount = round_half_up(base * TAX_PERCENTAGE / 100)
    total = round_half_up(base + tax_amount)
    return tax_amount, total


def credits_active(credits: int, credit_expiry: Optional[datetime], now: datetime) -> bool:
    """A null expiry never lapses."""
    return (credits or 0) > 0 and (credit_expiry is None or credit_expiry > now)


def effective_balance(user: User, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    return user.credits if credits_active(user.credits, user.credit_expiry, now) else 0


def merge_credits(
        current_credits: int,
        current_expiry: Optional[datetime],
        purchased: int,
        validity_days: int,
        now: datetime
) -> Tuple[int, datetime]:
    """New (balance, expiry) after a purchase.

    Live credits are summed and keep the later of the two expiries;
    expired or zero balances are replaced by the purchase outright.
    """
    new_expiry = now + timedelta(days=validity_days)
    if not credits_active(current_credits, current_expiry, now):
        return purchased, new_expiry
    if current_expiry is not None and current_expiry > new_expiry:
        new_expiry = current_expiry
    return current_credits + purchased, new_expiry


def lock_user(db: Session, user_id: int) -> Optional[User]:
    """Load the user row with SELECT ... FOR UPDATE, bypassing the identity map."""
    return (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def grant_welcome_credits(db: Session, user: User, credits: int) -> None:
    """Credit a freshly created account inside the caller's transaction."""
    if credits <= 0:
        return
    user.credits = (user.credits or 0) + credits
    db.add(CreditTransaction(
        user_id=user.id,
        transaction_type="bonus",
        credits=credits,
        balance_after=user.credits,
        description=f"Welcome bonus of {credits} credits",
        expires_at=user.credit_expiry,
    ))


def _paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(
        current_page=page,
        total_pages=math.ceil(total / limit) if limit else 0,
        total_items=total,
        items_per_page=limit,
    )


class CreditLedger:
    """Payment state machine and credit arithmetic.

    The gateway adapter is fixed at construction: a live gateway and the
    offline surrogate go through exactly the same transitions.
    """

    def __init__(
            self,
            gateway: GatewayAdapter,
            webhook_secret: str = "",
            allow_unsigned_webhooks: bool = False
    ):
        self.gateway = gateway
        self.webhook_secret = webhook_secret
        self.allow_unsigned_webhooks = allow_unsigned_webhooks

    # -- orders -----------------------------------------------------------

    @staticmethod
    def _validate_order(plan_type, credits, base_price, validity_days) -> int:
        if not isinstance(plan_type, str) or not plan_type.strip():
            raise InvalidInput("plan_type", "Plan type is required")
        if isinstance(credits, bool) or not isinstance(credits, int) or credits <= 0:
            raise InvalidInput("credits", "Credits must be a positive integer")
        if (isinstance(base_price, bool) or not isinstance(base_price, (int, float))
                or not math.isfinite(base_price) or base_price <= 0):
            raise InvalidInput("base_price", "Base price must be a positive number")
        if validity_days is None:
            return settings.DEFAULT_VALIDITY_DAYS
        if isinstance(validity_days, bool) or not isinstance(validity_days, int) or validity_days <= 0:
            raise InvalidInput("validity_days", "Validity days must be a positive integer")
        return validity_days

    def create_order(
            self,
            user_id: int,
            plan_type: str,
            credits: int,
            base_price: float,
            validity_days: Optional[int],
            db: Session
    ) -> OrderResponse:
        validity_days = self._validate_order(plan_type, credits, base_price, validity_days)
        tax_amount, total = compute_order_amounts(base_price)
        expires_at = utcnow() + timedelta(days=validity_days)

        order = self.gateway.create_order(
            total * 100,
            settings.CURRENCY,
            {
                "userId": str(user_id),
                "planType": plan_type,
                "credits": str(credits),
                "basePrice": str(base_price),
                "validityDays": str(validity_days),
            },
        )
        payment = Payment(
            user_id=user_id,
            order_id=order["order_id"],
            gateway=self.gateway.name,
            plan_type=plan_type.strip(),
            credits=credits,
            base_price=base_price,
            tax_percentage=TAX_PERCENTAGE,
            tax_amount=tax_amount,
            amount=total,
            currency=settings.CURRENCY,
            validity_days=validity_days,
            expires_at=expires_at,
            status="pending",
        )
        with unit_of_work(db, "create_order", user_id=user_id, order_id=order["order_id"]):
            db.add(payment)
        logger.info(f"Order {payment.order_id} created for user {user_id}: {credits} credits, total {total} {settings.CURRENCY} via {self.gateway.name}")

        response = OrderResponse(
            order_id=payment.order_id,
            amount=total * 100,
            total_amount=total,
            currency=payment.currency,
            key=self.gateway.key_id,
            offline=not self.gateway.is_live,
            user_id=user_id,
            plan_type=payment.plan_type,
            credits=credits,
            base_price=base_price,
            tax_amount=tax_amount,
            validity_days=validity_days,
            expires_at=expires_at,
        )
        if isinstance(self.gateway, LocalGateway):
            response.test_payment_id, response.test_signature = self.gateway.test_payment(payment.order_id)
        return response

    # -- completion -------------------------------------------------------

    def _merge_into_user(self, db: Session, payment: Payment) -> Tuple[int, datetime]:
        now = utcnow()
        user = lock_user(db, payment.user_id)
        if user is None:
            raise NotFound("User not found")
        new_balance, new_expiry = merge_credits(user.credits, user.credit_expiry, payment.credits, payment.validity_days, now)
        discarded = 0 if credits_active(user.credits, user.credit_expiry, now) else max(user.credits or 0, 0)

        user.credits = new_balance
        user.credit_expiry = new_expiry
        user.total_purchased_credits = (user.total_purchased_credits or 0) + payment.credits
        description = f"Purchased {payment.credits} credits via payment #{payment.id}"
        if discarded:
            description += f" ({discarded} expired credits discarded)"
        db.add(CreditTransaction(
            user_id=user.id,
            transaction_type="purchase",
            credits=payment.credits,
            balance_after=new_balance,
            payment_id=payment.id,
            description=description,
            expires_at=new_expiry,
        ))
        db.flush()
        return new_balance, new_expiry

    def _complete_and_merge(
            self,
            db: Session,
            payment: Payment,
            gateway_payment_id: str,
            signature: Optional[str] = None,
            method: Optional[str] = None,
            details: Optional[str] = None
    ) -> Tuple[int, datetime]:
        """pending -> completed as a compare-and-set, then merge, in the caller's unit of work.

        Raises ConflictError when the payment already left `pending`, so a
        payment can reach the merge at most once.
        """
        values = {"status": "completed", "gateway_payment_id": gateway_payment_id, "updated_at": utcnow()}
        if signature is not None:
            values["signature"] = signature
        if method is not None:
            values["payment_method"] = method
        if details is not None:
            values["payment_details"] = details
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError()
        return self._merge_into_user(db, payment)

    @staticmethod
    def _mark_failed(db: Session, payment_id: int, gateway_payment_id: Optional[str], signature: Optional[str] = None) -> bool:
        values = {"status": "failed", "gateway_payment_id": gateway_payment_id, "updated_at": utcnow()}
        if signature is not None:
            values["signature"] = signature
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def confirm_payment(
            self,
            order_id: str,
            user_id: int,
            gateway_payment_id: str,
            signature: str,
            db: Session
    ) -> VerifyPaymentResponse:
        """Client side verification of a checkout; safe to call repeatedly."""
        payment = db.query(Payment).filter(Payment.order_id == order_id, Payment.user_id == user_id).first()
        if not payment:
            raise NotFound("Payment record not found")

        if not verify_payment_signature(self.gateway.signing_secret, order_id, gateway_payment_id, signature):
            logger.warning(f"Signature mismatch for order {order_id} (user {user_id}, status {payment.status})")
            with unit_of_work(db, "mark_payment_failed", order_id=order_id):
                self._mark_failed(db, payment.id, gateway_payment_id, signature)
            raise VerificationFailed()

        if payment.status == "failed":
            raise VerificationFailed("Payment has already failed and cannot be completed")

        already_processed = False
        try:
            with unit_of_work(db, "confirm_payment", order_id=order_id, user_id=user_id):
                self._complete_and_merge(db, payment, gateway_payment_id, signature=signature)
            logger.info(f"Payment {order_id} completed for user {user_id}: +{payment.credits} credits")
        except ConflictError:
            already_processed = True
            logger.info(f"Payment {order_id} already completed, credits not applied again")

        db.refresh(payment)
        if payment.status != "completed":
            raise VerificationFailed("Payment has already failed and cannot be completed")
        user = db.get(User, user_id)
        db.refresh(user)
        return VerifyPaymentResponse(
            success=True,
            message="Payment already verified" if already_processed else "Payment verified successfully",
            payment_id=payment.gateway_payment_id or gateway_payment_id,
            credits=payment.credits,
            amount=payment.amount,
            expires_at=payment.expires_at,
            balance=effective_balance(user),
            already_processed=already_processed,
        )

    # -- webhooks ---------------------------------------------------------

    def authenticate_webhook(self, raw_body: bytes, signature: Optional[str]) -> None:
        if self.webhook_secret:
            if not signature:
                raise WebhookAuthenticationError("Missing webhook signature")
            if not verify_webhook_signature(self.webhook_secret, raw_body, signature):
                logger.warning("Rejected webhook with invalid signature")
                raise WebhookAuthenticationError()
            return
        if not self.allow_unsigned_webhooks:
            logger.error("Webhook received but no webhook secret is configured and unsigned webhooks are disabled")
            raise WebhookAuthenticationError("Webhook signing is not configured")
        logger.warning("No webhook secret configured, accepting unsigned webhook")

    def handle_webhook(self, raw_body: bytes, signature: Optional[str], db: Session) -> dict:
        """Authenticate, decode once, then dispatch. Only authentication errors escape."""
        self.authenticate_webhook(raw_body, signature)
        try:
            payload = json.loads(raw_body)
        except ValueError:
            logger.warning("Discarding webhook with a body that is not JSON")
            return {"event": None, "outcome": "malformed"}
        event = decode_event(payload)
        return {"event": payload.get("event") if isinstance(payload, dict) else None,
                "outcome": self.process_event(event, db)}

    def process_event(self, event: WebhookEvent, db: Session) -> str:
        try:
            if isinstance(event, PaymentCaptured):
                return self._on_captured(event, db)
            if isinstance(event, PaymentFailed):
                return self._on_failed(event, db)
            if isinstance(event, RefundCreated):
                logger.info(f"Refund created for payment {event.payment_id}; refunds do not touch credits")
                return "ignored"
            if isinstance(event, Unhandled):
                logger.info(f"Unhandled webhook event '{event.event}': {event.reason}")
                return "unhandled"
        except (GatewayError, NotFound, InvalidInput, VerificationFailed) as e:
            logger.error(f"Webhook {type(event).__name__} could not be processed: {e.detail}")
            return "error"
        raise TypeError(f"Unknown webhook event type: {type(event).__name__}")

    def _on_captured(self, event: PaymentCaptured, db: Session) -> str:
        payment = db.query(Payment).filter(Payment.order_id == event.order_id).first()
        if not payment:
            logger.warning(f"payment.captured for unknown order {event.order_id} (payment {event.payment_id}), discarded")
            return "unknown_order"
        if payment.status != "pending":
            return self._log_not_pending(payment, event.payment_id)
        try:
            with unit_of_work(db, "webhook_payment_captured", order_id=event.order_id):
                self._complete_and_merge(
                    db, payment, event.payment_id, method=event.method, details=json.dumps(event.entity),
                )
        except ConflictError:
            db.refresh(payment)
            return self._log_not_pending(payment, event.payment_id)
        logger.info(f"Payment {event.order_id} completed via webhook: +{payment.credits} credits for user {payment.user_id}")
        return "completed"

    @staticmethod
    def _log_not_pending(payment: Payment, gateway_payment_id: str) -> str:
        if payment.status == "completed":
            logger.info(f"Order {payment.order_id} already completed, duplicate capture {gateway_payment_id} skipped")
            return "already_completed"
        logger.error(f"Order {payment.order_id} is {payment.status} but gateway captured {gateway_payment_id}; needs manual review")
        return "conflict"

    def _on_failed(self, event: PaymentFailed, db: Session) -> str:
        payment = db.query(Payment).filter(Payment.order_id == event.order_id).first()
        if not payment:
            logger.warning(f"payment.failed for unknown order {event.order_id}, discarded")
            return "unknown_order"
        with unit_of_work(db, "webhook_payment_failed", order_id=event.order_id):
            changed = self._mark_failed(db, payment.id, event.payment_id)
        if not changed:
            logger.info(f"payment.failed for order {event.order_id} ignored, status is {payment.status}")
            return "ignored"
        logger.info(f"Payment {event.order_id} marked failed via webhook")
        return "failed"

    # -- reconciliation ---------------------------------------------------

    def reconcile_pending(self, db: Session) -> dict:
        """Complete pending orders the gateway captured but never reported to us."""
        if not self.gateway.is_live:
            return {"checked": 0, "completed": 0}
        cutoff = utcnow() - timedelta(hours=settings.RECONCILE_LOOKBACK_HOURS)
        pending = db.query(Payment).filter(
            Payment.status == "pending",
            Payment.gateway == self.gateway.name,
            Payment.created_at >= cutoff
        ).all()
        completed = 0
        for payment in pending:
            try:
                items = self.gateway.fetch_order_payments(payment.order_id)
            except GatewayError:
                logger.warning(f"Could not fetch gateway payments for order {payment.order_id}, will retry")
                continue
            captured = next((item for item in items if item.get("status") == "captured"), None)
            if captured is None:
                continue
            event = PaymentCaptured(
                order_id=payment.order_id, payment_id=captured["id"], method=captured.get("method"), entity=captured,
            )
            if self.process_event(event, db) == "completed":
                completed += 1
        logger.info(f"Reconciled pending payments: checked={len(pending)}, completed={completed}")
        return {"checked": len(pending), "completed": completed}

    # -- reads ------------------------------------------------------------

    @staticmethod
    def get_balance(user_id: int, db: Session) -> BalanceResponse:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFound("User not found")
        now = utcnow()
        is_expired = user.credit_expiry is not None and user.credit_expiry <= now
        expiry_info = None
        if user.credit_expiry is not None:
            days_remaining = math.ceil((user.credit_expiry - now).total_seconds() / 86400)
            expiry_info = ExpiryInfo(date=user.credit_expiry, days_remaining=max(days_remaining, 0), is_expired=is_expired)
        recent = db.query(CreditTransaction).filter(
            CreditTransaction.user_id == user_id
        ).order_by(CreditTransaction.id.desc()).limit(10).all()
        return BalanceResponse(
            balance=effective_balance(user, now),
            stored_credits=user.credits,
            credit_expiry=user.credit_expiry,
            expiry_info=expiry_info,
            total_purchased=user.total_purchased_credits,
            total_used=user.total_used_credits,
            is_expired=is_expired,
            recent_transactions=[CreditTransactionResponse.from_orm(t) for t in recent],
        )

    @staticmethod
    def get_payment_history(user_id: int, page: int, limit: int, db: Session) -> PaymentHistoryResponse:
        query = db.query(Payment).filter(Payment.user_id == user_id)
        total = query.count()
        payments = query.order_by(Payment.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return PaymentHistoryResponse(
            payments=[PaymentResponse.from_orm(p) for p in payments],
            pagination=_paginate(page, limit, total),
        )

    @staticmethod
    def get_transactions(user_id: int, page: int, limit: int, db: Session) -> TransactionHistoryResponse:
        query = db.query(CreditTransaction).filter(CreditTransaction.user_id == user_id)
        total = query.count()
        entries = query.order_by(CreditTransaction.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return TransactionHistoryResponse(
            transactions=[CreditTransactionResponse.from_orm(t) for t in entries],
            pagination=_paginate(page, limit, total),
        )
