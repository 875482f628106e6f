# payment/webhooks.py
from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class PaymentCaptured:
    order_id: str
    payment_id: str
    method: Optional[str] = None
    entity: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentFailed:
    order_id: str
    payment_id: str
    entity: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RefundCreated:
    payment_id: str
    entity: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Unhandled:
    event: str
    reason: str = "unsupported event"


WebhookEvent = Union[PaymentCaptured, PaymentFailed, RefundCreated, Unhandled]


def _entity(payload: dict, key: str) -> dict:
    body = payload.get("payload")
    node = body.get(key) if isinstance(body, dict) else None
    entity = node.get("entity") if isinstance(node, dict) else None
    return entity if isinstance(entity, dict) else {}


def decode_event(payload: dict) -> WebhookEvent:
    """Turn a raw gateway notification into exactly one event variant.

    Anything unrecognised or malformed becomes `Unhandled` so the caller
    can log it and still acknowledge the delivery.
    """
    if not isinstance(payload, dict):
        return Unhandled(event="", reason="payload is not an object")
    event = str(payload.get("event") or "")

    if event in ("payment.captured", "payment.failed"):
        payment = _entity(payload, "payment")
        order_id, payment_id = payment.get("order_id"), payment.get("id")
        if not order_id or not payment_id:
            return Unhandled(event=event, reason="payment entity without order_id/id")
        if event == "payment.captured":
            return PaymentCaptured(order_id=order_id, payment_id=payment_id, method=payment.get("method"), entity=payment)
        return PaymentFailed(order_id=order_id, payment_id=payment_id, entity=payment)

    if event == "refund.created":
        refund = _entity(payload, "refund") or _entity(payload, "payment")
        payment_id = refund.get("payment_id") or refund.get("id")
        if not payment_id:
            return Unhandled(event=event, reason="refund entity without payment id")
        return RefundCreated(payment_id=payment_id, entity=refund)

    return Unhandled(event=event)
