from datetime import timedelta

import pytest

from conftest import CapturingGateway, days_from_now, make_user
from database import utcnow
from payment.errors import InvalidInput, NotFound, VerificationFailed
from payment.models import CreditTransaction, Payment
from payment.services import (
    CreditLedger, compute_order_amounts, effective_balance, grant_welcome_credits, merge_credits,
)


def assert_close(actual, expected, tolerance=timedelta(minutes=1)):
    assert abs(actual - expected) < tolerance


def entries_for(db, user):
    return db.query(CreditTransaction).filter(CreditTransaction.user_id == user.id).order_by(CreditTransaction.id).all()


def buy(ledger, db, user, credits=5, base_price=499, validity_days=None):
    order = ledger.create_order(user.id, "basic", credits, base_price, validity_days, db)
    return order, ledger.confirm_payment(order.order_id, user.id, order.test_payment_id, order.test_signature, db)


@pytest.mark.parametrize("base_price, tax, total", [
    (499, 90, 589),
    (100, 18, 118),
    (25, 5, 30),
    (999.5, 180, 1180),
])
def test_order_amounts_round_half_up(base_price, tax, total):
    assert compute_order_amounts(base_price) == (tax, total)


def test_create_order_persists_a_pending_payment(db, ledger):
    user = make_user(db)

    order = ledger.create_order(user.id, "basic", 5, 499, None, db)

    assert order.total_amount == 589
    assert order.amount == 58900
    assert order.currency == "INR"
    assert order.offline is True
    assert order.order_id.startswith("local_ord_")
    assert order.test_payment_id and order.test_signature

    payment = db.query(Payment).filter(Payment.order_id == order.order_id).one()
    assert payment.status == "pending"
    assert payment.gateway == "local"
    assert payment.tax_percentage == 18
    assert payment.tax_amount == 90
    assert payment.amount == 589
    assert payment.validity_days == 30
    assert_close(payment.expires_at, days_from_now(30))

    db.refresh(user)
    assert user.credits == 0
    assert entries_for(db, user) == []


@pytest.mark.parametrize("kwargs, field", [
    ({"plan_type": ""}, "plan_type"),
    ({"plan_type": None}, "plan_type"),
    ({"credits": 0}, "credits"),
    ({"credits": None}, "credits"),
    ({"base_price": -10}, "base_price"),
    ({"base_price": 0}, "base_price"),
    ({"base_price": float("nan")}, "base_price"),
    ({"base_price": float("inf")}, "base_price"),
    ({"validity_days": 0}, "validity_days"),
])
def test_create_order_rejects_invalid_input(db, ledger, kwargs, field):
    user = make_user(db)
    params = {"plan_type": "basic", "credits": 5, "base_price": 499, "validity_days": None}
    params.update(kwargs)

    with pytest.raises(InvalidInput) as exc:
        ledger.create_order(user.id, params["plan_type"], params["credits"], params["base_price"],
                            params["validity_days"], db)

    assert exc.value.field == field
    assert db.query(Payment).count() == 0


def test_confirm_payment_applies_credits_once(db, ledger):
    user = make_user(db)

    order, result = buy(ledger, db, user)

    assert result.success is True
    assert result.already_processed is False
    assert result.credits == 5
    assert result.balance == 5
    db.refresh(user)
    assert user.credits == 5
    assert user.total_purchased_credits == 5
    assert_close(user.credit_expiry, days_from_now(30))

    entries = entries_for(db, user)
    assert len(entries) == 1
    assert entries[0].transaction_type == "purchase"
    assert entries[0].credits == 5
    assert entries[0].balance_after == 5

    payment = db.query(Payment).filter(Payment.order_id == order.order_id).one()
    assert payment.status == "completed"
    assert payment.gateway_payment_id == order.test_payment_id


def test_confirm_payment_is_idempotent(db, ledger):
    user = make_user(db)
    order, _ = buy(ledger, db, user)

    again = ledger.confirm_payment(order.order_id, user.id, order.test_payment_id, order.test_signature, db)

    assert again.success is True
    assert again.already_processed is True
    db.refresh(user)
    assert user.credits == 5
    assert len(entries_for(db, user)) == 1


def test_bad_signature_fails_the_payment_for_good(db, ledger):
    user = make_user(db)
    order = ledger.create_order(user.id, "basic", 5, 499, None, db)

    with pytest.raises(VerificationFailed):
        ledger.confirm_payment(order.order_id, user.id, order.test_payment_id, "0" * 64, db)

    payment = db.query(Payment).filter(Payment.order_id == order.order_id).one()
    db.refresh(payment)
    assert payment.status == "failed"
    assert payment.signature == "0" * 64

    with pytest.raises(VerificationFailed):
        ledger.confirm_payment(order.order_id, user.id, order.test_payment_id, order.test_signature, db)

    db.refresh(user)
    assert user.credits == 0
    assert entries_for(db, user) == []


def test_bad_signature_does_not_touch_a_completed_payment(db, ledger):
    user = make_user(db)
    order, _ = buy(ledger, db, user)

    with pytest.raises(VerificationFailed):
        ledger.confirm_payment(order.order_id, user.id, order.test_payment_id, "forged", db)

    payment = db.query(Payment).filter(Payment.order_id == order.order_id).one()
    db.refresh(payment)
    assert payment.status == "completed"


def test_confirm_payment_is_scoped_to_the_ordering_user(db, ledger):
    owner = make_user(db)
    other = make_user(db)
    order = ledger.create_order(owner.id, "basic", 5, 499, None, db)

    with pytest.raises(NotFound):
        ledger.confirm_payment(order.order_id, other.id, order.test_payment_id, order.test_signature, db)

    with pytest.raises(NotFound):
        ledger.confirm_payment("missing-order", owner.id, order.test_payment_id, order.test_signature, db)


def test_live_credits_are_summed_and_keep_the_later_expiry(db, ledger):
    later = days_from_now(60)
    user = make_user(db, credits=3, credit_expiry=later)

    buy(ledger, db, user, credits=5, validity_days=30)

    db.refresh(user)
    assert user.credits == 8
    assert user.credit_expiry == later
    assert entries_for(db, user)[-1].balance_after == 8


def test_live_credits_take_the_new_expiry_when_it_is_later(db, ledger):
    user = make_user(db, credits=2, credit_expiry=days_from_now(3))

    buy(ledger, db, user, credits=5, validity_days=30)

    db.refresh(user)
    assert user.credits == 7
    assert_close(user.credit_expiry, days_from_now(30))


def test_expired_credits_are_replaced_not_summed(db, ledger):
    user = make_user(db, credits=4, credit_expiry=days_from_now(-1))

    buy(ledger, db, user, credits=5)

    db.refresh(user)
    assert user.credits == 5
    assert_close(user.credit_expiry, days_from_now(30))
    entry = entries_for(db, user)[-1]
    assert entry.balance_after == 5
    assert "4 expired credits discarded" in entry.description


def test_zero_balance_ignores_a_longer_old_expiry(db, ledger):
    user = make_user(db, credits=0, credit_expiry=days_from_now(90))

    buy(ledger, db, user, credits=5, validity_days=30)

    db.refresh(user)
    assert user.credits == 5
    assert_close(user.credit_expiry, days_from_now(30))


def test_credits_without_expiry_are_kept(db, ledger):
    user = make_user(db, credits=1, credit_expiry=None)

    buy(ledger, db, user, credits=5, validity_days=30)

    db.refresh(user)
    assert user.credits == 6
    assert_close(user.credit_expiry, days_from_now(30))


def test_merge_credits_rules():
    now = utcnow()
    assert merge_credits(0, None, 5, 30, now) == (5, now + timedelta(days=30))
    assert merge_credits(2, now + timedelta(days=45), 5, 30, now) == (7, now + timedelta(days=45))
    assert merge_credits(2, now - timedelta(seconds=1), 5, 30, now) == (5, now + timedelta(days=30))
    # exactly at the expiry instant the credits are already gone
    assert merge_credits(2, now, 5, 30, now) == (5, now + timedelta(days=30))


def test_effective_balance_is_zero_once_expired(db):
    user = make_user(db, credits=3, credit_expiry=days_from_now(-2))
    assert effective_balance(user) == 0
    user.credit_expiry = days_from_now(2)
    assert effective_balance(user) == 3
    user.credit_expiry = None
    assert effective_balance(user) == 3


def test_welcome_credits_are_written_to_the_ledger(db):
    user = make_user(db)

    grant_welcome_credits(db, user, 1)
    db.commit()

    db.refresh(user)
    assert user.credits == 1
    entries = entries_for(db, user)
    assert [(e.transaction_type, e.credits, e.balance_after) for e in entries] == [("bonus", 1, 1)]


def test_balance_report(db, ledger):
    user = make_user(db)
    buy(ledger, db, user, credits=5, validity_days=10)

    balance = ledger.get_balance(user.id, db)

    assert balance.balance == 5
    assert balance.is_expired is False
    assert balance.expiry_info.days_remaining == 10
    assert balance.total_purchased == 5
    assert len(balance.recent_transactions) == 1


def test_expired_balance_report(db, ledger):
    user = make_user(db, credits=3, credit_expiry=days_from_now(-1))

    balance = ledger.get_balance(user.id, db)

    assert balance.balance == 0
    assert balance.stored_credits == 3
    assert balance.is_expired is True
    assert balance.expiry_info.days_remaining == 0


def test_payment_history_is_paginated(db, ledger):
    user = make_user(db)
    for _ in range(3):
        ledger.create_order(user.id, "basic", 5, 499, None, db)

    history = ledger.get_payment_history(user.id, 1, 2, db)

    assert len(history.payments) == 2
    assert history.pagination.total_items == 3
    assert history.pagination.total_pages == 2
    assert history.payments[0].id > history.payments[1].id


def test_reconcile_completes_captured_orders(db):
    gateway = CapturingGateway()
    ledger = CreditLedger(gateway)
    user = make_user(db)
    captured = ledger.create_order(user.id, "basic", 5, 499, None, db)
    still_open = ledger.create_order(user.id, "basic", 3, 299, None, db)
    gateway.payments[captured.order_id] = [
        {"id": "pay_failed", "status": "failed"},
        {"id": "pay_ok", "status": "captured", "method": "card"},
    ]

    result = ledger.reconcile_pending(db)
    assert result == {"checked": 2, "completed": 1}

    db.refresh(user)
    assert user.credits == 5
    payment = db.query(Payment).filter(Payment.order_id == captured.order_id).one()
    assert payment.status == "completed"
    assert payment.gateway_payment_id == "pay_ok"
    assert payment.payment_method == "card"
    assert db.query(Payment).filter(Payment.order_id == still_open.order_id).one().status == "pending"

    assert ledger.reconcile_pending(db) == {"checked": 1, "completed": 0}
    db.refresh(user)
    assert user.credits == 5


def test_reconcile_is_a_noop_offline(db, ledger):
    user = make_user(db)
    ledger.create_order(user.id, "basic", 5, 499, None, db)

    assert ledger.reconcile_pending(db) == {"checked": 0, "completed": 0}
