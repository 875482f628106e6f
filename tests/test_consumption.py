import threading
from types import SimpleNamespace

import pytest

from conftest import days_from_now, make_property, make_user
from payment import consumption
from payment.consumption import ConsumptionGate, has_unlocked, parse_property_id
from payment.errors import InsufficientCredits, InvalidInput, NotFound
from payment.models import CreditTransaction


@pytest.fixture
def owner(db):
    return make_user(db, user_type="owner")


@pytest.fixture
def listing(db, owner):
    return make_property(db, owner)


def ledger_entries(db, user):
    return db.query(CreditTransaction).filter(CreditTransaction.user_id == user.id).all()


def test_unlock_debits_one_credit_and_returns_contact_details(db, listing):
    tenant = make_user(db, credits=3, credit_expiry=days_from_now(10))

    result = ConsumptionGate().consume_credit(tenant.id, listing.id, db)

    assert result.charged is True
    assert result.first_time_view is True
    assert result.remaining_credits == 2
    assert result.contact_details.name == "Ravi Kumar"
    assert result.contact_details.phone == "9876543210"
    assert result.contact_details.email == "ravi@example.com"

    db.refresh(tenant)
    assert tenant.credits == 2
    assert tenant.total_used_credits == 1
    [entry] = ledger_entries(db, tenant)
    assert entry.transaction_type == "used"
    assert entry.credits == -1
    assert entry.balance_after == 2
    assert entry.property_id == listing.id
    assert has_unlocked(db, tenant.id, listing.id)


def test_no_credits_means_no_unlock(db, listing):
    tenant = make_user(db, credits=0)

    with pytest.raises(InsufficientCredits):
        ConsumptionGate().consume_credit(tenant.id, listing.id, db)

    db.refresh(tenant)
    assert tenant.credits == 0
    assert ledger_entries(db, tenant) == []


def test_expired_credits_cannot_be_spent(db, listing):
    tenant = make_user(db, credits=5, credit_expiry=days_from_now(-1))

    with pytest.raises(InsufficientCredits):
        ConsumptionGate().consume_credit(tenant.id, listing.id, db)

    db.refresh(tenant)
    assert tenant.credits == 5
    assert ledger_entries(db, tenant) == []


def test_last_credit_can_only_be_spent_once(db, owner):
    first = make_property(db, owner)
    second = make_property(db, owner)
    tenant = make_user(db, credits=1)
    gate = ConsumptionGate()

    gate.consume_credit(tenant.id, first.id, db)
    with pytest.raises(InsufficientCredits):
        gate.consume_credit(tenant.id, second.id, db)

    db.refresh(tenant)
    assert tenant.credits == 0
    assert len(ledger_entries(db, tenant)) == 1


def test_simultaneous_unlocks_spend_the_last_credit_once(db, session_factory, owner):
    listings = [make_property(db, owner), make_property(db, owner)]
    tenant = make_user(db, credits=1)
    barrier = threading.Barrier(2)
    outcomes = []

    def unlock(property_id):
        session = session_factory()
        try:
            barrier.wait()
            ConsumptionGate().consume_credit(tenant.id, property_id, session)
            outcomes.append("ok")
        except InsufficientCredits:
            outcomes.append("InsufficientCredits")
        finally:
            session.close()

    threads = [threading.Thread(target=unlock, args=(listing.id,)) for listing in listings]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == ["InsufficientCredits", "ok"]
    db.refresh(tenant)
    assert tenant.credits == 0
    assert tenant.total_used_credits == 1
    assert len(ledger_entries(db, tenant)) == 1


def test_debit_that_lost_a_race_writes_nothing(db, listing, monkeypatch):
    tenant = make_user(db, credits=0)
    # the row lock saw the balance before a concurrent debit committed
    stale = SimpleNamespace(id=tenant.id, credits=1, credit_expiry=None)
    monkeypatch.setattr(consumption, "lock_user", lambda session, user_id: stale)

    with pytest.raises(InsufficientCredits):
        ConsumptionGate().consume_credit(tenant.id, listing.id, db)

    db.refresh(tenant)
    assert tenant.credits == 0
    assert tenant.total_used_credits == 0
    assert ledger_entries(db, tenant) == []


def test_missing_property_rolls_back_the_debit(db):
    tenant = make_user(db, credits=2)

    with pytest.raises(NotFound):
        ConsumptionGate().consume_credit(tenant.id, 9999, db)

    db.refresh(tenant)
    assert tenant.credits == 2
    assert tenant.total_used_credits == 0
    assert ledger_entries(db, tenant) == []


def test_unlisted_property_cannot_be_unlocked(db, owner):
    gone = make_property(db, owner, is_active=False)
    tenant = make_user(db, credits=2)

    with pytest.raises(NotFound):
        ConsumptionGate().consume_credit(tenant.id, gone.id, db)

    db.refresh(tenant)
    assert tenant.credits == 2


def test_repeat_unlock_is_free_by_default(db, listing):
    tenant = make_user(db, credits=1)
    gate = ConsumptionGate()
    gate.consume_credit(tenant.id, listing.id, db)

    again = gate.consume_credit(tenant.id, listing.id, db)

    assert again.charged is False
    assert again.first_time_view is False
    assert again.remaining_credits == 0
    assert again.contact_details.phone == "9876543210"
    assert len(ledger_entries(db, tenant)) == 1


def test_repeat_unlock_is_charged_when_configured(db, listing):
    tenant = make_user(db, credits=2)
    gate = ConsumptionGate(charge_repeat_unlocks=True)
    gate.consume_credit(tenant.id, listing.id, db)

    again = gate.consume_credit(tenant.id, listing.id, db)

    assert again.charged is True
    assert again.first_time_view is False
    assert again.remaining_credits == 0
    assert len(ledger_entries(db, tenant)) == 2
    with pytest.raises(InsufficientCredits):
        gate.consume_credit(tenant.id, listing.id, db)


@pytest.mark.parametrize("raw", [None, "", "abc", "12a", 0, -3, True, 2.5, {"property_id": "x"}])
def test_invalid_property_ids_are_rejected(raw):
    with pytest.raises(InvalidInput) as exc:
        parse_property_id(raw)
    assert exc.value.field == "property_id"


@pytest.mark.parametrize("raw, expected", [(7, 7), ("7", 7), (" 42 ", 42), ({"property_id": 5}, 5), ({"propertyId": "9"}, 9)])
def test_property_id_forms(raw, expected):
    assert parse_property_id(raw) == expected


def test_invalid_property_id_does_not_touch_the_balance(db):
    tenant = make_user(db, credits=1)

    with pytest.raises(InvalidInput):
        ConsumptionGate().consume_credit(tenant.id, "abc", db)

    db.refresh(tenant)
    assert tenant.credits == 1


def test_ledger_replays_to_the_stored_balance(db, ledger, owner):
    tenant = make_user(db)
    properties = [make_property(db, owner) for _ in range(3)]
    order = ledger.create_order(tenant.id, "basic", 5, 499, None, db)
    ledger.confirm_payment(order.order_id, tenant.id, order.test_payment_id, order.test_signature, db)
    gate = ConsumptionGate()
    for prop in properties:
        gate.consume_credit(tenant.id, prop.id, db)
    gate.consume_credit(tenant.id, properties[0].id, db)

    db.refresh(tenant)
    entries = db.query(CreditTransaction).filter(
        CreditTransaction.user_id == tenant.id
    ).order_by(CreditTransaction.id).all()
    assert tenant.credits == 2
    assert sum(e.credits for e in entries) == tenant.credits
    assert entries[-1].balance_after == tenant.credits
    assert -sum(e.credits for e in entries if e.transaction_type == "used") == tenant.total_used_credits
