from conftest import CapturingGateway, make_user
from payment.models import Payment
from payment.services import CreditLedger
from scheduler import tasks


def test_reconcile_job_uses_its_own_session(db, session_factory, monkeypatch):
    gateway = CapturingGateway()
    monkeypatch.setattr(tasks, "get_gateway", lambda: gateway)
    user = make_user(db)
    order = CreditLedger(gateway).create_order(user.id, "basic", 5, 499, None, db)
    gateway.payments[order.order_id] = [{"id": "pay_late", "status": "captured", "method": "netbanking"}]

    result = tasks.reconcile_pending_payments(session_factory)

    assert result == {"checked": 1, "completed": 1}
    db.expire_all()
    assert db.query(Payment).filter(Payment.order_id == order.order_id).one().status == "completed"


def test_scheduler_is_not_started_offline(monkeypatch, gateway):
    monkeypatch.setattr(tasks, "get_gateway", lambda: gateway)

    assert tasks.start_scheduler() is None
