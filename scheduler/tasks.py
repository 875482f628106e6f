# scheduler/tasks.py
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from config import settings
from database import SessionLocal
from payment.gateway import get_gateway
from payment.services import CreditLedger

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def reconcile_pending_payments(session_factory=SessionLocal) -> dict:
    """Complete pending orders whose capture webhook never arrived."""
    logger.info("Starting reconcile_pending_payments task")
    db: Session = session_factory()
    try:
        ledger = CreditLedger(get_gateway())
        result = ledger.reconcile_pending(db)
    except Exception as e:
        logger.error(f"Error in reconcile_pending_payments: {str(e)}", exc_info=True)
        result = {"checked": 0, "completed": 0, "error": str(e)}
    finally:
        db.close()
    logger.info("Finished reconcile_pending_payments task")
    return result


def start_scheduler() -> Optional[BackgroundScheduler]:
    """Start the background scheduler; reconciliation only matters against a live gateway."""
    global _scheduler
    if _scheduler is not None:
        return _scheduler
    if not get_gateway().is_live:
        logger.info("Offline payment gateway, reconciliation scheduler not started")
        return None
    _scheduler = BackgroundScheduler()
    _scheduler.add_job(
        reconcile_pending_payments,
        'interval',
        minutes=settings.RECONCILE_INTERVAL_MINUTES,
        max_instances=1,
        coalesce=True,
    )
    _scheduler.start()
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
