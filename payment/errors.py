# payment/errors.py
import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class InvalidInput(HTTPException):
    """Missing or malformed input; detail names the offending field."""
    def __init__(self, field: str, message: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"field": field, "message": message}],
        )
        self.field = field


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class VerificationFailed(HTTPException):
    def __init__(self, detail: str = "Payment verification failed - Invalid signature"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class WebhookAuthenticationError(HTTPException):
    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InsufficientCredits(HTTPException):
    def __init__(self, detail: str = "No valid credits available. Please purchase credits first."):
        super().__init__(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=detail)


class ConflictError(HTTPException):
    """Another caller already moved the payment out of `pending`."""
    def __init__(self, detail: str = "Payment already processed"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class StorageError(HTTPException):
    """Retryable store failure; the raw database error stays in the logs."""
    def __init__(self, correlation_id: str):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Internal error, please retry (ref {correlation_id})",
        )
        self.correlation_id = correlation_id


@contextmanager
def unit_of_work(db: Session, operation: str, **context) -> Iterator[Session]:
    """Commit on success; roll back everything on any error.

    Database errors are logged with a correlation id and re-raised as
    StorageError, every other exception propagates unchanged.
    """
    try:
        yield db
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        correlation_id = uuid4().hex[:12]
        logger.error(f"{operation} failed, rolled back (ref {correlation_id}, context={context}): {e}", exc_info=True)
        raise StorageError(correlation_id) from e
    except Exception:
        db.rollback()
        raise
