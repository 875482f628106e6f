# payment/consumption.py
import logging

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from auth.models import User
from database import utcnow
from payment.errors import InsufficientCredits, InvalidInput, NotFound, unit_of_work
from payment.models import CreditTransaction
from payment.schemas import ContactDetails, UseCreditResponse
from payment.services import credits_active, effective_balance, lock_user
from properties.models import Property

logger = logging.getLogger(__name__)


def parse_property_id(raw) -> int:
    """Accept a positive int, a numeric string, or {"property_id": ...} as sent by older clients."""
    if isinstance(raw, dict):
        raw = raw.get("property_id", raw.get("propertyId"))
    value = None
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        value = int(raw.strip())
    if value is None or value <= 0:
        raise InvalidInput("property_id", "Valid property ID is required")
    return value


def has_unlocked(db: Session, user_id: int, property_id: int) -> bool:
    return db.query(CreditTransaction.id).filter(
        CreditTransaction.user_id == user_id,
        CreditTransaction.property_id == property_id,
        CreditTransaction.transaction_type == "used"
    ).first() is not None


def _contact_details(prop: Property) -> ContactDetails:
    return ContactDetails(
        name=prop.contact_person_name,
        phone=prop.contact_person_phone,
        email=prop.contact_person_email,
        whatsapp=prop.contact_person_whatsapp,
    )


class ConsumptionGate:
    """Releases a listing's contact details in exchange for one credit."""

    def __init__(self, charge_repeat_unlocks: bool = False):
        self.charge_repeat_unlocks = charge_repeat_unlocks

    @staticmethod
    def _get_property(db: Session, property_id: int) -> Property:
        prop = db.query(Property).filter(Property.id == property_id, Property.is_active == True).first()  # noqa: E712
        if not prop:
            raise NotFound("Property not found")
        return prop

    def consume_credit(self, user_id: int, raw_property_id, db: Session) -> UseCreditResponse:
        property_id = parse_property_id(raw_property_id)

        with unit_of_work(db, "consume_credit", user_id=user_id, property_id=property_id):
            user = lock_user(db, user_id)
            if user is None:
                raise NotFound("User not found")

            first_time_view = not has_unlocked(db, user_id, property_id)
            if not first_time_view and not self.charge_repeat_unlocks:
                prop = self._get_property(db, property_id)
                return UseCreditResponse(
                    contact_details=_contact_details(prop),
                    remaining_credits=effective_balance(user),
                    first_time_view=False,
                    charged=False,
                    message="Contact details already unlocked",
                )

            now = utcnow()
            if not credits_active(user.credits, user.credit_expiry, now):
                raise InsufficientCredits()

            # re-checked in the WHERE clause: a debit that lost a race matches no row
            result = db.execute(
                update(User)
                .where(
                    User.id == user_id,
                    User.credits > 0,
                    or_(User.credit_expiry.is_(None), User.credit_expiry > now)
                )
                .values(credits=User.credits - 1, total_used_credits=User.total_used_credits + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(f"Credit debit for user {user_id} matched no row, balance changed concurrently")
                raise InsufficientCredits()

            prop = self._get_property(db, property_id)
            db.refresh(user)
            db.add(CreditTransaction(
                user_id=user_id,
                transaction_type="used",
                credits=-1,
                balance_after=user.credits,
                property_id=property_id,
                description=f"Viewed contact details for property {prop.property_code or prop.id}",
                expires_at=user.credit_expiry,
            ))
            remaining = user.credits

        logger.info(f"User {user_id} unlocked property {property_id}, {remaining} credits left")
        return UseCreditResponse(
            contact_details=_contact_details(prop),
            remaining_credits=remaining,
            first_time_view=first_time_view,
            charged=True,
            message="Credit used successfully",
        )
