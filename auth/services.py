# auth/services.py
import logging
import re
import smtplib
from datetime import datetime, timedelta
from email.mime.text import MIMEText
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException, status
from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from auth.models import User, VerificationToken
from auth.schemas import UserCreate, ProfileUpdate
from config import settings
from database import utcnow
from payment.errors import InvalidInput, unit_of_work
from payment.services import grant_welcome_credits

logger = logging.getLogger(__name__)

USER_TYPES = ("tenant", "owner", "admin")
FAMILY_MEMBER_OPTIONS = ("1", "2", "3", "4", "5+")
TOTAL_PROPERTY_OPTIONS = ("1", "2-5", "6-10", "10+")
NAME_PATTERN = re.compile(r"^[A-Za-z\s]{2,100}$")
PHONE_PATTERN = re.compile(r"^\d{10}$")


def validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not NAME_PATTERN.match(name):
        raise InvalidInput("name", "Name must be 2-100 characters and contain only letters and spaces")
    return name


def validate_phone(phone: Optional[str]) -> str:
    phone = (phone or "").strip()
    if not PHONE_PATTERN.match(phone):
        raise InvalidInput("phone", "Phone number must be exactly 10 digits")
    return phone


def validate_password(password: str, field: str = "password") -> None:
    if len(password or "") < 8:
        raise InvalidInput(field, "Password must be at least 8 characters")
    if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
        raise InvalidInput(field, "Password must contain letters and numbers")


class AuthService:
    pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        return AuthService.pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        return AuthService.pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token."""
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def token_for(user: User) -> str:
        return AuthService.create_access_token({"sub": user.email, "user_type": user.user_type})

    @staticmethod
    def get_user_by_email(email: str, db: Session) -> Optional[User]:
        """Retrieve a user by email."""
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> Optional[User]:
        user = AuthService.get_user_by_email(email, db)
        if not user or not AuthService.verify_password(password, user.password_hash):
            return None
        if not user.is_verified and user.user_type != "admin":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Please verify your email first")
        return user

    @staticmethod
    def validate_registration(user_data: UserCreate) -> None:
        validate_name(user_data.name)
        validate_phone(user_data.phone)
        validate_password(user_data.password)
        if user_data.password != user_data.confirm_password:
            raise InvalidInput("confirm_password", "Passwords do not match")
        if user_data.user_type not in USER_TYPES:
            raise InvalidInput("user_type", "User type must be tenant, owner or admin")
        if user_data.budget is not None and user_data.budget < 0:
            raise InvalidInput("budget", "Budget must be a positive number")

        if user_data.user_type == "tenant":
            if not (user_data.occupation or "").strip():
                raise InvalidInput("occupation", "Occupation is required for tenants")
            if user_data.family_members not in FAMILY_MEMBER_OPTIONS:
                raise InvalidInput("family_members", "Family members must be one of 1, 2, 3, 4, 5+")
        elif user_data.user_type == "owner":
            if not (user_data.property_type or "").strip():
                raise InvalidInput("property_type", "Property type is required for owners")
            company = (user_data.company_name or "").strip()
            if not 2 <= len(company) <= 200:
                raise InvalidInput("company_name", "Company name must be 2-200 characters")
            if user_data.total_properties is not None and user_data.total_properties not in TOTAL_PROPERTY_OPTIONS:
                raise InvalidInput("total_properties", "Total properties must be one of 1, 2-5, 6-10, 10+")
        else:
            if not user_data.admin_code or user_data.admin_code not in settings.ADMIN_REGISTRATION_CODES:
                raise InvalidInput("admin_code", "Invalid admin code")
            if not (user_data.department or "").strip():
                raise InvalidInput("department", "Department is required for admins")

    @staticmethod
    def create_user(user_data: UserCreate, db: Session) -> User:
        AuthService.validate_registration(user_data)
        if db.query(User).filter(User.email == user_data.email).first():
            raise HTTPException(status_code=400, detail="Email already registered")
        if db.query(User).filter(User.phone == user_data.phone.strip()).first():
            raise HTTPException(status_code=400, detail="Phone number already registered")

        user_type = user_data.user_type
        new_user = User(
            name=user_data.name.strip(),
            email=user_data.email,
            phone=user_data.phone.strip(),
            password_hash=AuthService.hash_password(user_data.password),
            user_type=user_type,
            is_verified=user_type == "admin",
            credits=0,
            total_properties_allowed=settings.PROPERTIES_ALLOWED[user_type],
        )
        if user_type == "tenant":
            new_user.occupation = user_data.occupation.strip()
            new_user.family_members = user_data.family_members
            new_user.preferred_location = user_data.preferred_location
            new_user.budget = user_data.budget
            new_user.move_in_date = user_data.move_in_date
        elif user_type == "owner":
            new_user.property_type = user_data.property_type.strip()
            new_user.total_properties = user_data.total_properties
            new_user.company_name = user_data.company_name.strip()
            new_user.address = user_data.address
        else:
            new_user.department = user_data.department.strip()

        token = uuid4().hex
        with unit_of_work(db, "register_user", email=user_data.email):
            db.add(new_user)
            db.flush()
            grant_welcome_credits(db, new_user, settings.WELCOME_CREDITS[user_type])
            if not new_user.is_verified:
                db.add(VerificationToken(
                    user_id=new_user.id, token=token, token_type="verify", expiry=utcnow() + timedelta(days=30)
                ))
        db.refresh(new_user)
        logger.info(f"Registered {user_type} {new_user.id} with {new_user.credits} welcome credits")

        if not new_user.is_verified:
            verify_url = f"{settings.BASE_FRONT_URL}/verify?token={token}"
            AuthService.send_email(new_user.email, "Verify Your Email", f"Click to verify: {verify_url}")
        return new_user

    @staticmethod
    def verify_email(token: str, db: Session) -> dict:
        ver_token = db.query(VerificationToken).filter(
            VerificationToken.token == token,
            VerificationToken.token_type == "verify",
            VerificationToken.expiry > utcnow()
        ).first()
        if not ver_token:
            raise HTTPException(status_code=400, detail="Invalid or expired token")

        user = db.query(User).filter(User.id == ver_token.user_id).first()
        with unit_of_work(db, "verify_email", user_id=ver_token.user_id):
            user.is_verified = True
            db.delete(ver_token)
        return {"message": "Email verified. You can now login."}

    @staticmethod
    def update_profile(user: User, data: ProfileUpdate, db: Session) -> User:
        changes = data.dict(exclude_unset=True)
        if "name" in changes:
            changes["name"] = validate_name(changes["name"])
        if "phone" in changes:
            changes["phone"] = validate_phone(changes["phone"])
            taken = db.query(User).filter(User.phone == changes["phone"], User.id != user.id).first()
            if taken:
                raise HTTPException(status_code=400, detail="Phone number already registered")
        if changes.get("family_members") is not None and changes["family_members"] not in FAMILY_MEMBER_OPTIONS:
            raise InvalidInput("family_members", "Family members must be one of 1, 2, 3, 4, 5+")
        if changes.get("budget") is not None and changes["budget"] < 0:
            raise InvalidInput("budget", "Budget must be a positive number")

        with unit_of_work(db, "update_profile", user_id=user.id):
            for key, value in changes.items():
                setattr(user, key, value)
        db.refresh(user)
        return user

    @staticmethod
    def send_email(to_email: str, subject: str, body: str):
        if not settings.SMTP_SERVER:
            logger.info(f"SMTP not configured, mail to {to_email} not sent: {subject}: {body}")
            return
        try:
            msg = MIMEText(body)
            msg['Subject'] = subject
            msg['From'] = settings.FROM_EMAIL
            msg['To'] = to_email

            with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
                server.starttls()
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending to {to_email}: {str(e)}", exc_info=True)
            raise HTTPException(status_code=503, detail="Email service temporarily unavailable, try again later")

    @staticmethod
    def send_password_reset(email: str, db: Session):
        user = AuthService.get_user_by_email(email, db)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        token = uuid4().hex
        with unit_of_work(db, "password_reset_token", user_id=user.id):
            db.add(VerificationToken(user_id=user.id, token=token, token_type="reset", expiry=utcnow() + timedelta(hours=1)))

        reset_url = f"{settings.BASE_FRONT_URL}/reset-password?token={token}"
        AuthService.send_email(email, "Reset Your Password", f"Click to reset password: {reset_url}")
        return {"message": "Password reset email sent"}

    @staticmethod
    def reset_password(token: str, new_password: str, db: Session):
        reset_token = db.query(VerificationToken).filter(
            VerificationToken.token == token,
            VerificationToken.token_type == "reset",
            VerificationToken.expiry > utcnow()
        ).first()
        if not reset_token:
            raise HTTPException(status_code=400, detail="Invalid or expired token")
        validate_password(new_password, "new_password")

        user = db.query(User).filter(User.id == reset_token.user_id).first()
        with unit_of_work(db, "reset_password", user_id=user.id):
            user.password_hash = AuthService.hash_password(new_password)
            db.delete(reset_token)
        return {"message": "Password reset successful"}
