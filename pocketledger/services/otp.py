import enum
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from ..config import settings
from ..core.sms import SmsDeliveryError, SmsSender
from ..errors import CodeExpired, InternalError, InvalidCode, InvalidInput, NotFound
from ..models.base import utcnow
from ..models.user import User


logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\+[1-9]\d{1,14}$")
CODE_DIGITS = 6


class VerificationOutcome(str, enum.Enum):
    FIRST_VERIFICATION = "first_verification"
    RETURNING_USER = "returning_user"


@dataclass
class IssuedCode:
    masked_phone: str
    code: str
    expires_at: datetime
    delivered: bool


@dataclass
class Verification:
    user: User
    outcome: VerificationOutcome

    @property
    def is_first(self) -> bool:
        return self.outcome is VerificationOutcome.FIRST_VERIFICATION


def validate_phone(phone_number: str) -> str:
    phone = (phone_number or "").strip()
    if not PHONE_RE.match(phone):
        raise InvalidInput(
            "Invalid phone number format. Please include country code (e.g., +1234567890)"
        )
    return phone


def mask_phone(phone_number: str) -> str:
    keep = phone_number[-4:]
    return "*" * (len(phone_number) - len(keep)) + keep


def generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def issue_code(
    session: Session,
    phone_number: str,
    sender: SmsSender,
    now: Optional[datetime] = None,
) -> IssuedCode:
    """Create or refresh the one-time code for ``phone_number`` and deliver it.

    Any earlier code is overwritten. The record is committed before delivery
    so a provider failure still leaves a usable code behind.
    """
    phone = validate_phone(phone_number)
    now = now or utcnow()

    code = generate_code()
    expires_at = now + timedelta(minutes=settings.otp_ttl_minutes)

    user = session.exec(select(User).where(User.phone_number == phone)).first()
    if user is None:
        user = User(phone_number=phone, is_verified=False, created_at=now)
    user.otp_code = code
    user.otp_expires_at = expires_at
    user.updated_at = now

    session.add(user)
    session.commit()
    session.refresh(user)

    body = (
        f"Your PocketLedger verification code is: {code}. "
        f"Valid for {settings.otp_ttl_minutes} minutes."
    )
    try:
        delivered = sender.send(phone, body)
    except SmsDeliveryError as e:
        logger.error("OTP delivery to %s failed: %s", mask_phone(phone), e)
        raise InternalError("Failed to send OTP. Please check your phone number and try again.")

    logger.info("Issued OTP for %s (delivered=%s)", mask_phone(phone), delivered)
    return IssuedCode(
        masked_phone=mask_phone(phone),
        code=code,
        expires_at=expires_at,
        delivered=delivered,
    )


def verify_code(
    session: Session,
    phone_number: str,
    code: str,
    now: Optional[datetime] = None,
) -> Verification:
    """Consume the stored code for ``phone_number``.

    This is the only place a user becomes verified. A consumed code is cleared,
    so replaying it fails with InvalidCode.
    """
    phone = validate_phone(phone_number)
    now = now or utcnow()

    user = session.exec(select(User).where(User.phone_number == phone)).first()
    if user is None:
        raise NotFound("User not found. Please request a new OTP.")

    if user.otp_code is None:
        raise InvalidCode()
    if user.otp_expires_at is None or user.otp_expires_at < now:
        raise CodeExpired()
    if user.otp_code != str(code):
        logger.info("OTP mismatch for %s", mask_phone(phone))
        raise InvalidCode()

    outcome = (
        VerificationOutcome.RETURNING_USER
        if user.is_verified
        else VerificationOutcome.FIRST_VERIFICATION
    )
    # Conditional on the code still being stored, so concurrent attempts with
    # the same code cannot both succeed
    result = session.execute(
        update(User)
        .where(User.id == user.id, User.otp_code == user.otp_code)
        .values(is_verified=True, otp_code=None, otp_expires_at=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    if result.rowcount != 1:
        raise InvalidCode()
    session.refresh(user)

    logger.info("Verified %s (%s)", mask_phone(phone), outcome.value)
    return Verification(user=user, outcome=outcome)
