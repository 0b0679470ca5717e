"""Verification code redemption."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from safecircle.core.config import settings
from safecircle.core.otp_policies import lock_duration
from safecircle.core.result import Err, ErrorCode, Ok, Result, internal_error
from safecircle.core.security import burn_code_check, create_access_token, verify_code_hash
from safecircle.core.validation import is_valid_code, is_valid_phone, mask_phone
from safecircle.core.windows import ensure_utc, minutes_until, seconds_until, utcnow
from safecircle.db.store import conditional_update, increment_by_ids
from safecircle.models.otp_code import OtpCode, OtpStatus
from safecircle.models.user import User, UserStatus

logger = logging.getLogger(__name__)

INVALID_OR_EXPIRED = "Invalid or expired OTP"


@dataclass(frozen=True)
class VerifiedSession:
    user_id: int
    phone_number: str
    status: str
    access_token: str
    expires_at: datetime


def _locked_err(locked_until: datetime, now: datetime) -> Err:
    return Err(
        ErrorCode.ACCOUNT_LOCKED,
        f"Try again in {minutes_until(locked_until, now)} minutes",
        retry_after=seconds_until(locked_until, now),
    )


def _active_lock(user: User, now: datetime) -> datetime | None:
    locked_until = ensure_utc(user.otp_locked_until)
    if locked_until is not None and now < locked_until:
        return locked_until
    return None


def _latest_pending(db: Session, user_id: int) -> OtpCode | None:
    return db.execute(
        select(OtpCode)
        .where(OtpCode.user_id == user_id, OtpCode.status == OtpStatus.PENDING.value)
        .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _record_mismatch(db: Session, user: User, otp: OtpCode, now: datetime) -> Err:
    """Count a wrong guess on both the code and the user; lock at max attempts."""
    user_id, otp_id = user.id, otp.id
    db.execute(
        update(OtpCode)
        .where(OtpCode.id == otp_id)
        .values(attempts=OtpCode.attempts + 1, last_attempt_at=now)
        .execution_options(synchronize_session=False)
    )
    increment_by_ids(db, User.failed_attempt_count, [user_id])

    attempts, max_attempts = db.execute(
        select(OtpCode.attempts, OtpCode.max_attempts).where(OtpCode.id == otp_id)
    ).one()
    failed_count = db.execute(select(User.failed_attempt_count).where(User.id == user_id)).scalar_one()

    if attempts < max_attempts:
        db.commit()
        remaining = max_attempts - attempts
        logger.info("otp_verify_mismatch user_id=%s attempts=%s", user_id, attempts)
        return Err(
            ErrorCode.INVALID_OTP,
            f"Incorrect OTP. {remaining} attempt(s) remaining",
            context={"attempts_remaining": remaining},
        )

    locked_until = now + lock_duration(failed_count)
    db.execute(
        update(OtpCode)
        .where(OtpCode.id == otp_id, OtpCode.status == OtpStatus.PENDING.value)
        .values(status=OtpStatus.FAILED.value)
        .execution_options(synchronize_session=False)
    )
    # bumping the version makes a concurrent success lose its conditional update
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(otp_locked_until=locked_until, version=User.version + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.warning(
        "otp_verify_locked user_id=%s failed_attempts=%s locked_until=%s",
        user_id,
        failed_count,
        locked_until.isoformat(),
    )
    return Err(
        ErrorCode.INVALID_OTP,
        f"Too many attempts. Try again in {minutes_until(locked_until, now)} minutes",
        retry_after=seconds_until(locked_until, now),
        context={"attempts_remaining": 0},
    )


def _activate(db: Session, user_id: int, version: int, now: datetime) -> Result[User]:
    """Clear lockout state and mark the phone verified, unless a lockout landed first."""
    values = {
        "otp_locked_until": None,
        "failed_attempt_count": 0,
        "phone_verified": True,
        "status": UserStatus.ACTIVE.value,
    }
    for _ in range(2):
        if conditional_update(db, User, user_id, version, values):
            db.commit()
            return Ok(db.get(User, user_id))
        fresh = db.get(User, user_id)
        if fresh is None:
            db.commit()
            return Err(ErrorCode.USER_NOT_FOUND, "User not found")
        locked_until = _active_lock(fresh, now)
        if locked_until is not None:
            db.commit()
            return _locked_err(locked_until, now)
        version = fresh.version
    db.commit()
    logger.warning("otp_verify_activation_conflict user_id=%s", user_id)
    return internal_error("Could not complete verification. Please try again")


def _verify(db: Session, phone_number: str, code: str, now: datetime) -> Result[VerifiedSession]:
    if not is_valid_phone(phone_number):
        return Err(ErrorCode.VALIDATION_ERROR, "Invalid phone number")
    if not is_valid_code(code):
        return Err(ErrorCode.VALIDATION_ERROR, f"OTP must be {settings.otp_length} digits")

    user = db.execute(select(User).where(User.phone_number == phone_number)).scalar_one_or_none()
    if user is None:
        burn_code_check(code)
        logger.info("otp_verify_rejected reason=unknown_phone phone=%s", mask_phone(phone_number))
        return Err(ErrorCode.EXPIRED_OR_INVALID_OTP, INVALID_OR_EXPIRED)
    if user.status == UserStatus.SUSPENDED.value:
        return Err(ErrorCode.USER_SUSPENDED, "User suspended. Contact support")
    if user.status == UserStatus.INACTIVE.value:
        return Err(ErrorCode.ACCOUNT_INACTIVE, "Account is inactive")

    locked_until = _active_lock(user, now)
    if locked_until is not None:
        return _locked_err(locked_until, now)

    version = user.version
    otp = _latest_pending(db, user.id)
    if otp is None:
        return Err(ErrorCode.EXPIRED_OR_INVALID_OTP, INVALID_OR_EXPIRED)

    expires_at = ensure_utc(otp.expires_at)
    if expires_at is None or now > expires_at:
        db.execute(
            update(OtpCode)
            .where(OtpCode.id == otp.id, OtpCode.status == OtpStatus.PENDING.value)
            .values(status=OtpStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return Err(ErrorCode.OTP_EXPIRED, "OTP has expired. Request a new one")

    if not verify_code_hash(code, otp.code_hash):
        return _record_mismatch(db, user, otp, now)

    user_id = user.id
    consumed = db.execute(
        delete(OtpCode)
        .where(OtpCode.id == otp.id, OtpCode.status == OtpStatus.PENDING.value)
        .execution_options(synchronize_session=False)
    )
    if consumed.rowcount != 1:
        db.rollback()
        return Err(ErrorCode.EXPIRED_OR_INVALID_OTP, INVALID_OR_EXPIRED)

    activated = _activate(db, user_id, version, now)
    if isinstance(activated, Err):
        return activated
    verified = activated.value

    token_expires_at = utcnow() + timedelta(minutes=settings.jwt_expire_minutes)
    token = create_access_token(
        verified.id,
        extra={"phone_number": verified.phone_number},
        expires_at=token_expires_at,
    )
    logger.info("otp_verified user_id=%s phone=%s", verified.id, mask_phone(verified.phone_number))
    return Ok(
        VerifiedSession(
            user_id=verified.id,
            phone_number=verified.phone_number,
            status=verified.status,
            access_token=token,
            expires_at=token_expires_at,
        ),
        "OTP verified successfully",
    )


def verify_code(
    db: Session,
    *,
    phone_number: str,
    code: str,
    now: datetime | None = None,
) -> Result[VerifiedSession]:
    """Redeem ``code`` for the account behind ``phone_number``."""
    now = ensure_utc(now) or utcnow()
    try:
        return _verify(db, phone_number, code, now)
    except Exception:
        logger.exception("otp_verify_failed phone=%s", mask_phone(phone_number))
        db.rollback()
        return internal_error()
