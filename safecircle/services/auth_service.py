"""Signup and login code requests."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from safecircle.core.result import Err, ErrorCode, Result, internal_error
from safecircle.core.validation import is_valid_phone, mask_phone
from safecircle.models.user import User, UserStatus
from safecircle.services.otp_issuer import IssueReceipt, issue_verification_code
from safecircle.services.sms_transport import SmsTransport

logger = logging.getLogger(__name__)

LOGIN_NOT_FOUND_MESSAGE = "If an account exists for this number, a code will be sent"


def get_user_by_phone(db: Session, phone_number: str) -> User | None:
    """Get user by phone number."""
    return db.execute(select(User).where(User.phone_number == phone_number)).scalar_one_or_none()


def _create_pending_user(
    db: Session,
    phone_number: str,
    first_name: str | None,
    device_id: str | None,
) -> User | None:
    user = User(
        phone_number=phone_number,
        first_name=first_name,
        device_id=device_id,
        phone_verified=False,
        status=UserStatus.PENDING_VERIFICATION.value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent signup for the same number
        db.rollback()
        return get_user_by_phone(db, phone_number)
    db.refresh(user)
    return user


def _signup_user(
    db: Session,
    phone_number: str,
    first_name: str | None,
    device_id: str | None,
) -> Err | User:
    user = get_user_by_phone(db, phone_number)
    if user is not None and user.phone_verified:
        logger.info("signup_rejected reason=USER_EXISTS phone=%s", mask_phone(phone_number))
        return Err(ErrorCode.USER_EXISTS, "Account already exists. Please log in")
    if user is None:
        user = _create_pending_user(db, phone_number, first_name, device_id)
        if user is None:
            return internal_error()
        logger.info("signup_user_created user_id=%s phone=%s", user.id, mask_phone(phone_number))
    return user


def _login_user(db: Session, phone_number: str) -> Err | User:
    user = get_user_by_phone(db, phone_number)
    if user is None:
        logger.info("login_rejected reason=USER_NOT_FOUND phone=%s", mask_phone(phone_number))
        return Err(ErrorCode.USER_NOT_FOUND, LOGIN_NOT_FOUND_MESSAGE)
    if user.status == UserStatus.SUSPENDED.value:
        return Err(ErrorCode.USER_SUSPENDED, "User suspended. Contact support")
    if not user.phone_verified:
        return Err(ErrorCode.PHONE_UNVERIFIED, "Please verify phone number first")
    return user


async def request_signup_code(
    db: Session,
    transport: SmsTransport,
    *,
    phone_number: str,
    first_name: str | None = None,
    device_id: str | None = None,
    now: datetime | None = None,
) -> Result[IssueReceipt]:
    """Create the account if needed and send a signup code."""
    if not is_valid_phone(phone_number):
        return Err(ErrorCode.VALIDATION_ERROR, "Invalid phone number")

    user = await run_in_threadpool(_signup_user, db, phone_number, first_name, device_id)
    if isinstance(user, Err):
        return user

    return await issue_verification_code(
        db,
        transport,
        user_id=user.id,
        phone_number=phone_number,
        purpose="signup",
        now=now,
    )


async def request_login_code(
    db: Session,
    transport: SmsTransport,
    *,
    phone_number: str,
    now: datetime | None = None,
) -> Result[IssueReceipt]:
    """Send a login code to an existing, verified account."""
    if not is_valid_phone(phone_number):
        return Err(ErrorCode.VALIDATION_ERROR, "Invalid phone number")

    user = await run_in_threadpool(_login_user, db, phone_number)
    if isinstance(user, Err):
        return user

    return await issue_verification_code(
        db,
        transport,
        user_id=user.id,
        phone_number=phone_number,
        purpose="login",
        now=now,
    )
