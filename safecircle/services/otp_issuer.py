"""Verification code issuance.

One call issues at most one code. Checks run in a fixed order: lockout,
cooldown, window normalization, quota. Counters are only advanced after the
SMS transport reports success, so a failed send never consumes quota.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from safecircle.core.config import settings
from safecircle.core.otp_policies import OTP_PURPOSES, code_ttl, cooldown, quota_for
from safecircle.core.result import Err, ErrorCode, Ok, Result, internal_error
from safecircle.core.security import generate_numeric_code, hash_code
from safecircle.core.validation import is_valid_phone, mask_phone
from safecircle.core.windows import (
    DAY_WINDOW,
    HOUR_WINDOW,
    ensure_utc,
    is_day_window_expired,
    is_hour_window_expired,
    minutes_until,
    seconds_until,
    utcnow,
)
from safecircle.db.store import conditional_update
from safecircle.models.otp_code import OtpCode, OtpStatus
from safecircle.models.user import User
from safecircle.services.messages import render_verification
from safecircle.services.sms_transport import SendResult, SmsTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueReceipt:
    user_id: int
    phone_number: str
    purpose: str
    expires_at: datetime
    cooldown_seconds: int


@dataclass(frozen=True)
class _WindowState:
    hour_expired: bool
    day_expired: bool
    hour_count: int
    day_count: int


def _window_state(user: User, now: datetime) -> _WindowState:
    hour_expired = is_hour_window_expired(user.otp_hour_window_started_at, now)
    day_expired = is_day_window_expired(user.otp_day_window_started_at, now)
    return _WindowState(
        hour_expired=hour_expired,
        day_expired=day_expired,
        hour_count=0 if hour_expired else user.otp_requests_last_hour,
        day_count=0 if day_expired else user.otp_requests_today,
    )


def _reject(code: ErrorCode, message: str, phone_number: str, retry_after: int | None = None) -> Err:
    logger.info("otp_issue_rejected reason=%s phone=%s", code.value, mask_phone(phone_number))
    return Err(code, message, retry_after=retry_after)


def _window_wait(window_start: datetime | None, window: timedelta, now: datetime) -> int | None:
    start = ensure_utc(window_start)
    if start is None:
        # no window open yet, so a zero quota never frees up
        return None
    return seconds_until(start + window, now)


def _check_policy(user: User, purpose: str, now: datetime) -> tuple[Err | None, _WindowState | None]:
    phone = user.phone_number

    locked_until = ensure_utc(user.otp_locked_until)
    if locked_until is not None and now < locked_until:
        minutes = minutes_until(locked_until, now)
        return (
            _reject(ErrorCode.ACCOUNT_LOCKED, f"Try again in {minutes} minutes", phone, seconds_until(locked_until, now)),
            None,
        )

    last_requested = ensure_utc(user.last_otp_requested_at)
    if last_requested is not None and now - last_requested < cooldown():
        wait = seconds_until(last_requested + cooldown(), now)
        return (
            _reject(ErrorCode.OTP_COOLDOWN, f"Wait {wait} seconds to request new OTP", phone, wait),
            None,
        )

    state = _window_state(user, now)
    limits = quota_for(purpose)
    if state.hour_count >= limits.hourly:
        wait = _window_wait(user.otp_hour_window_started_at, HOUR_WINDOW, now)
        return (
            _reject(ErrorCode.LIMIT_EXCEEDED, "Hourly OTP request limit reached. Try again later", phone, wait),
            None,
        )
    if state.day_count >= limits.daily:
        wait = _window_wait(user.otp_day_window_started_at, DAY_WINDOW, now)
        return (
            _reject(ErrorCode.LIMIT_EXCEEDED, "Daily OTP request limit reached. Try again tomorrow", phone, wait),
            None,
        )
    return None, state


def _replace_pending(db: Session, phone_number: str, purpose: str, values: dict) -> int | None:
    """Overwrite the pending code for (phone, purpose) in place. Returns its id, if there was one."""
    existing_id = db.execute(
        select(OtpCode.id).where(
            OtpCode.phone_number == phone_number,
            OtpCode.purpose == purpose,
            OtpCode.status == OtpStatus.PENDING.value,
        )
    ).scalar_one_or_none()
    if existing_id is None:
        return None

    result = db.execute(
        update(OtpCode)
        .where(OtpCode.id == existing_id, OtpCode.status == OtpStatus.PENDING.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return existing_id if result.rowcount == 1 else None


def _upsert_pending_code(
    db: Session,
    user: User,
    purpose: str,
    code_hash: str,
    expires_at: datetime,
    now: datetime,
) -> int:
    """Replace the pending code for (phone, purpose) or insert one. Returns its id."""
    user_id, phone_number = user.id, user.phone_number
    values = {
        "user_id": user_id,
        "code_hash": code_hash,
        "expires_at": expires_at,
        "attempts": 0,
        "max_attempts": settings.otp_max_attempts,
        "last_attempt_at": None,
        "created_at": now,
    }
    existing_id = _replace_pending(db, phone_number, purpose, values)
    if existing_id is not None:
        return existing_id

    otp = OtpCode(phone_number=phone_number, purpose=purpose, status=OtpStatus.PENDING.value, **values)
    db.add(otp)
    try:
        db.flush()
    except IntegrityError:
        # a concurrent issuance inserted the pending row first
        db.rollback()
        existing_id = _replace_pending(db, phone_number, purpose, values)
        if existing_id is None:
            raise
        return existing_id
    return otp.id


def _mark_failed(db: Session, otp_id: int) -> None:
    db.execute(
        update(OtpCode)
        .where(OtpCode.id == otp_id)
        .values(status=OtpStatus.FAILED.value, code_hash=None, expires_at=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def _counter_values(state: _WindowState, now: datetime) -> dict:
    values = {
        "last_otp_requested_at": now,
        "otp_requests_last_hour": state.hour_count + 1,
        "otp_requests_today": state.day_count + 1,
    }
    if state.hour_expired:
        values["otp_hour_window_started_at"] = now
    if state.day_expired:
        values["otp_day_window_started_at"] = now
    return values


def _commit_counters(db: Session, user_id: int, version: int, state: _WindowState, now: datetime) -> None:
    """Advance the user's counters, retrying once on a version conflict."""
    if conditional_update(db, User, user_id, version, _counter_values(state, now)):
        db.commit()
        return

    fresh = db.get(User, user_id)
    if fresh is None:
        db.rollback()
        return
    retry_state = _window_state(fresh, now)
    if conditional_update(db, User, user_id, fresh.version, _counter_values(retry_state, now)):
        db.commit()
        return
    db.rollback()
    logger.warning("otp_counter_update_conflict user_id=%s", user_id)


async def _send(transport: SmsTransport, phone_number: str, text: str) -> SendResult:
    try:
        return await transport.send(phone_number, text)
    except Exception as exc:
        logger.warning("otp_send_error phone=%s error=%s", mask_phone(phone_number), exc)
        return SendResult(success=False, provider_status=type(exc).__name__)


@dataclass(frozen=True)
class _Prepared:
    otp_id: int
    code: str
    expires_at: datetime
    version: int
    state: _WindowState


def _prepare(
    db: Session,
    user_id: int,
    phone_number: str,
    purpose: str,
    now: datetime,
) -> Err | _Prepared:
    """Everything up to the send: checks, hashing and the pending row, committed."""
    if not is_valid_phone(phone_number):
        return Err(ErrorCode.VALIDATION_ERROR, "Invalid phone number")
    if purpose not in OTP_PURPOSES:
        return Err(ErrorCode.VALIDATION_ERROR, "Invalid OTP purpose")

    user = db.get(User, user_id)
    if user is None:
        return Err(ErrorCode.USER_NOT_FOUND, "User not found")
    if user.phone_number != phone_number:
        return _reject(ErrorCode.USER_PHONE_MISMATCH, "Phone number does not match user", phone_number)

    version = user.version
    rejection, state = _check_policy(user, purpose, now)
    if rejection is not None:
        return rejection

    code = generate_numeric_code()
    expires_at = now + code_ttl()
    otp_id = _upsert_pending_code(db, user, purpose, hash_code(code), expires_at, now)
    db.commit()
    return _Prepared(otp_id=otp_id, code=code, expires_at=expires_at, version=version, state=state)


async def _issue(
    db: Session,
    transport: SmsTransport,
    user_id: int,
    phone_number: str,
    purpose: str,
    now: datetime,
) -> Result[IssueReceipt]:
    # bcrypt and the sync session stay off the event loop
    prepared = await run_in_threadpool(_prepare, db, user_id, phone_number, purpose, now)
    if isinstance(prepared, Err):
        return prepared

    sent = await _send(transport, phone_number, render_verification(prepared.code))
    if not sent.success:
        await run_in_threadpool(_mark_failed, db, prepared.otp_id)
        logger.warning(
            "otp_issue_sms_failed user_id=%s phone=%s status=%s",
            user_id,
            mask_phone(phone_number),
            sent.provider_status,
        )
        return Err(ErrorCode.SMS_FAILED, "Failed to send verification code")

    await run_in_threadpool(_commit_counters, db, user_id, prepared.version, prepared.state, now)
    logger.info("otp_issued user_id=%s purpose=%s phone=%s", user_id, purpose, mask_phone(phone_number))
    return Ok(
        IssueReceipt(
            user_id=user_id,
            phone_number=phone_number,
            purpose=purpose,
            expires_at=prepared.expires_at,
            cooldown_seconds=settings.otp_cooldown_seconds,
        ),
        "OTP sent successfully",
    )


async def issue_verification_code(
    db: Session,
    transport: SmsTransport,
    *,
    user_id: int,
    phone_number: str,
    purpose: str,
    now: datetime | None = None,
) -> Result[IssueReceipt]:
    """Issue and send a fresh code for ``purpose`` to the user's phone."""
    now = ensure_utc(now) or utcnow()
    try:
        return await _issue(db, transport, user_id, phone_number, purpose, now)
    except Exception:
        logger.exception("otp_issue_failed user_id=%s", user_id)
        await run_in_threadpool(db.rollback)
        return internal_error()
