"""Alert fan-out to a user's safety circle.

Validation, recipient lookup and token minting happen before anything is
sent; any failure there returns an error with no SMS out. After that the call
is best-effort per recipient: every recipient gets a delivery record and the
report says how many went through.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from safecircle.core.config import settings
from safecircle.core.result import Err, ErrorCode, Ok, Result, internal_error
from safecircle.core.validation import mask_phone
from safecircle.core.windows import ensure_utc, utcnow
from safecircle.db.store import increment_by_ids, insert_many
from safecircle.models.circle_member import CircleMember
from safecircle.models.emergency import Emergency
from safecircle.models.journey import Journey
from safecircle.models.message_log import MessageLog
from safecircle.models.user import User
from safecircle.services.credential_minter import mint_credentials
from safecircle.services.messages import ALERT_TYPES, build_web_link, render_alert
from safecircle.services.sms_transport import SendResult, SmsTransport

logger = logging.getLogger(__name__)

MSG_ALL_SENT = "SMS sent successfully"
MSG_ALL_FAILED = "All SMS notifications failed"
MSG_SOME_FAILED = "Some SMS notifications failed"


@dataclass(frozen=True)
class _Delivery:
    circle_member_id: int
    name: str
    phone_number: str
    text: str
    web_link: str
    token: str


@dataclass(frozen=True)
class DeliveryOutcome:
    circle_member_id: int
    name: str
    phone_number: str
    message_text: str
    web_link: str
    web_link_token: str
    success: bool
    provider_status: str | None = None
    sent_at: datetime | None = None


@dataclass(frozen=True)
class FailedRecipient:
    circle_member_id: int
    name: str
    phone_number: str


@dataclass(frozen=True)
class RecipientOutcome:
    circle_member_id: int
    name: str
    phone_number: str
    delivery_status: str


@dataclass(frozen=True)
class DispatchReport:
    success: bool
    message: str
    message_type: str
    sent_count: int
    total_count: int
    failed_recipients: list[FailedRecipient] = field(default_factory=list)
    recipients: list[RecipientOutcome] = field(default_factory=list)


def _validate(
    db: Session,
    user_id: int,
    journey_id: int,
    emergency_id: int | None,
    message_type: str,
) -> tuple[Err | None, User | None, Journey | None]:
    if message_type not in ALERT_TYPES:
        return Err(ErrorCode.VALIDATION_ERROR, "Invalid message type"), None, None

    user = db.get(User, user_id)
    if user is None:
        return Err(ErrorCode.USER_NOT_FOUND, "User not found"), None, None

    journey = db.get(Journey, journey_id)
    if journey is None or journey.user_id != user_id:
        return Err(ErrorCode.JOURNEY_NOT_FOUND, "Journey not found"), None, None

    if emergency_id is not None:
        emergency = db.get(Emergency, emergency_id)
        if emergency is None or emergency.user_id != user_id or emergency.journey_id != journey_id:
            return Err(ErrorCode.EMERGENCY_NOT_FOUND, "Emergency not found"), None, None
        if emergency.resolved_at is not None:
            return Err(ErrorCode.EMERGENCY_ALREADY_RESOLVED, "Emergency already resolved"), None, None

    return None, user, journey


def _eligible_recipients(db: Session, user_id: int) -> list[CircleMember]:
    """Verified, active members who accept SMS, in a stable order."""
    return list(
        db.execute(
            select(CircleMember)
            .where(
                CircleMember.user_id == user_id,
                CircleMember.is_verified.is_(True),
                CircleMember.is_active.is_(True),
                CircleMember.receive_sms.is_(True),
            )
            .order_by(CircleMember.id)
        )
        .scalars()
        .all()
    )


async def _fan_out(transport: SmsTransport, deliveries: list[_Delivery]) -> tuple[list[DeliveryOutcome], bool]:
    """Send every delivery with bounded concurrency.

    Returns the outcomes and whether the caller was cancelled meanwhile. On
    cancellation the sends already scheduled still run to completion.
    """
    semaphore = asyncio.Semaphore(settings.sms_max_concurrency)

    async def send_one(delivery: _Delivery) -> DeliveryOutcome:
        async with semaphore:
            try:
                result = await transport.send(delivery.phone_number, delivery.text)
            except Exception as exc:
                logger.warning(
                    "alert_send_error member_id=%s phone=%s error=%s",
                    delivery.circle_member_id,
                    mask_phone(delivery.phone_number),
                    exc,
                )
                result = SendResult(success=False, provider_status=type(exc).__name__)
        return DeliveryOutcome(
            circle_member_id=delivery.circle_member_id,
            name=delivery.name,
            phone_number=delivery.phone_number,
            message_text=delivery.text,
            web_link=delivery.web_link,
            web_link_token=delivery.token,
            success=result.success,
            provider_status=result.provider_status,
            sent_at=utcnow() if result.success else None,
        )

    gathered = asyncio.gather(*(send_one(d) for d in deliveries))
    try:
        return list(await asyncio.shield(gathered)), False
    except asyncio.CancelledError:
        logger.warning("alert_fan_out_cancelled pending=%s", len(deliveries))
        return list(await gathered), True


def _persist(
    db: Session,
    user_id: int,
    journey_id: int,
    emergency_id: int | None,
    message_type: str,
    outcomes: list[DeliveryOutcome],
    now: datetime,
) -> None:
    """Bump counters for delivered recipients, then write one record per recipient."""
    delivered_ids = [o.circle_member_id for o in outcomes if o.success]
    try:
        increment_by_ids(
            db,
            CircleMember.total_alerts_received,
            delivered_ids,
            extra_values={"last_alert_at": now},
        )
        db.commit()
    except SQLAlchemyError:
        logger.exception("alert_counter_update_failed journey_id=%s", journey_id)
        db.rollback()

    try:
        insert_many(
            db,
            (
                MessageLog(
                    user_id=user_id,
                    journey_id=journey_id,
                    emergency_id=emergency_id,
                    circle_member_id=o.circle_member_id,
                    to_number=o.phone_number,
                    to_name=o.name,
                    channel_type="sms",
                    message_type=message_type,
                    message_text=o.message_text,
                    web_link=o.web_link,
                    web_link_token=o.web_link_token,
                    delivery_status="sent" if o.success else "failed",
                    provider_status=o.provider_status,
                    sent_at=o.sent_at,
                    created_at=now,
                )
                for o in outcomes
            ),
        )
        db.commit()
    except SQLAlchemyError:
        logger.exception("message_log_insert_failed journey_id=%s count=%s", journey_id, len(outcomes))
        db.rollback()


def _report(message_type: str, outcomes: list[DeliveryOutcome]) -> DispatchReport:
    failed = [
        FailedRecipient(circle_member_id=o.circle_member_id, name=o.name, phone_number=o.phone_number)
        for o in outcomes
        if not o.success
    ]
    total = len(outcomes)
    sent = total - len(failed)
    if not failed:
        message = MSG_ALL_SENT
    elif sent == 0:
        message = MSG_ALL_FAILED
    else:
        message = MSG_SOME_FAILED
    return DispatchReport(
        success=not failed,
        message=message,
        message_type=message_type,
        sent_count=sent,
        total_count=total,
        failed_recipients=failed,
        recipients=[
            RecipientOutcome(
                circle_member_id=o.circle_member_id,
                name=o.name,
                phone_number=o.phone_number,
                delivery_status="sent" if o.success else "failed",
            )
            for o in outcomes
        ],
    )


def _prepare(
    db: Session,
    user_id: int,
    journey_id: int,
    emergency_id: int | None,
    message_type: str,
    now: datetime,
) -> Err | list[_Delivery]:
    """Validate, pick recipients and mint one link each. Nothing is sent yet."""
    rejection, user, journey = _validate(db, user_id, journey_id, emergency_id, message_type)
    if rejection is not None:
        logger.info("alert_rejected reason=%s journey_id=%s", rejection.code.value, journey_id)
        return rejection

    user_name = user.first_name
    destination = journey.destination_name

    recipients = _eligible_recipients(db, user_id)
    if not recipients:
        return Err(ErrorCode.CIRCLE_MEMBERS_NOT_FOUND, "No eligible circle members to notify")
    members = [(m.id, m.contact_name, m.contact_phone) for m in recipients]

    link_type = "emergency" if emergency_id is not None else "journey"
    credentials = mint_credentials(
        db,
        journey_id=journey_id,
        emergency_id=emergency_id,
        count=len(members),
        link_type=link_type,
        now=now,
    )
    if len(credentials) != len(members):
        return Err(ErrorCode.WEB_LINK_GENERATION_FAILED, "Failed to generate web access links")

    deliveries = []
    for (member_id, name, phone), credential in zip(members, credentials):
        token = credential.web_link_token
        link = build_web_link(token)
        deliveries.append(
            _Delivery(
                circle_member_id=member_id,
                name=name,
                phone_number=phone,
                text=render_alert(message_type, name, destination, link, user_name),
                web_link=link,
                token=token,
            )
        )
    return deliveries


async def _dispatch(
    db: Session,
    transport: SmsTransport,
    user_id: int,
    journey_id: int,
    emergency_id: int | None,
    message_type: str,
    now: datetime,
) -> Result[DispatchReport]:
    # the sync session only runs in the threadpool
    deliveries = await run_in_threadpool(_prepare, db, user_id, journey_id, emergency_id, message_type, now)
    if isinstance(deliveries, Err):
        return deliveries

    outcomes, cancelled = await _fan_out(transport, deliveries)
    await run_in_threadpool(_persist, db, user_id, journey_id, emergency_id, message_type, outcomes, now)
    if cancelled:
        raise asyncio.CancelledError()

    report = _report(message_type, outcomes)
    logger.info(
        "alert_dispatched journey_id=%s type=%s sent=%s total=%s",
        journey_id,
        message_type,
        report.sent_count,
        report.total_count,
    )
    return Ok(report, report.message)


async def dispatch_alert(
    db: Session,
    transport: SmsTransport,
    *,
    user_id: int,
    journey_id: int,
    emergency_id: int | None = None,
    message_type: str,
    now: datetime | None = None,
) -> Result[DispatchReport]:
    """Alert every eligible circle member of ``user_id`` about ``journey_id``."""
    now = ensure_utc(now) or utcnow()
    try:
        return await _dispatch(db, transport, user_id, journey_id, emergency_id, message_type, now)
    except Exception:
        logger.exception("alert_dispatch_failed journey_id=%s", journey_id)
        await run_in_threadpool(db.rollback)
        return internal_error()
