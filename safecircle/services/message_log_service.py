"""Message log reads."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from safecircle.models.journey import Journey
from safecircle.models.message_log import MessageLog


def get_journey_for_user(db: Session, journey_id: int, user_id: int) -> Journey | None:
    """Journey if it belongs to the user."""
    return db.execute(
        select(Journey).where(Journey.id == journey_id, Journey.user_id == user_id)
    ).scalar_one_or_none()


def list_journey_logs(db: Session, journey_id: int, limit: int = 50) -> list[MessageLog]:
    """Delivery records for a journey, newest first."""
    result = db.execute(
        select(MessageLog)
        .where(MessageLog.journey_id == journey_id)
        .order_by(MessageLog.created_at.desc(), MessageLog.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
