"""Message log model - one row per alert delivery attempt."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from safecircle.db.base import Base


class MessageLog(Base):
    """Audit record of an alert sent (or not) to a circle member. Never updated."""

    __tablename__ = "message_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    journey_id: Mapped[int] = mapped_column(ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False, index=True)
    emergency_id: Mapped[int | None] = mapped_column(
        ForeignKey("emergencies.id", ondelete="SET NULL"), nullable=True
    )
    circle_member_id: Mapped[int | None] = mapped_column(
        ForeignKey("safety_circles.id", ondelete="SET NULL"), nullable=True
    )
    to_number: Mapped[str] = mapped_column(String(20), nullable=False)
    to_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    channel_type: Mapped[str] = mapped_column(String(10), nullable=False, default="sms")
    message_type: Mapped[str] = mapped_column(String(30), nullable=False)
    message_text: Mapped[str] = mapped_column(Text, nullable=False)
    web_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    web_link_token: Mapped[str | None] = mapped_column(String(36), nullable=True)
    delivery_status: Mapped[str] = mapped_column(String(20), nullable=False)  # sent | failed
    provider_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
