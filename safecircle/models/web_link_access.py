"""Web access link model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from safecircle.db.base import Base


class WebLinkAccess(Base):
    """Single-use token that opens a journey's live status page."""

    __tablename__ = "web_link_access"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    journey_id: Mapped[int] = mapped_column(ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False, index=True)
    emergency_id: Mapped[int | None] = mapped_column(
        ForeignKey("emergencies.id", ondelete="CASCADE"), nullable=True, index=True
    )
    web_link_token: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    web_link_type: Mapped[str] = mapped_column(String(20), nullable=False)  # journey | emergency
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    accessed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
