"""User model."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from safecircle.db.base import Base


class UserStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class User(Base):
    """A SafeCircle account holder, identified by phone number.

    Carries the OTP rate-limit state: lockout, cooldown timestamp and the
    hourly/daily window counters. ``version`` is bumped by every conditional
    update in ``safecircle.db.store``.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    device_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=UserStatus.PENDING_VERIFICATION.value
    )

    failed_attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    otp_locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_otp_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_hour_window_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_day_window_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_requests_last_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    otp_requests_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
