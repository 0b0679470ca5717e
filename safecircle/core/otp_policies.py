"""OTP issuance policy."""

from __future__ import annotations

from datetime import timedelta
from typing import NamedTuple

from safecircle.core.config import settings

OTP_PURPOSES = ("signup", "login")


class QuotaLimits(NamedTuple):
    hourly: int
    daily: int


def quota_for(purpose: str) -> QuotaLimits:
    """Hourly/daily issuance caps for a purpose. Signup is the stricter one."""
    if purpose == "signup":
        return QuotaLimits(settings.signup_hourly_limit, settings.signup_daily_limit)
    return QuotaLimits(settings.login_hourly_limit, settings.login_daily_limit)


def cooldown() -> timedelta:
    return timedelta(seconds=settings.otp_cooldown_seconds)


def code_ttl() -> timedelta:
    return timedelta(minutes=settings.otp_expires_minutes)


def lock_duration(failed_attempt_count: int) -> timedelta:
    """Lock for the base duration, or the escalated one for repeat offenders."""
    if failed_attempt_count >= settings.otp_escalation_threshold:
        return timedelta(minutes=settings.otp_escalated_lock_minutes)
    return timedelta(minutes=settings.otp_lock_minutes)
