"""SQLAlchemy models."""

from __future__ import annotations

from safecircle.models.circle_member import CircleMember
from safecircle.models.emergency import Emergency
from safecircle.models.journey import Journey
from safecircle.models.message_log import MessageLog
from safecircle.models.otp_code import OtpCode, OtpStatus
from safecircle.models.user import User, UserStatus
from safecircle.models.web_link_access import WebLinkAccess

__all__ = [
    "User",
    "UserStatus",
    "OtpCode",
    "OtpStatus",
    "Journey",
    "Emergency",
    "CircleMember",
    "WebLinkAccess",
    "MessageLog",
]
