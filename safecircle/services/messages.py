"""SMS message templates."""

from __future__ import annotations

import enum

from safecircle.core.config import settings

DEFAULT_USER_NAME = "A SafeCircle user"
DEFAULT_DESTINATION = "their destination"


class AlertType(str, enum.Enum):
    EMERGENCY = "emergency"
    MISSED_CHECKIN = "missed_checkin"
    JOURNEY_START = "journey_start"
    JOURNEY_END = "journey_end"
    CIRCLE_INVITE = "circle_invite"
    EXTENSION_GRANTED = "extension_granted"


ALERT_TYPES = frozenset(t.value for t in AlertType)


def build_web_link(token: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/webaccess/{token}"


def render_alert(
    message_type: AlertType | str,
    member_name: str | None,
    destination: str | None,
    web_link: str,
    user_name: str | None,
) -> str:
    """Alert text for one circle member."""
    member = member_name or "there"
    who = user_name or DEFAULT_USER_NAME
    where = destination or DEFAULT_DESTINATION
    kind = AlertType(message_type)

    if kind is AlertType.JOURNEY_START:
        return (
            f"Hi {member}, {who} has started their journey to {where}. "
            f"You can track their safe progress here: {web_link}"
        )
    if kind is AlertType.JOURNEY_END:
        return f"Hi {member}, {who} has ended their journey at {where}. View details: {web_link}"
    if kind is AlertType.CIRCLE_INVITE:
        return (
            f"Hi {member}, {who} has invited you to join their safety circle on SafeCircle. "
            f"Accept invitation: {web_link}"
        )
    if kind is AlertType.EMERGENCY:
        return (
            f"Hi {member}, {who} has triggered an EMERGENCY alert. "
            f"Please check their status immediately. Web access: {web_link}"
        )
    if kind is AlertType.MISSED_CHECKIN:
        return (
            f"Hi {member}, {who} has missed a scheduled check-in. "
            f"Please try to make contact. Web access: {web_link}"
        )
    # extension_granted
    return (
        f"Hi {member}, the journey timer for {who} has been extended by 30 minutes "
        f"as requested by their circle. Update status: {web_link}"
    )


def render_verification(code: str, minutes: int | None = None) -> str:
    minutes = minutes if minutes is not None else settings.otp_expires_minutes
    return f"Your SafeCircle verification code is {code}. Expires in {minutes} minutes."
