"""Input checks shared by the services."""

from __future__ import annotations

import re

from safecircle.core.config import settings


def is_valid_phone(phone_number: str | None) -> bool:
    if not phone_number:
        return False
    return re.fullmatch(settings.phone_pattern, phone_number) is not None


def is_valid_code(code: str | None) -> bool:
    if not code:
        return False
    return len(code) == settings.otp_length and code.isdigit()


def mask_phone(phone_number: str | None) -> str:
    """Keep the country prefix and last four digits for log lines."""
    if not phone_number:
        return ""
    if len(phone_number) <= 7:
        return "*" * len(phone_number)
    return phone_number[:3] + "*" * (len(phone_number) - 7) + phone_number[-4:]
