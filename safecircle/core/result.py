"""Tagged service results.

Services return ``Ok`` or ``Err`` instead of raising for expected outcomes
(validation, policy, not-found). Callers branch on ``isinstance(result, Err)``
and read the fixed ``ErrorCode``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, enum.Enum):
    # input validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    # account state
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EXISTS = "USER_EXISTS"
    USER_SUSPENDED = "USER_SUSPENDED"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    PHONE_UNVERIFIED = "PHONE_UNVERIFIED"
    USER_PHONE_MISMATCH = "USER_PHONE_MISMATCH"
    # policy
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    OTP_COOLDOWN = "OTP_COOLDOWN"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    # verification
    EXPIRED_OR_INVALID_OTP = "EXPIRED_OR_INVALID_OTP"
    OTP_EXPIRED = "OTP_EXPIRED"
    INVALID_OTP = "INVALID_OTP"
    # alerting
    JOURNEY_NOT_FOUND = "JOURNEY_NOT_FOUND"
    EMERGENCY_NOT_FOUND = "EMERGENCY_NOT_FOUND"
    EMERGENCY_ALREADY_RESOLVED = "EMERGENCY_ALREADY_RESOLVED"
    CIRCLE_MEMBERS_NOT_FOUND = "CIRCLE_MEMBERS_NOT_FOUND"
    WEB_LINK_GENERATION_FAILED = "WEB_LINK_GENERATION_FAILED"
    # transport / internal
    SMS_FAILED = "SMS_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    message: str = ""


@dataclass(frozen=True)
class Err:
    code: ErrorCode
    message: str
    retry_after: int | None = None
    context: dict[str, Any] = field(default_factory=dict)


Result = Union[Ok[T], Err]


def internal_error(message: str = "Internal server error") -> Err:
    return Err(ErrorCode.INTERNAL_ERROR, message)
