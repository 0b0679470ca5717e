"""Map service results onto HTTP responses."""

from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from safecircle.core.result import Err, ErrorCode
from safecircle.schemas.envelope import Envelope, ErrorDetail, Metadata

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.USER_PHONE_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EXPIRED_OR_INVALID_OTP: status.HTTP_400_BAD_REQUEST,
    ErrorCode.OTP_EXPIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_OTP: status.HTTP_400_BAD_REQUEST,
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.JOURNEY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.EMERGENCY_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CIRCLE_MEMBERS_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.USER_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.EMERGENCY_ALREADY_RESOLVED: status.HTTP_409_CONFLICT,
    ErrorCode.USER_SUSPENDED: status.HTTP_403_FORBIDDEN,
    ErrorCode.ACCOUNT_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorCode.PHONE_UNVERIFIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.ACCOUNT_LOCKED: status.HTTP_423_LOCKED,
    ErrorCode.OTP_COOLDOWN: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.SMS_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.WEB_LINK_GENERATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _json(body: Envelope, status_code: int, retry_after: int | None = None) -> JSONResponse:
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def success_response(
    message: str,
    data: Any = None,
    status_code: int = status.HTTP_200_OK,
    success: bool = True,
) -> JSONResponse:
    """Envelope without an error block. ``success=False`` marks a partial result."""
    return _json(Envelope(success=success, message=message, data=data), status_code)


def error_response(
    code: ErrorCode,
    message: str,
    details: str | None = None,
    retry_after: int | None = None,
    data: Any = None,
) -> JSONResponse:
    body = Envelope(
        success=False,
        message=message,
        data=data,
        error=ErrorDetail(code=code.value, details=details or message),
        metadata=Metadata(retry_after=retry_after),
    )
    return _json(body, STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR), retry_after)


def err_response(err: Err) -> JSONResponse:
    """Envelope for a service ``Err``; carries the context as ``data`` when present."""
    return error_response(
        err.code,
        err.message,
        retry_after=err.retry_after,
        data=err.context or None,
    )
