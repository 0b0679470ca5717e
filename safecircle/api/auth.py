"""Auth endpoints: phone number + one-time code."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from safecircle.api.responses import err_response, success_response
from safecircle.core.deps import get_current_user, get_sms_transport
from safecircle.core.rate_limit import AUTH, limiter
from safecircle.core.result import Err
from safecircle.db.session import get_db
from safecircle.models.user import User
from safecircle.schemas.auth import LoginRequest, OtpSent, SessionOut, SignupRequest, UserMe, VerifyOtpRequest
from safecircle.services.auth_service import request_login_code, request_signup_code
from safecircle.services.otp_challenger import verify_code
from safecircle.services.otp_issuer import IssueReceipt
from safecircle.services.sms_transport import SmsTransport

router = APIRouter(prefix="/auth", tags=["auth"])


def _otp_sent(receipt: IssueReceipt) -> dict:
    return OtpSent(
        phone_number=receipt.phone_number,
        purpose=receipt.purpose,
        expires_at=receipt.expires_at,
        cooldown_seconds=receipt.cooldown_seconds,
    ).model_dump(mode="json")


@router.post("/signup")
@limiter.limit(AUTH)
async def signup(
    request: Request,
    data: SignupRequest,
    db: Session = Depends(get_db),
    transport: SmsTransport = Depends(get_sms_transport),
):
    """Create a pending account (if new) and text it a signup code."""
    result = await request_signup_code(
        db,
        transport,
        phone_number=data.phone_number,
        first_name=data.first_name,
        device_id=data.device_id,
    )
    if isinstance(result, Err):
        return err_response(result)
    return success_response(result.message, _otp_sent(result.value))


@router.post("/login")
@limiter.limit(AUTH)
async def login(
    request: Request,
    data: LoginRequest,
    db: Session = Depends(get_db),
    transport: SmsTransport = Depends(get_sms_transport),
):
    """Text a login code to a verified account."""
    result = await request_login_code(db, transport, phone_number=data.phone_number)
    if isinstance(result, Err):
        return err_response(result)
    return success_response(result.message, _otp_sent(result.value))


@router.post("/verify-otp")
@limiter.limit(AUTH)
def verify_otp(
    request: Request,
    data: VerifyOtpRequest,
    db: Session = Depends(get_db),
):
    """Redeem a code and return an access token."""
    result = verify_code(db, phone_number=data.phone_number, code=data.otp)
    if isinstance(result, Err):
        return err_response(result)
    session = result.value
    body = SessionOut(
        user_id=session.user_id,
        phone_number=session.phone_number,
        status=session.status,
        access_token=session.access_token,
        expires_at=session.expires_at,
    )
    return success_response(result.message, body.model_dump(mode="json"))


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return success_response("User fetched", UserMe.model_validate(current_user).model_dump(mode="json"))
