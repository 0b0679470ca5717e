"""Auth schemas."""

from datetime import datetime

from pydantic import BaseModel


class SignupRequest(BaseModel):
    phone_number: str
    first_name: str | None = None
    device_id: str | None = None


class LoginRequest(BaseModel):
    phone_number: str


class VerifyOtpRequest(BaseModel):
    phone_number: str
    otp: str


class OtpSent(BaseModel):
    phone_number: str
    purpose: str
    expires_at: datetime
    cooldown_seconds: int


class SessionOut(BaseModel):
    user_id: int
    phone_number: str
    status: str
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class UserMe(BaseModel):
    id: int
    phone_number: str
    first_name: str | None = None
    phone_verified: bool
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
