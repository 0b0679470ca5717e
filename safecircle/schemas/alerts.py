"""Alert and delivery record schemas."""

from datetime import datetime

from pydantic import BaseModel


class AlertRequest(BaseModel):
    message_type: str
    emergency_id: int | None = None


class FailedRecipientOut(BaseModel):
    circle_member_id: int
    name: str
    phone_number: str

    model_config = {"from_attributes": True}


class RecipientOut(BaseModel):
    circle_member_id: int
    name: str
    phone_number: str
    delivery_status: str

    model_config = {"from_attributes": True}


class DispatchReportOut(BaseModel):
    message_type: str
    sent_count: int
    total_count: int
    failed_recipients: list[FailedRecipientOut] = []
    recipients: list[RecipientOut] = []

    model_config = {"from_attributes": True}


class MessageLogOut(BaseModel):
    """Delivery record as shown to the journey owner. Tokens and links stay private."""

    id: int
    circle_member_id: int | None
    to_number: str
    to_name: str | None
    channel_type: str
    message_type: str
    delivery_status: str
    provider_status: str | None
    sent_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
