"""Uniform response envelope."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from safecircle.core.windows import utcnow


class ErrorDetail(BaseModel):
    code: str
    details: str | None = None


class Metadata(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    retry_after: int | None = None


class Envelope(BaseModel):
    success: bool
    message: str
    data: Any = None
    error: ErrorDetail | None = None
    metadata: Metadata = Field(default_factory=Metadata)
