"""SMS transport: Termii over HTTP, or a console logger for local runs."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from safecircle.core.config import settings
from safecircle.core.validation import mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    success: bool
    provider_status: str | None = None


class SmsTransport(ABC):
    """Sends one text message to one phone number."""

    @abstractmethod
    async def send(self, phone_number: str, text: str) -> SendResult:
        """Deliver ``text``. Provider failures come back as ``success=False``."""

    async def close(self) -> None:
        """Release any pooled connections."""


class TermiiTransport(SmsTransport):
    """Termii ``/api/sms/send`` client.

    One ``httpx.AsyncClient`` is opened on first send and reused until
    ``close``. ``http_transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        sender_id: str | None = None,
        channel: str | None = None,
        timeout: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.termii_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.termii_api_key
        self.sender_id = sender_id or settings.sms_sender_id
        self.channel = channel or settings.sms_channel
        self.timeout = timeout or settings.sms_timeout_seconds
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, phone_number: str, text: str) -> SendResult:
        payload = {
            "to": phone_number,
            "from": self.sender_id,
            "sms": text,
            "type": "plain",
            "channel": self.channel,
            "api_key": self.api_key,
        }
        try:
            response = await self._get_client().post(f"{self.base_url}/api/sms/send", json=payload)
        except httpx.HTTPError as exc:
            logger.warning("sms_send_error phone=%s error=%s", mask_phone(phone_number), exc)
            return SendResult(success=False, provider_status=type(exc).__name__)

        provider_status = _provider_status(response)
        if response.is_success:
            logger.info("sms_sent phone=%s status=%s", mask_phone(phone_number), provider_status)
            return SendResult(success=True, provider_status=provider_status)

        logger.warning(
            "sms_send_failed phone=%s http_status=%s status=%s",
            mask_phone(phone_number),
            response.status_code,
            provider_status,
        )
        return SendResult(success=False, provider_status=provider_status)


class ConsoleTransport(SmsTransport):
    """Logs messages instead of sending them."""

    async def send(self, phone_number: str, text: str) -> SendResult:
        logger.info("sms_console phone=%s text=%s", mask_phone(phone_number), text)
        return SendResult(success=True, provider_status="console")


def _provider_status(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return str(response.status_code)
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return str(response.status_code)


def build_transport() -> SmsTransport:
    """Transport selected by ``settings.sms_provider``."""
    if settings.sms_provider == "termii":
        return TermiiTransport()
    return ConsoleTransport()
