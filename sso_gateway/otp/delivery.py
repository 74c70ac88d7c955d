"""
OTP Delivery Channels
=====================
Adapters that hand a generated code to whatever actually delivers it.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from ..errors import ChannelUnconfigured
from .models import DeliveryReceipt, OTPRecord

logger = structlog.get_logger(__name__)


class BaseDeliveryChannel(ABC):
    """Abstract base class for OTP delivery."""

    name: str = "base"
    # Whether the code may be echoed back to the caller for diagnostics
    exposes_code: bool = False

    @abstractmethod
    async def send(self, record: OTPRecord) -> DeliveryReceipt:
        """Deliver ``record.code`` to ``record.recipient``."""

    async def close(self) -> None:
        pass


class MockDelivery(BaseDeliveryChannel):
    """Logs the code instead of delivering it. Non-production only."""

    name = "mock"
    exposes_code = True

    async def send(self, record: OTPRecord) -> DeliveryReceipt:
        logger.info(
            "otp_mock_delivery",
            recipient=record.recipient,
            channel=record.channel.value,
            code=record.code,
        )
        return DeliveryReceipt(success=True)


class ExternalServiceDelivery(BaseDeliveryChannel):
    """
    Posts ``{recipient, code, channel}`` to an external delivery service.

    A missing service URL is reported at send time as ``ChannelUnconfigured``.
    """

    name = "external"

    def __init__(
        self,
        service_url: Optional[str],
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.service_url = service_url
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, record: OTPRecord) -> DeliveryReceipt:
        if not self.service_url:
            raise ChannelUnconfigured()

        try:
            response = await self._client.post(
                self.service_url,
                json={
                    "recipient": record.recipient,
                    "code": record.code,
                    "channel": record.channel.value,
                },
            )
        except httpx.HTTPError as e:
            logger.error("OTP delivery request failed", channel=record.channel.value, error=str(e))
            return DeliveryReceipt(success=False, status_code=500, error="Failed to send OTP")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_success:
            return DeliveryReceipt(
                success=True,
                message_id=data.get("messageId"),
                status_code=response.status_code,
            )

        logger.warning(
            "OTP delivery rejected",
            channel=record.channel.value,
            status_code=response.status_code,
        )
        return DeliveryReceipt(
            success=False,
            status_code=response.status_code,
            error=data.get("error") or "Failed to send OTP",
            error_message=data.get("message") or "External service error",
        )


def build_delivery(provider: str, service_url: Optional[str] = None, timeout: float = 10.0) -> BaseDeliveryChannel:
    """Pick the delivery channel for the configured OTP provider."""
    if provider == "external":
        return ExternalServiceDelivery(service_url, timeout=timeout)
    return MockDelivery()
