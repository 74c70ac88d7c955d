"""
OTP Engine
==========
Issues, stores and verifies one-time passcodes.

One live code per recipient: a new send overwrites the previous code.
Failed verifications are counted per recipient; once the cap is reached
verification is refused until the counter expires. Issuing a new code does
not reset the counter, otherwise re-requesting codes would lift the cap.
"""

import hmac
import time
from typing import Optional

import structlog

from ..errors import DeliveryFailed, InvalidChannel, InvalidRecipient
from ..logging import log_audit
from ..store import EphemeralStore
from .delivery import BaseDeliveryChannel
from .generator import generate_otp, validate_recipient
from .models import OTPChannel, OTPConfig, OTPRecord, VerificationFailure, VerificationResult

logger = structlog.get_logger(__name__)


def parse_channel(channel) -> OTPChannel:
    try:
        return OTPChannel(channel)
    except ValueError:
        raise InvalidChannel(f"Unsupported channel: {channel}")


class OTPEngine:
    """High-level OTP issuance and verification backed by the state store."""

    def __init__(
        self,
        store: EphemeralStore,
        delivery: BaseDeliveryChannel,
        config: Optional[OTPConfig] = None,
    ):
        self.store = store
        self.delivery = delivery
        self.config = config or OTPConfig()

    def _code_key(self, recipient: str) -> str:
        return f"{self.config.code_prefix}{recipient}"

    def _attempt_key(self, recipient: str) -> str:
        return f"{self.config.attempt_prefix}{recipient}"

    async def send(self, recipient: str, channel) -> OTPRecord:
        """
        Generate, store and deliver a code for ``recipient``.

        Raises:
            InvalidChannel: channel is not email or sms
            InvalidRecipient: recipient does not match the channel's format
            ChannelUnconfigured: external delivery selected without a service URL
            DeliveryFailed: the delivery channel reported an error
        """
        channel = parse_channel(channel)
        if not validate_recipient(recipient, channel):
            raise InvalidRecipient(f"Invalid {channel.value} recipient")

        record = OTPRecord(
            code=generate_otp(self.config.length),
            recipient=recipient,
            channel=channel,
            created_at=time.time(),
        )
        key = self._code_key(recipient)
        await self.store.put(key, record.to_json(), self.config.expiry_seconds)

        try:
            receipt = await self.delivery.send(record)
        except Exception:
            await self.store.delete(key)
            raise

        if not receipt.success:
            # An undelivered code must never verify
            await self.store.delete(key)
            log_audit("otp.sent", outcome="failure", channel=channel.value, status_code=receipt.status_code)
            raise DeliveryFailed(
                receipt.error or "Failed to send OTP",
                status_code=receipt.status_code or 500,
                detail=receipt.error_message,
            )

        record.message_id = receipt.message_id
        log_audit("otp.sent", channel=channel.value, delivery=self.delivery.name)
        return record

    async def verify(self, recipient: str, code: str) -> VerificationResult:
        """
        Check ``code`` for ``recipient``.

        Checks run in order and stop at the first failure:
        attempt cap, record presence, code match.
        """
        code_key = self._code_key(recipient)
        attempt_key = self._attempt_key(recipient)

        attempts = await self.store.get(attempt_key)
        attempt_count = int(attempts) if attempts else 0
        if attempt_count >= self.config.max_attempts:
            logger.warning("OTP attempts exhausted", attempts=attempt_count)
            log_audit("otp.failed", outcome="blocked", reason=VerificationFailure.TOO_MANY_ATTEMPTS.value)
            return VerificationResult(
                valid=False,
                reason=VerificationFailure.TOO_MANY_ATTEMPTS,
                message="Too many failed attempts. Please request a new OTP.",
                attempts_remaining=0,
            )

        stored = await self.store.get(code_key)
        if stored is None:
            return VerificationResult(
                valid=False,
                reason=VerificationFailure.EXPIRED_OR_NOT_FOUND,
                message="OTP expired or not found. Please request a new one.",
            )

        record = OTPRecord.from_json(stored)

        if not hmac.compare_digest(record.code.encode(), str(code).encode()):
            ttl = await self.store.ttl(code_key)
            # Counter lives no longer than the code it guards
            counter_ttl = max(1, ttl) if ttl is not None else self.config.expiry_seconds
            count = await self.store.incr(attempt_key, counter_ttl)
            remaining = max(0, self.config.max_attempts - count)
            logger.warning("Invalid OTP attempt", remaining=remaining)
            log_audit("otp.failed", outcome="failure", reason=VerificationFailure.INVALID_CODE.value)
            return VerificationResult(
                valid=False,
                reason=VerificationFailure.INVALID_CODE,
                message=f"Invalid OTP. {remaining} attempts remaining.",
                attempts_remaining=remaining,
            )

        # Single use: only the caller that removes the record succeeds
        if await self.store.pop(code_key) is None:
            return VerificationResult(
                valid=False,
                reason=VerificationFailure.EXPIRED_OR_NOT_FOUND,
                message="OTP expired or not found. Please request a new one.",
            )
        await self.store.delete(attempt_key)

        log_audit("otp.verified", channel=record.channel.value)
        return VerificationResult(valid=True, record=record)
