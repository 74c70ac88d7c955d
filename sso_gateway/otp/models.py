"""
OTP Models
==========
Data models and enums for OTP issuance and verification.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OTPChannel(str, Enum):
    """OTP delivery channels."""
    EMAIL = "email"
    SMS = "sms"


class VerificationFailure(str, Enum):
    """Why a verification attempt was rejected."""
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    EXPIRED_OR_NOT_FOUND = "expired_or_not_found"
    INVALID_CODE = "invalid_code"


@dataclass
class OTPConfig:
    """Configuration for OTP issuance."""
    length: int = 6
    expiry_seconds: int = 300  # 5 minutes
    max_attempts: int = 5
    code_prefix: str = "otp:"
    attempt_prefix: str = "otp_attempts:"


@dataclass
class OTPRecord:
    """A live one-time passcode, keyed by recipient."""
    code: str
    recipient: str
    channel: OTPChannel
    created_at: float
    message_id: Optional[str] = None  # set by the delivery channel, not persisted

    def to_json(self) -> str:
        return json.dumps({
            "code": self.code,
            "recipient": self.recipient,
            "channel": self.channel.value,
            "createdAt": self.created_at,
        })

    @classmethod
    def from_json(cls, raw: str) -> "OTPRecord":
        data = json.loads(raw)
        return cls(
            code=data["code"],
            recipient=data["recipient"],
            channel=OTPChannel(data["channel"]),
            created_at=data["createdAt"],
        )


@dataclass
class VerificationResult:
    """Outcome of a verification attempt."""
    valid: bool
    reason: Optional[VerificationFailure] = None
    message: Optional[str] = None
    attempts_remaining: Optional[int] = None
    record: Optional[OTPRecord] = None


@dataclass
class DeliveryReceipt:
    """Result reported by a delivery channel."""
    success: bool
    message_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    error_message: Optional[str] = None
