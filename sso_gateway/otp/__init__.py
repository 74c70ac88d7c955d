"""
OTP Issuance and Verification
=============================
Rate-limited, attempt-limited, TTL-bound one-time passcodes.
"""

from .models import (
    OTPChannel,
    OTPConfig,
    OTPRecord,
    VerificationFailure,
    VerificationResult,
    DeliveryReceipt,
)
from .generator import generate_otp, validate_recipient, validate_email, validate_e164
from .delivery import BaseDeliveryChannel, MockDelivery, ExternalServiceDelivery, build_delivery
from .engine import OTPEngine, parse_channel

__all__ = [
    # Models
    "OTPChannel",
    "OTPConfig",
    "OTPRecord",
    "VerificationFailure",
    "VerificationResult",
    "DeliveryReceipt",
    # Generation
    "generate_otp",
    "validate_recipient",
    "validate_email",
    "validate_e164",
    # Delivery
    "BaseDeliveryChannel",
    "MockDelivery",
    "ExternalServiceDelivery",
    "build_delivery",
    # Engine
    "OTPEngine",
    "parse_channel",
]
