"""
OTP Generation and Recipient Validation
=======================================
"""

import re
import secrets

from .models import OTPChannel

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


def generate_otp(length: int = 6) -> str:
    """
    Generate a uniformly random numeric OTP.

    The first digit is never zero, so the code always has ``length`` digits
    (100000-999999 for the default length).
    """
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def validate_email(address: str) -> bool:
    return bool(EMAIL_PATTERN.match(address))


def validate_e164(phone: str) -> bool:
    """
    Validate E.164 phone number format.

    Args:
        phone: Phone number

    Returns:
        True if valid E.164 format
    """
    return bool(E164_PATTERN.match(phone))


def validate_recipient(recipient: str, channel: OTPChannel) -> bool:
    """Check ``recipient`` against the address grammar of ``channel``."""
    if not recipient:
        return False
    if channel == OTPChannel.EMAIL:
        return validate_email(recipient)
    if channel == OTPChannel.SMS:
        return validate_e164(recipient)
    return False
