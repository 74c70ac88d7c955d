"""
Token Signer
============
Compact HMAC-SHA256 signed tokens: ``base64url(payload).hex(signature)``.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Optional


class TokenSigner:
    """Signs and verifies JSON payloads with a shared secret."""

    def __init__(self, secret: str, purpose: str = "session"):
        self.secret = secret
        self.purpose = purpose

    def _signature(self, payload_b64: str) -> str:
        message = f"{self.purpose}.{payload_b64}".encode()
        return hmac.new(self.secret.encode(), message, hashlib.sha256).hexdigest()

    def sign(self, payload: dict, max_age_seconds: int) -> str:
        """
        Sign ``payload`` adding ``iat`` and ``exp`` claims.

        Returns:
            Signed token
        """
        now = int(time.time())
        claims = {**payload, "iat": now, "exp": now + max_age_seconds}
        payload_json = json.dumps(claims, separators=(",", ":"), sort_keys=True)
        payload_b64 = base64.urlsafe_b64encode(payload_json.encode()).decode().rstrip("=")
        return f"{payload_b64}.{self._signature(payload_b64)}"

    def verify(self, token: str) -> Optional[dict]:
        """
        Verify a token.

        Returns:
            Claims if the signature is valid and the token has not expired,
            None otherwise
        """
        if not token:
            return None
        parts = token.split(".")
        if len(parts) != 2:
            return None

        payload_b64, signature = parts
        if not hmac.compare_digest(signature, self._signature(payload_b64)):
            return None

        try:
            padded = payload_b64 + "=" * (-len(payload_b64) % 4)
            claims = json.loads(base64.urlsafe_b64decode(padded).decode())
        except (ValueError, UnicodeDecodeError):
            return None
        if not isinstance(claims, dict):
            return None

        if int(time.time()) >= int(claims.get("exp", 0)):
            return None
        return claims
