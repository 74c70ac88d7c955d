"""
Authenticated Sessions
======================
Signed session cookies and the external identity provider relay.
"""

from .models import Identity, AuthenticatedSession
from .signer import TokenSigner
from .manager import SessionManager, SESSION_COOKIE
from .oidc import OIDCProvider

__all__ = [
    "Identity",
    "AuthenticatedSession",
    "TokenSigner",
    "SessionManager",
    "SESSION_COOKIE",
    "OIDCProvider",
]
