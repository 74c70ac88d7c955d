"""
Login Broker
============
Cross-application login handshake.
"""

from .models import PendingLoginState, InitiatedLogin, ResolvedLogin
from .tokens import generate_state, generate_session_id, sanitize_return_url, append_query
from .service import LoginBroker

__all__ = [
    "PendingLoginState",
    "InitiatedLogin",
    "ResolvedLogin",
    "generate_state",
    "generate_session_id",
    "sanitize_return_url",
    "append_query",
    "LoginBroker",
]
