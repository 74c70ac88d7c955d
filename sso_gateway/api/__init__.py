"""
HTTP Surface
============
"""

from .auth import router as auth_router, LOGIN_SESSION_COOKIE
from .otp import router as otp_router

__all__ = ["auth_router", "otp_router", "LOGIN_SESSION_COOKIE"]
