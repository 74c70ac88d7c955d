"""
Route Dependencies
==================
Accessors for the components wired onto ``app.state`` by ``create_app``.
"""

from typing import Optional

from fastapi import Request

from ..broker import LoginBroker
from ..config import GatewayConfig
from ..otp import OTPEngine
from ..session import OIDCProvider, SessionManager


def get_config(request: Request) -> GatewayConfig:
    return request.app.state.config


def get_broker(request: Request) -> LoginBroker:
    return request.app.state.broker


def get_otp_engine(request: Request) -> OTPEngine:
    return request.app.state.otp_engine


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_identity_provider(request: Request) -> Optional[OIDCProvider]:
    return request.app.state.identity_provider
