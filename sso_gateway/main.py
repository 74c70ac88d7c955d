"""
ASGI entry point.

    uvicorn sso_gateway.main:app
"""

import os

import structlog

from .app import create_app
from .config import GatewayConfig
from .logging import setup_logging

config = GatewayConfig.from_env()
setup_logging(config.service_name, level=config.log_level, json_output=config.is_production)

if not os.environ.get("SESSION_SECRET"):
    structlog.get_logger(__name__).warning(
        "session_secret_not_set",
        detail="using a per-process random secret; sessions will not survive restarts",
    )

app = create_app(config)
