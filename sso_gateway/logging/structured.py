"""
Structured Logging
==================

Structured logging for the SSO gateway. Module code logs through
``structlog.get_logger(__name__)``; this module wires structlog and the
standard library together once at startup and provides the request logging
middleware and audit helper.

Usage:
    from sso_gateway.logging import setup_logging, RequestLoggingMiddleware, log_audit

    setup_logging(service_name="sso-gateway", json_output=True)
    app.add_middleware(RequestLoggingMiddleware)

    log_audit("auth.initiate", app_id="app1", ip="203.0.113.7")
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any

import structlog

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
service_name_var: ContextVar[str] = ContextVar("service_name", default="unknown")


def _add_service_name(logger, method_name, event_dict):
    event_dict.setdefault("service", service_name_var.get())
    return event_dict


# =============================================================================
# Setup
# =============================================================================

def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog and the root logger for the service.

    Args:
        service_name: Name of the service (e.g., "sso-gateway")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines (production) instead of console output
    """
    service_name_var.set(service_name)
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    structlog.get_logger(__name__).info(
        "logging_configured", service=service_name, json_output=json_output
    )


# =============================================================================
# Audit
# =============================================================================

def log_audit(action: str, outcome: str = "success", **metadata: Any) -> None:
    """
    Log an audit event.

    Args:
        action: Action performed (e.g., "auth.initiate", "otp.verified")
        outcome: Result (success, failure, blocked)
        **metadata: Additional context (never secrets or codes)
    """
    structlog.get_logger("audit").info(
        "audit", audit=True, action=action, outcome=outcome, **metadata
    )


def client_ip_from_headers(headers, fallback: str = "unknown") -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then ``fallback``."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback


# =============================================================================
# Request Logging Middleware
# =============================================================================

class RequestLoggingMiddleware:
    """
    ASGI middleware logging one line per request and one per response.
    """

    def __init__(self, app):
        self.app = app
        self.logger = structlog.get_logger("http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        req_id = str(uuid.uuid4())[:8]
        request_id_var.set(req_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=req_id)

        method = scope.get("method", "")
        path = scope.get("path", "")
        headers = {
            key.decode("latin-1"): value.decode("latin-1")
            for key, value in scope.get("headers", [])
        }
        client = scope.get("client")
        client_ip = client_ip_from_headers(headers, fallback=client[0] if client else "")

        start_time = time.time()
        self.logger.info(
            "http_request",
            method=method,
            path=path,
            client_ip=client_ip,
            user_agent=headers.get("user-agent", "")[:200],
        )

        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            if status_code < 400:
                log = self.logger.info
            elif status_code < 500:
                log = self.logger.warning
            else:
                log = self.logger.error
            log(
                "http_response",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
            )
