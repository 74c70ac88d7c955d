"""
Gateway Logging Module

Structured logging setup, request logging and audit events.
"""

from .structured import (
    setup_logging,
    log_audit,
    client_ip_from_headers,
    RequestLoggingMiddleware,
    request_id_var,
    service_name_var,
)

__all__ = [
    "setup_logging",
    "log_audit",
    "client_ip_from_headers",
    "RequestLoggingMiddleware",
    "request_id_var",
    "service_name_var",
]
