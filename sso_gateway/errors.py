"""
Gateway Errors
==============
Error taxonomy shared by the broker, OTP engine and HTTP surface.

Messages on these exceptions are user-facing. Internal details (store
errors, upstream bodies that are not safe to show) go to the logs only.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class GatewayError(Exception):
    """Base class for errors that map to a typed HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


# -----------------------------------------------------------------------------
# Validation (400, user-correctable)
# -----------------------------------------------------------------------------

class ValidationError(GatewayError):
    status_code = 400
    code = "VALIDATION_ERROR"


class MissingParameters(ValidationError):
    code = "MISSING_PARAMETERS"

    def __init__(self, message: str = "Missing parameters"):
        super().__init__(message)


class InvalidApp(ValidationError):
    code = "INVALID_APP"

    def __init__(self, message: str = "Invalid app_id"):
        super().__init__(message)


class InvalidReturnUrl(ValidationError):
    code = "INVALID_RETURN_URL"

    def __init__(self, message: str = "Invalid return_url"):
        super().__init__(message)


class InvalidRecipient(ValidationError):
    code = "INVALID_RECIPIENT"

    def __init__(self, message: str = "Invalid recipient"):
        super().__init__(message)


class InvalidChannel(ValidationError):
    code = "INVALID_CHANNEL"

    def __init__(self, message: str = "Invalid channel"):
        super().__init__(message)


class InvalidState(ValidationError):
    code = "INVALID_STATE"

    def __init__(self, message: str = "Invalid or expired state"):
        super().__init__(message)


# -----------------------------------------------------------------------------
# Rate limiting (429, transient)
# -----------------------------------------------------------------------------

class RateLimited(GatewayError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after
        self.headers = dict(headers or {})


TooManyRequests = RateLimited


# -----------------------------------------------------------------------------
# Upstream and infrastructure failures
# -----------------------------------------------------------------------------

class UpstreamFailure(GatewayError):
    status_code = 500
    code = "UPSTREAM_FAILURE"


class DeliveryFailed(UpstreamFailure):
    code = "DELIVERY_FAILED"

    def __init__(
        self,
        message: str = "Failed to send OTP",
        *,
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["message"] = self.detail or "External service error"
        return payload


class ChannelUnconfigured(UpstreamFailure):
    code = "CHANNEL_UNCONFIGURED"

    def __init__(self, message: str = "External OTP service not configured"):
        super().__init__(message)


class IdentityProviderError(UpstreamFailure):
    code = "IDENTITY_PROVIDER_ERROR"

    def __init__(self, message: str = "Identity provider error", *, status_code: int = 502):
        super().__init__(message, status_code=status_code)


class StoreUnavailable(GatewayError):
    """State store could not be reached or timed out."""
    status_code = 500
    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "State store unavailable"):
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": GENERIC_ERROR_MESSAGE, "code": self.code}


# -----------------------------------------------------------------------------
# FastAPI wiring
# -----------------------------------------------------------------------------

def error_response(exc: GatewayError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimited):
        headers.update(exc.headers)
        if exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        error=str(exc),
    )
    return error_response(exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"error": "Missing required fields", "code": ValidationError.code},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR_MESSAGE})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the gateway's error-to-response mapping on an app."""
    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
