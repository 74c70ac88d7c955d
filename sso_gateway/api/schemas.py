"""
Request/Response Schemas
========================
Explicit shapes for every JSON endpoint. Anything that fails to parse is
rejected as a ValidationError before it reaches the broker or OTP engine.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class OTPSendRequest(BaseModel):
    recipient: str = Field(..., min_length=1)
    channel: str = Field(..., min_length=1)


class OTPSendResponse(BaseModel):
    message: str
    status: str = "sent"
    messageId: Optional[str] = None
    # Only populated by the mock channel outside production
    code: Optional[str] = None


class OTPVerifyRequest(BaseModel):
    recipient: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        # Accept numeric JSON codes
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class UserOut(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class OTPVerifyResponse(BaseModel):
    message: str = "OTP verified successfully"
    status: str = "verified"
    user: UserOut
    redirectTo: str


class LoginSessionResponse(BaseModel):
    appId: str
    returnUrl: str
    state: str


class SessionResponse(BaseModel):
    user: Optional[UserOut] = None


class LogoutResponse(BaseModel):
    success: bool = True
