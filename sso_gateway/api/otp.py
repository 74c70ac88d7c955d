"""
OTP Routes
==========

POST /otp/send    - Issue and deliver a code
POST /otp/verify  - Check a code and sign the user in
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from ..config import GatewayConfig
from ..otp import OTPChannel, OTPEngine
from ..session import Identity, SessionManager
from .dependencies import get_config, get_otp_engine, get_session_manager
from .schemas import OTPSendRequest, OTPSendResponse, OTPVerifyRequest, OTPVerifyResponse, UserOut

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/otp", tags=["otp"])

COMPLETE_PATH = "/auth/complete"


@router.post("/send", response_model=OTPSendResponse, response_model_exclude_none=True)
async def send_otp(
    body: OTPSendRequest,
    engine: OTPEngine = Depends(get_otp_engine),
    config: GatewayConfig = Depends(get_config),
):
    record = await engine.send(body.recipient, body.channel)

    if engine.delivery.exposes_code:
        return OTPSendResponse(
            message="OTP sent successfully (mock)",
            code=record.code if config.is_development else None,
        )
    return OTPSendResponse(message="OTP sent successfully", messageId=record.message_id)


@router.post("/verify", response_model=OTPVerifyResponse)
async def verify_otp(
    body: OTPVerifyRequest,
    engine: OTPEngine = Depends(get_otp_engine),
    sessions: SessionManager = Depends(get_session_manager),
):
    result = await engine.verify(body.recipient, body.code)

    if not result.valid:
        content = {"error": result.message or "Invalid OTP", "code": result.reason.value.upper()}
        if result.attempts_remaining is not None:
            content["attemptsRemaining"] = result.attempts_remaining
        return JSONResponse(content, status_code=400)

    channel = result.record.channel if result.record else OTPChannel.EMAIL
    identity = Identity(
        id=body.recipient,
        email=body.recipient if channel == OTPChannel.EMAIL else None,
    )
    payload = OTPVerifyResponse(user=UserOut(**identity.to_dict()), redirectTo=COMPLETE_PATH)
    response = JSONResponse(payload.model_dump())
    sessions.establish(response, identity)
    return response
