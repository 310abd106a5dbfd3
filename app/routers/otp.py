from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import get_otp_service, get_status_service
from app.schemas import (
    ErrorResponse,
    OTPSendRequest,
    OTPSendResponse,
    OTPVerifyRequest,
    OTPVerifyResponse,
    ProviderStatusResponse,
)
from app.services import OTPService, StatusService
from app.services import exceptions as service_exceptions

router = APIRouter(prefix="/otp", tags=["otp"])

_ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 404, 409, 410, 429, 500, 502, 504)}


def _error_response(error: service_exceptions.ServiceError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@router.post("/send", response_model=OTPSendResponse, responses=_ERROR_RESPONSES)
def send_otp(payload: OTPSendRequest, service: OTPService = Depends(get_otp_service)):
    outcome = service.issue(payload.phone_number, payload.custom_message)
    if not outcome.ok:
        return _error_response(outcome.error)
    return OTPSendResponse(
        provider=outcome.provider,
        message=f"OTP sent successfully via {outcome.provider}",
        timestamp=outcome.timestamp,
    )


@router.post("/verify", response_model=OTPVerifyResponse, responses=_ERROR_RESPONSES)
def verify_otp(payload: OTPVerifyRequest, service: OTPService = Depends(get_otp_service)):
    outcome = service.verify(payload.phone_number, payload.otp)
    if not outcome.ok:
        return _error_response(outcome.error)
    return OTPVerifyResponse(message="OTP verified successfully", timestamp=outcome.timestamp)


@router.get("/providers", response_model=ProviderStatusResponse)
def provider_status(service: StatusService = Depends(get_status_service)):
    return service.provider_status()
