from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OTPSendRequest(_CamelModel):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", max_length=20)
    custom_message: Optional[str] = Field(default=None, alias="customMessage", max_length=480)


class OTPVerifyRequest(_CamelModel):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", max_length=20)
    otp: Optional[str] = Field(default=None, max_length=12)


class OTPSendResponse(BaseModel):
    success: bool = True
    provider: str
    message: str
    timestamp: datetime


class OTPVerifyResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
