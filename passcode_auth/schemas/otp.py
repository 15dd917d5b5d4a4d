from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OtpRequest(BaseModel):
    email: str


class OtpResponse(BaseModel):
    message: str
    expires_in_seconds: int
    code: Optional[str] = None


class OtpVerifyRequest(BaseModel):
    email: str
    code: str = Field(min_length=1, max_length=32)


class OtpVerifyResponse(BaseModel):
    message: str
    email: str
    live_connection_id: str


class SessionResponse(BaseModel):
    email: str
    created_at: datetime
    live_connection_id: str


class LogoutResponse(BaseModel):
    message: str

