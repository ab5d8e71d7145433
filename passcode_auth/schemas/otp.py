from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from passcode_auth.schemas.sessions import IssuedSession
from passcode_auth.schemas.users import UserResponse


class OtpPurpose(str, Enum):
    SIGN_IN = "sign-in"
    EMAIL_VERIFICATION = "email-verification"
    FORGET_PASSWORD = "forget-password"


class OtpState(str, Enum):
    PENDING = "pending"
    CONSUMED = "consumed"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"


@dataclass(frozen=True)
class OtpRecord:
    identifier: str
    purpose: OtpPurpose
    code: str
    created_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    superseded_at: Optional[datetime] = None
    id: Optional[int] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def state(self, now: datetime) -> OtpState:
        if self.consumed_at is not None:
            return OtpState.CONSUMED
        if self.superseded_at is not None:
            return OtpState.SUPERSEDED
        if self.is_expired(now):
            return OtpState.EXPIRED
        return OtpState.PENDING


@dataclass(frozen=True)
class IssuedOtp:
    record: OtpRecord
    code: str


class SendOtpRequest(BaseModel):
    email: str = Field(max_length=255)
    type: OtpPurpose


class SendOtpResponse(BaseModel):
    success: bool


class VerifyEmailRequest(BaseModel):
    email: str = Field(max_length=255)
    otp: str = Field(max_length=32)


class VerifyEmailResponse(BaseModel):
    status: bool
    token: Optional[str] = None
    user: Optional[UserResponse] = None


class SignInOtpRequest(BaseModel):
    email: str = Field(max_length=255)
    otp: str = Field(max_length=32)


class ResetPasswordRequest(BaseModel):
    email: str = Field(max_length=255)
    otp: str = Field(max_length=32)
    password: str = Field(min_length=1, max_length=1024)


class ResetPasswordResponse(BaseModel):
    status: bool
    user: UserResponse


class OtpRecordView(BaseModel):
    identifier: str
    purpose: OtpPurpose
    created_at: datetime
    expires_at: datetime
    code: Optional[str] = None


@dataclass(frozen=True)
class VerifiedEmail:
    user: UserResponse
    session: Optional[IssuedSession] = None
