from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    INVALID_EMAIL = "INVALID_EMAIL"
    OTP_NOT_FOUND = "OTP_NOT_FOUND"
    OTP_EXPIRED = "OTP_EXPIRED"
    INVALID_OTP = "INVALID_OTP"
    DELIVERY_FAILED = "DELIVERY_FAILED"
    USER_PROVISION_FAILED = "USER_PROVISION_FAILED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    INVALID_EMAIL_OR_PASSWORD = "INVALID_EMAIL_OR_PASSWORD"
    INVALID_PASSWORD = "INVALID_PASSWORD"


ERROR_MESSAGES = {
    ErrorCode.INVALID_EMAIL: "Invalid email",
    ErrorCode.OTP_NOT_FOUND: "OTP not found",
    ErrorCode.OTP_EXPIRED: "OTP expired",
    ErrorCode.INVALID_OTP: "Invalid OTP",
    ErrorCode.DELIVERY_FAILED: "Failed to deliver OTP",
    ErrorCode.USER_PROVISION_FAILED: "Failed to create user",
    ErrorCode.USER_NOT_FOUND: "User not found",
    ErrorCode.USER_ALREADY_EXISTS: "User already exists",
    ErrorCode.INVALID_EMAIL_OR_PASSWORD: "Invalid email or password",
    ErrorCode.INVALID_PASSWORD: "Invalid password",
}


class EmailOtpError(ValueError):
    """A recoverable, caller-visible failure carrying a stable error code."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


class RandomSourceUnavailable(RuntimeError):
    pass
