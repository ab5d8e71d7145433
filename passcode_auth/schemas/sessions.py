from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from passcode_auth.schemas.users import UserResponse


class TokenError(ValueError):
    pass


@dataclass(frozen=True)
class SessionCookie:
    name: str
    value: str
    max_age: int


@dataclass(frozen=True)
class IssuedSession:
    token: str
    cookie: SessionCookie
    expires_at: datetime
    user: UserResponse


@dataclass(frozen=True)
class SessionTokenData:
    session_token: str


class SignInResponse(BaseModel):
    token: str
    user: UserResponse


class SessionResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserResponse
