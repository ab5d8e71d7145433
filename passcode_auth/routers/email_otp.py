from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status

from passcode_auth.auth import EmailOtpAuth
from passcode_auth.schemas.errors import EmailOtpError, ErrorCode
from passcode_auth.schemas.otp import (
    ResetPasswordRequest,
    ResetPasswordResponse,
    SendOtpRequest,
    SendOtpResponse,
    SignInOtpRequest,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from passcode_auth.schemas.sessions import IssuedSession, SessionResponse, SignInResponse
from passcode_auth.schemas.users import PasswordSignInRequest, SignUpRequest

router = APIRouter(tags=["email-otp"])

ERROR_STATUS = {
    ErrorCode.DELIVERY_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.USER_PROVISION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INVALID_EMAIL_OR_PASSWORD: status.HTTP_401_UNAUTHORIZED,
}


def get_auth(request: Request) -> EmailOtpAuth:
    return request.app.state.auth


def _http_error(exc: EmailOtpError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
        detail=exc.to_dict(),
    )


def _set_session_cookie(response: Response, issued: IssuedSession) -> None:
    response.set_cookie(
        key=issued.cookie.name,
        value=issued.cookie.value,
        max_age=issued.cookie.max_age,
        httponly=True,
        samesite="lax",
    )


@router.post("/email-otp/send-verification-otp", response_model=SendOtpResponse)
async def send_verification_otp(
    payload: SendOtpRequest, auth: EmailOtpAuth = Depends(get_auth)
) -> SendOtpResponse:
    try:
        return await auth.email_otp.send_verification_otp(payload.email, payload.type)
    except EmailOtpError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/email-otp/verify-email",
    response_model=VerifyEmailResponse,
    response_model_exclude_none=True,
)
async def verify_email(
    payload: VerifyEmailRequest,
    response: Response,
    auth: EmailOtpAuth = Depends(get_auth),
) -> VerifyEmailResponse:
    try:
        verified = await auth.email_otp.verify_email(payload.email, payload.otp)
    except EmailOtpError as exc:
        raise _http_error(exc) from exc
    if verified.session is None:
        return VerifyEmailResponse(status=True, user=verified.user)
    _set_session_cookie(response, verified.session)
    return VerifyEmailResponse(
        status=True, token=verified.session.token, user=verified.user
    )


@router.post("/sign-in/email-otp", response_model=SignInResponse)
async def sign_in_email_otp(
    payload: SignInOtpRequest,
    response: Response,
    auth: EmailOtpAuth = Depends(get_auth),
) -> SignInResponse:
    try:
        issued = await auth.email_otp.sign_in_with_otp(payload.email, payload.otp)
    except EmailOtpError as exc:
        raise _http_error(exc) from exc
    _set_session_cookie(response, issued)
    return SignInResponse(token=issued.token, user=issued.user)


@router.post("/email-otp/reset-password", response_model=ResetPasswordResponse)
async def reset_password(
    payload: ResetPasswordRequest, auth: EmailOtpAuth = Depends(get_auth)
) -> ResetPasswordResponse:
    try:
        user = await auth.email_otp.reset_password(
            payload.email, payload.otp, payload.password
        )
    except EmailOtpError as exc:
        raise _http_error(exc) from exc
    return ResetPasswordResponse(status=True, user=user)


@router.post("/sign-up/email", response_model=SignInResponse)
async def sign_up_email(
    payload: SignUpRequest,
    response: Response,
    auth: EmailOtpAuth = Depends(get_auth),
) -> SignInResponse:
    try:
        issued = await auth.passwords.sign_up(
            payload.email, payload.password, name=payload.name
        )
    except EmailOtpError as exc:
        raise _http_error(exc) from exc
    _set_session_cookie(response, issued)
    return SignInResponse(token=issued.token, user=issued.user)


@router.post("/sign-in/email", response_model=SignInResponse)
async def sign_in_email(
    payload: PasswordSignInRequest,
    response: Response,
    auth: EmailOtpAuth = Depends(get_auth),
) -> SignInResponse:
    try:
        issued = await auth.passwords.sign_in(payload.email, payload.password)
    except EmailOtpError as exc:
        raise _http_error(exc) from exc
    _set_session_cookie(response, issued)
    return SignInResponse(token=issued.token, user=issued.user)


async def _session_token(
    request: Request, auth: EmailOtpAuth, authorization: Optional[str]
) -> str:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid Authorization header",
            )
        return token
    cookie_value = request.cookies.get(auth.settings.session_cookie_name)
    if cookie_value:
        token = await auth.sessions.resolve_cookie(cookie_value)
        if token:
            return token
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing session",
    )


@router.get("/get-session", response_model=SessionResponse)
async def get_session(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    auth: EmailOtpAuth = Depends(get_auth),
) -> SessionResponse:
    token = await _session_token(request, auth, authorization)
    user_id = await auth.sessions.get_user_id(token)
    expires_at = await auth.sessions.get_expiry(token)
    user = await auth.users.get_user(user_id) if user_id is not None else None
    if user is None or expires_at is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    return SessionResponse(token=token, expires_at=expires_at, user=user)


@router.post("/sign-out")
async def sign_out(
    request: Request,
    response: Response,
    authorization: Optional[str] = Header(default=None),
    auth: EmailOtpAuth = Depends(get_auth),
) -> dict:
    token = await _session_token(request, auth, authorization)
    revoked = await auth.sessions.revoke_session(token)
    if not revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )
    response.delete_cookie(auth.settings.session_cookie_name)
    return {"success": True}
