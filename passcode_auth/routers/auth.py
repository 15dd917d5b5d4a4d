from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status

from passcode_auth.config import settings
from passcode_auth.errors import (
    AccessDenied,
    CodeExpired,
    DeliveryFailed,
    InvalidCode,
    RateLimited,
    Unauthorized,
    ValidationFailed,
)
from passcode_auth.schemas.otp import (
    LogoutResponse,
    OtpRequest,
    OtpResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
    SessionResponse,
)
from passcode_auth.services.auth import AuthService, LoginResult, SessionLookup, auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service() -> AuthService:
    return auth_service


def _error(kind: str, message: str, **extra) -> dict:
    detail = {"error": kind, "message": message}
    detail.update({key: value for key, value in extra.items() if value is not None})
    return detail


def _rate_limited(exc: RateLimited) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=_error(exc.kind, exc.message, countdown=exc.retry_after),
        headers={"Retry-After": str(exc.retry_after)},
    )


def _secure_cookies() -> bool:
    return settings.env.lower() == "production"


def _write_session_token(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie,
        token,
        httponly=True,
        samesite="lax",
        secure=_secure_cookies(),
    )


def _write_session(response: Response, result: LoginResult) -> None:
    _write_session_token(response, result.token)
    if result.remember_token is not None:
        response.set_cookie(
            settings.remember_me_cookie,
            result.remember_token,
            max_age=result.remember_max_age,
            httponly=True,
            samesite="lax",
            secure=_secure_cookies(),
        )
    else:
        response.delete_cookie(settings.remember_me_cookie)


def _clear_session(response: Response) -> None:
    response.delete_cookie(settings.session_cookie)
    response.delete_cookie(settings.remember_me_cookie)


def current_session(
    response: Response,
    session_token: Optional[str] = Cookie(None, alias=settings.session_cookie),
    remember_token: Optional[str] = Cookie(None, alias=settings.remember_me_cookie),
    service: AuthService = Depends(get_auth_service),
) -> SessionLookup:
    try:
        lookup = service.require_session(session_token, remember_token)
    except Unauthorized as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_error(exc.kind, exc.message),
        ) from exc
    if lookup.restored_from_remember_me:
        _write_session_token(response, lookup.token)
    return lookup


@router.post("/otp/request", response_model=OtpResponse, response_model_exclude_none=True)
def request_code(
    payload: OtpRequest, service: AuthService = Depends(get_auth_service)
) -> OtpResponse:
    try:
        issued = service.request_code(payload.email)
    except ValidationFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_error(exc.kind, exc.message, errors=exc.errors),
        ) from exc
    except RateLimited as exc:
        raise _rate_limited(exc) from exc
    except DeliveryFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=_error(exc.kind, exc.message),
        ) from exc
    return OtpResponse(
        message="Code sent",
        expires_in_seconds=issued.expires_in_seconds,
        code=issued.code if settings.otp_debug else None,
    )


@router.post("/otp/verify", response_model=OtpVerifyResponse)
def verify_code(
    payload: OtpVerifyRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> OtpVerifyResponse:
    try:
        result = service.submit_code(payload.email, payload.code)
    except RateLimited as exc:
        raise _rate_limited(exc) from exc
    except (InvalidCode, CodeExpired) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error(exc.kind, exc.message),
        ) from exc
    except AccessDenied as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=_error(exc.kind, exc.message),
        ) from exc
    _write_session(response, result)
    return OtpVerifyResponse(
        message="Logged in",
        email=result.session.identity,
        live_connection_id=result.live_connection_id,
    )


@router.get("/session", response_model=SessionResponse)
def read_session(lookup: SessionLookup = Depends(current_session)) -> SessionResponse:
    return SessionResponse(
        email=lookup.session.identity,
        created_at=lookup.session.created_at,
        live_connection_id=lookup.live_connection_id,
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    response: Response,
    session_token: Optional[str] = Cookie(None, alias=settings.session_cookie),
    remember_token: Optional[str] = Cookie(None, alias=settings.remember_me_cookie),
    service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    service.log_out(session_token, remember_token)
    _clear_session(response)
    return LogoutResponse(message="Logged out")
