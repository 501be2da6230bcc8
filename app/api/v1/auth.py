"""Login, refresh-token rotation, logout, and auth dependencies (get_current_user, require_roles)."""

from collections.abc import Callable
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.security import decode_access_token
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    LogoutAllResponse,
    MeResponse,
    MessageResponse,
    RefreshResponse,
    UserPublic,
)
from app.services import auth as auth_service
from app.services import users
from app.services.audit import AuditSink, get_audit_sink

router = APIRouter()
security = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def _set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
        domain=settings.REFRESH_COOKIE_DOMAIN,
        secure=settings.REFRESH_COOKIE_SECURE,
        httponly=True,
        samesite="strict",
    )


def _clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path="/",
        domain=settings.REFRESH_COOKIE_DOMAIN,
        secure=settings.REFRESH_COOKIE_SECURE,
        httponly=True,
        samesite="strict",
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=_UNAUTHORIZED_HEADERS,
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers=_UNAUTHORIZED_HEADERS,
        )
    user = auth_service.validate_access_token(db, payload)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers=_UNAUTHORIZED_HEADERS,
        )
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def require_roles(*roles: str) -> Callable[[CurrentUser], CurrentUser]:
    """Dependency factory: require an authenticated user whose role is one of `roles` (403 otherwise)."""

    def _check(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _check


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> LoginResponse:
    """
    Authenticate with email and password.

    Returns the user profile and a JWT access token; send it as `Authorization: Bearer <accessToken>`.
    The refresh token is set as an HttpOnly, SameSite=Strict cookie.
    """
    try:
        result = auth_service.authenticate(db, body.email, body.password, audit=audit)
    except auth_service.AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        ) from e
    _set_refresh_cookie(response, result.refresh_token, settings)
    return LoginResponse(user=result.user, access_token=result.access_token)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> RefreshResponse:
    """Exchange the refresh-token cookie for a new access token; the cookie is rotated."""
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token not provided",
        )
    try:
        pair = auth_service.refresh(db, token, audit=audit)
    except auth_service.AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        ) from e
    _set_refresh_cookie(response, pair.refresh_token, settings)
    return RefreshResponse(access_token=pair.access_token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> MessageResponse:
    """Revoke the refresh token from the cookie (if any) and clear the cookie. Always 200."""
    auth_service.logout(db, request.cookies.get(settings.REFRESH_COOKIE_NAME), audit=audit)
    _clear_refresh_cookie(response, settings)
    return MessageResponse(message="Logout successful")


@router.post("/logout-all", response_model=LogoutAllResponse)
def logout_all(
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> LogoutAllResponse:
    """Revoke every refresh token of the caller (sign out on all devices)."""
    revoked = auth_service.logout_all(db, current_user.id, audit=audit)
    _clear_refresh_cookie(response, settings)
    return LogoutAllResponse(message="Logged out from all devices", revoked=revoked)


@router.get("/me", response_model=MeResponse)
def me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> MeResponse:
    """Profile of the authenticated caller (no password hash)."""
    user = users.find_by_id(db, current_user.id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers=_UNAUTHORIZED_HEADERS,
        )
    return MeResponse(user=UserPublic.model_validate(user))
