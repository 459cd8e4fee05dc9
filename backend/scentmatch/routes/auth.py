"""
ScentMatch Backend — Auth Route Handlers
==========================================

What:  POST /auth/signup, /auth/login, /auth/verify, /auth/logout; GET /auth/me.
Why:   HTTP surface of the passwordless login flow.
How:   Thin handlers. AuthService does the work; handlers only pick status
       codes, shape bodies, and set/clear the session cookie.

Session cookie:
    name      settings.session_cookie_name
    value     opaque random token (only its SHA-256 is stored server-side)
    HttpOnly  always
    Secure    outside development
    SameSite  Lax
    Max-Age   settings.session_ttl_days
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from scentmatch.config import settings
from scentmatch.database import get_db_session
from scentmatch.schemas.auth import (
    CodeIssuedResponse,
    CurrentUserResponse,
    LoginRequest,
    SignupRequest,
    VerifyRequest,
)
from scentmatch.schemas.common import ErrorResponse, MessageResponse
from scentmatch.services.auth_service import AuthService, IssuedCode
from scentmatch.services.credential_store import CredentialStore
from scentmatch.services.notifier import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ── Dependencies ──────────────────────────────────────────────────────────

def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_auth_service(
    db: AsyncSession = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> AuthService:
    """Build an AuthService bound to this request's session."""
    return AuthService(
        store=CredentialStore(db),
        notifier=notifier,
        code_ttl_minutes=settings.otp_expiry_minutes,
        session_ttl=timedelta(days=settings.session_ttl_days),
    )


def _code_response(issued: IssuedCode, message: str) -> CodeIssuedResponse:
    if not issued.delivered:
        message = "The login code could not be sent. Please request a new one."
    return CodeIssuedResponse(
        message=message,
        user_id=issued.user_id,
        otp_code=issued.code if settings.otp_code_in_responses else None,
    )


def _session_cookie_kwargs() -> dict:
    return {
        "key": settings.session_cookie_name,
        "httponly": True,
        "secure": not settings.is_development,
        "samesite": "lax",
        "path": "/",
    }


# ── Routes ────────────────────────────────────────────────────────────────

@router.post(
    "/signup",
    status_code=201,
    response_model=CodeIssuedResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Email and phone are required", "model": ErrorResponse},
        409: {"description": "Account already exists", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Create an account and send the first login code",
)
async def signup(
    body: SignupRequest,
    auth: AuthService = Depends(get_auth_service),
) -> CodeIssuedResponse:
    issued = await auth.signup(email=body.email, phone=body.phone)
    return _code_response(
        issued, "Account created. Please verify with the code sent to your phone."
    )


@router.post(
    "/login",
    response_model=CodeIssuedResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Email is required", "model": ErrorResponse},
        404: {"description": "No account for this email", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Request a new login code for an existing account",
)
async def login(
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> CodeIssuedResponse:
    issued = await auth.login(email=body.email)
    return _code_response(issued, "Verification code sent to your phone.")


@router.post(
    "/verify",
    response_model=MessageResponse,
    responses={
        400: {"description": "User ID and code are required", "model": ErrorResponse},
        401: {"description": "Invalid, expired, or used code", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Exchange a login code for a session cookie",
)
async def verify(
    body: VerifyRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    issued = await auth.verify(user_id=body.user_id, code=body.code)
    response.set_cookie(
        value=issued.token,
        max_age=int(timedelta(days=settings.session_ttl_days).total_seconds()),
        **_session_cookie_kwargs(),
    )
    return MessageResponse(message="Verification successful. You are now logged in.")


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Return the account behind the session cookie",
)
async def me(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUserResponse:
    user = await auth.resolve_session(request.cookies.get(settings.session_cookie_name))
    return CurrentUserResponse(user_id=user.id, created_at=user.created_at)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="End the current session",
)
async def logout(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.logout(request.cookies.get(settings.session_cookie_name))
    response.delete_cookie(**_session_cookie_kwargs())
    return MessageResponse(message="You have been logged out.")
