"""
Auth endpoints
==============

POST /api/v1/auth/signup          -- register, returns a bearer token
POST /api/v1/auth/login           -- exchange credentials for a token
POST /api/v1/auth/verify-email    -- confirm the address from the emailed link
POST /api/v1/auth/forgot-password -- email a password-reset link
POST /api/v1/auth/reset-password  -- set a new password with the reset token
GET  /api/v1/auth/me              -- the caller's account
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.api.auth import get_identity
from src.api.dependencies import get_account_service
from src.api.middleware import limiter
from src.api.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    TokenRequest,
    UserResponse,
)
from src.config import settings
from src.domain.entities import Identity
from src.domain.enums import UserRole
from src.services.accounts import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=201, response_model=AuthResponse, summary="Register")
@limiter.limit(settings.rate_limit)
async def signup(
    request: Request,
    body: SignupRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user, token = await accounts.signup(
        name=body.name,
        email=body.email,
        phone=body.phone,
        password=body.password,
        role=UserRole(body.role),
    )
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse, summary="Log in")
@limiter.limit(settings.rate_limit)
async def login(
    request: Request,
    body: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user, token = await accounts.login(body.email, body.password)
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/verify-email", response_model=MessageResponse, summary="Verify email")
@limiter.limit(settings.rate_limit)
async def verify_email(
    request: Request,
    body: TokenRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.verify_email(body.token)
    return MessageResponse(message="Email verified successfully")


@router.post("/forgot-password", response_model=MessageResponse, summary="Request a reset link")
@limiter.limit(settings.rate_limit)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.forgot_password(body.email)
    return MessageResponse(
        message="If that email is registered, a reset link has been sent"
    )


@router.post("/reset-password", response_model=MessageResponse, summary="Reset password")
@limiter.limit(settings.rate_limit)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password reset successfully")


@router.get("/me", response_model=UserResponse, summary="Current account")
@limiter.limit(settings.rate_limit)
async def me(
    request: Request,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    return UserResponse.model_validate(await accounts.profile(identity))
