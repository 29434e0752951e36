"""
User endpoints
==============

GET    /api/v1/users/profile          -- own profile
PUT    /api/v1/users/profile          -- update name / phone / emergency contact
PUT    /api/v1/users/avatar           -- set the avatar URL
PUT    /api/v1/users/preferences      -- notification, language, currency, theme
GET    /api/v1/users/stats            -- ride stats and booking aggregates
PUT    /api/v1/users/password         -- change password
DELETE /api/v1/users/account          -- soft-delete the account
GET    /api/v1/users/addresses        -- saved addresses
POST   /api/v1/users/addresses        -- add an address
PUT    /api/v1/users/addresses/{id}   -- update an address
DELETE /api/v1/users/addresses/{id}   -- delete an address
GET    /api/v1/users/{id}             -- any user (admin)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.api.auth import get_identity, require_admin
from src.api.dependencies import get_account_service
from src.api.middleware import limiter
from src.api.schemas import (
    AccountDeleteRequest,
    AddressCreateRequest,
    AddressResponse,
    AddressUpdateRequest,
    AvatarUpdateRequest,
    MessageResponse,
    PasswordChangeRequest,
    PreferencesResponse,
    PreferencesUpdateRequest,
    ProfileUpdateRequest,
    StatsResponse,
    UserResponse,
)
from src.config import settings
from src.domain.entities import Identity
from src.services.accounts import AccountService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserResponse, summary="Own profile")
@limiter.limit(settings.rate_limit)
async def get_profile(
    request: Request,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    return UserResponse.model_validate(await accounts.profile(identity))


@router.put("/profile", response_model=UserResponse, summary="Update profile")
@limiter.limit(settings.rate_limit)
async def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.update_profile(
        identity,
        name=body.name,
        phone=body.phone,
        emergency_contact=(
            body.emergency_contact.model_dump() if body.emergency_contact else None
        ),
    )
    return UserResponse.model_validate(user)


@router.put("/avatar", response_model=UserResponse, summary="Set avatar URL")
@limiter.limit(settings.rate_limit)
async def update_avatar(
    request: Request,
    body: AvatarUpdateRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    return UserResponse.model_validate(await accounts.update_avatar(identity, body.avatar_url))


@router.put("/preferences", response_model=PreferencesResponse, summary="Update preferences")
@limiter.limit(settings.rate_limit)
async def update_preferences(
    request: Request,
    body: PreferencesUpdateRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.update_preferences(
        identity,
        notifications=body.notifications.model_dump() if body.notifications else None,
        language=body.language,
        currency=body.currency,
        theme=body.theme,
    )
    return PreferencesResponse.from_model(user)


@router.get("/stats", response_model=StatsResponse, summary="Ride statistics")
@limiter.limit(settings.rate_limit)
async def get_stats(
    request: Request,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    return StatsResponse(**await accounts.stats(identity))


@router.put("/password", response_model=MessageResponse, summary="Change password")
@limiter.limit(settings.rate_limit)
async def change_password(
    request: Request,
    body: PasswordChangeRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.change_password(identity, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.delete("/account", response_model=MessageResponse, summary="Delete account")
@limiter.limit(settings.rate_limit)
async def delete_account(
    request: Request,
    body: AccountDeleteRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.delete_account(identity, body.password)
    return MessageResponse(message="Account deleted successfully")


# ── Addresses ─────────────────────────────────────────────────────────


@router.get("/addresses", response_model=list[AddressResponse], summary="Saved addresses")
@limiter.limit(settings.rate_limit)
async def list_addresses(
    request: Request,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    return [AddressResponse.model_validate(a) for a in await accounts.list_addresses(identity)]


@router.post(
    "/addresses", status_code=201, response_model=AddressResponse, summary="Add an address"
)
@limiter.limit(settings.rate_limit)
async def add_address(
    request: Request,
    body: AddressCreateRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    address = await accounts.add_address(identity, **body.model_dump())
    return AddressResponse.model_validate(address)


@router.put("/addresses/{address_id}", response_model=AddressResponse, summary="Update an address")
@limiter.limit(settings.rate_limit)
async def update_address(
    request: Request,
    address_id: int,
    body: AddressUpdateRequest,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    address = await accounts.update_address(
        identity, address_id, **body.model_dump(exclude_unset=True)
    )
    return AddressResponse.model_validate(address)


@router.delete(
    "/addresses/{address_id}", response_model=MessageResponse, summary="Delete an address"
)
@limiter.limit(settings.rate_limit)
async def delete_address(
    request: Request,
    address_id: int,
    identity: Identity = Depends(get_identity),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.delete_address(identity, address_id)
    return MessageResponse(message="Address deleted successfully")


@router.get("/{user_id}", response_model=UserResponse, summary="Look up a user (admin)")
@limiter.limit(settings.rate_limit)
async def get_user(
    request: Request,
    user_id: int,
    identity: Identity = Depends(require_admin),
    accounts: AccountService = Depends(get_account_service),
):
    return UserResponse.model_validate(await accounts.get_user(identity, user_id))
