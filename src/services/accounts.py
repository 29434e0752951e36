"""
Accounts, profiles, saved addresses and driver profiles.

Login lockout: every failed attempt is committed before the request is
rejected, otherwise the request-scoped rollback would discard the counter.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.accounts import LoginState, is_locked, register_failure, register_success
from src.domain.defaults import default_for_new_item, make_default, promote_after_removal
from src.domain.entities import Identity, as_utc, utcnow
from src.domain.enums import AccountStatus, UserRole
from src.domain.errors import (
    AccessDenied,
    AccountLocked,
    AuthenticationFailed,
    Conflict,
    NotFound,
    ValidationFailed,
)
from src.infrastructure.locks import profile_lock
from src.infrastructure.models import AddressModel, UserModel
from src.infrastructure.repositories import (
    AddressRepository,
    BookingRepository,
    UserRepository,
)
from src.infrastructure.security import (
    create_access_token,
    hash_password,
    hash_token,
    new_one_time_token,
    verify_password,
)
from src.services.notifications import Notifier

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, session: AsyncSession, redis: aioredis.Redis, notifier: Notifier):
        self.session = session
        self.users = UserRepository(session)
        self.addresses = AddressRepository(session)
        self.bookings = BookingRepository(session)
        self.redis = redis
        self.notifier = notifier

    async def _user(self, user_id: int) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    # ── Signup / verification / login ─────────────────────────────────

    async def signup(
        self,
        *,
        name: str,
        email: str,
        phone: str,
        password: str,
        role: UserRole = UserRole.USER,
    ) -> tuple[UserModel, str]:
        if role == UserRole.ADMIN:
            raise ValidationFailed("Admin accounts cannot be self-registered", field="role")
        email = email.lower()
        if await self.users.get_by_email(email) is not None:
            raise Conflict("User already exists with this email")
        if await self.users.get_by_phone(phone) is not None:
            raise Conflict("Phone number is already registered")

        raw_token, token_hash = new_one_time_token()
        user = await self.users.add(
            UserModel(
                name=name,
                email=email,
                phone=phone,
                password_hash=hash_password(password),
                role=role,
                verification_token_hash=token_hash,
                verification_expires=utcnow()
                + timedelta(hours=settings.verification_token_hours),
            )
        )
        logger.info("User %s signed up as %s", user.id, role.value)

        self.notifier.queue_email(
            user.email,
            "email_verification",
            {
                "name": user.name,
                "verification_url": f"{settings.frontend_url}/verify-email?token={raw_token}",
            },
        )
        return user, create_access_token(user.id, role.value)

    async def verify_email(self, token: str) -> UserModel:
        user = await self.users.get_by_verification_hash(hash_token(token))
        if (
            user is None
            or user.verification_expires is None
            or as_utc(user.verification_expires) <= utcnow()
        ):
            raise ValidationFailed("Invalid or expired verification token", field="token")
        user.is_verified = True
        user.verification_token_hash = None
        user.verification_expires = None
        return user

    async def login(self, email: str, password: str) -> tuple[UserModel, str]:
        user = await self.users.get_by_email(email)
        if user is None:
            raise AuthenticationFailed("Invalid credentials")

        now = utcnow()
        if is_locked(user.lock_until, now):
            raise AccountLocked(
                "Account is temporarily locked due to too many failed login attempts"
            )
        if user.status != AccountStatus.ACTIVE:
            raise AccessDenied(f"Account is {AccountStatus(user.status).value}")

        if not verify_password(password, user.password_hash):
            state = register_failure(
                LoginState(user.login_attempts, user.lock_until),
                now,
                max_attempts=settings.max_login_attempts,
                lock_duration=timedelta(hours=settings.lockout_hours),
            )
            user.login_attempts = state.attempts
            user.lock_until = state.lock_until
            await self.session.commit()
            if is_locked(state.lock_until, now):
                logger.warning("User %s locked out after %d failed logins", user.id, state.attempts)
            raise AuthenticationFailed("Invalid credentials")

        state = register_success()
        user.login_attempts = state.attempts
        user.lock_until = state.lock_until
        user.last_login = now
        return user, create_access_token(user.id, UserRole(user.role).value)

    async def forgot_password(self, email: str) -> None:
        """Silently ignores unknown emails so accounts cannot be enumerated."""
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return
        raw_token, token_hash = new_one_time_token()
        user.reset_token_hash = token_hash
        user.reset_expires = utcnow() + timedelta(minutes=settings.reset_token_minutes)
        self.notifier.queue_email(
            user.email,
            "password_reset",
            {
                "name": user.name,
                "reset_url": f"{settings.frontend_url}/reset-password?token={raw_token}",
            },
        )

    async def reset_password(self, token: str, new_password: str) -> None:
        user = await self.users.get_by_reset_hash(hash_token(token))
        if user is None or user.reset_expires is None or as_utc(user.reset_expires) <= utcnow():
            raise ValidationFailed("Invalid or expired reset token", field="token")
        user.password_hash = hash_password(new_password)
        user.reset_token_hash = None
        user.reset_expires = None
        user.login_attempts = 0
        user.lock_until = None
        logger.info("Password reset for user %s", user.id)

    async def change_password(
        self, identity: Identity, current_password: str, new_password: str
    ) -> None:
        user = await self._user(identity.id)
        if not verify_password(current_password, user.password_hash):
            raise ValidationFailed("Current password is incorrect", field="current_password")
        user.password_hash = hash_password(new_password)

    async def delete_account(self, identity: Identity, password: str) -> None:
        """Soft delete: the account is banned, never removed."""
        user = await self._user(identity.id)
        if not verify_password(password, user.password_hash):
            raise ValidationFailed("Password is incorrect", field="password")
        user.status = AccountStatus.BANNED
        user.banned_at = utcnow()
        logger.info("User %s deleted their account", user.id)

    # ── Profile ───────────────────────────────────────────────────────

    async def profile(self, identity: Identity) -> UserModel:
        return await self._user(identity.id)

    async def get_user(self, identity: Identity, user_id: int) -> UserModel:
        if not identity.is_admin:
            raise AccessDenied("Admin access required")
        return await self._user(user_id)

    async def update_profile(
        self,
        identity: Identity,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        emergency_contact: Optional[dict[str, Any]] = None,
    ) -> UserModel:
        user = await self._user(identity.id)
        if phone is not None and phone != user.phone:
            other = await self.users.get_by_phone(phone)
            if other is not None and other.id != user.id:
                raise Conflict("Phone number is already registered by another user")
            user.phone = phone
        if name is not None:
            user.name = name
        if emergency_contact is not None:
            user.emergency_contact = emergency_contact
        return user

    async def update_avatar(self, identity: Identity, avatar_url: str) -> UserModel:
        user = await self._user(identity.id)
        user.avatar = avatar_url
        return user

    async def update_preferences(
        self,
        identity: Identity,
        *,
        notifications: Optional[dict[str, Optional[bool]]] = None,
        language: Optional[str] = None,
        currency: Optional[str] = None,
        theme: Optional[str] = None,
    ) -> UserModel:
        user = await self._user(identity.id)
        for channel, value in (notifications or {}).items():
            if value is not None:
                setattr(user, f"notify_{channel}", value)
        if language is not None:
            user.language = language
        if currency is not None:
            user.currency = currency
        if theme is not None:
            user.theme = theme
        return user

    async def stats(self, identity: Identity) -> dict[str, Any]:
        user = await self._user(identity.id)
        member_since = as_utc(user.member_since or user.created_at or utcnow())
        return {
            "total_rides": user.total_rides,
            "total_spent": user.total_spent,
            "average_rating": user.average_rating,
            "member_since": member_since,
            "member_duration_days": (utcnow() - member_since).days,
            "bookings": await self.bookings.rider_summary(user.id),
        }

    # ── Addresses ─────────────────────────────────────────────────────

    async def list_addresses(self, identity: Identity) -> list[AddressModel]:
        return await self.addresses.list_for_user(identity.id)

    async def add_address(self, identity: Identity, **fields: Any) -> AddressModel:
        requested_default = fields.pop("is_default", False)
        async with profile_lock(self.redis, identity.id):
            existing = await self.addresses.list_for_user(identity.id)
            address = AddressModel(
                user_id=identity.id,
                is_default=default_for_new_item(existing, requested_default),
                **fields,
            )
            await self.addresses.add(address)
            if address.is_default:
                make_default([*existing, address], address)
        return address

    async def update_address(
        self, identity: Identity, address_id: int, **fields: Any
    ) -> AddressModel:
        is_default = fields.pop("is_default", None)
        async with profile_lock(self.redis, identity.id):
            address = await self.addresses.get_for_user(identity.id, address_id)
            if address is None:
                raise NotFound("Address not found")
            for name, value in fields.items():
                if value is not None:
                    setattr(address, name, value)
            if is_default:
                make_default(await self.addresses.list_for_user(identity.id), address)
            elif is_default is False:
                address.is_default = False
        return address

    async def delete_address(self, identity: Identity, address_id: int) -> None:
        async with profile_lock(self.redis, identity.id):
            address = await self.addresses.get_for_user(identity.id, address_id)
            if address is None:
                raise NotFound("Address not found")
            was_default = address.is_default
            await self.addresses.delete(address)
            promote_after_removal(await self.addresses.list_for_user(identity.id), was_default)

    # ── Drivers ───────────────────────────────────────────────────────

    async def _driver(self, identity: Identity) -> UserModel:
        user = await self._user(identity.id)
        if user.role != UserRole.DRIVER:
            raise AccessDenied("Driver access required")
        return user

    async def driver_profile(self, identity: Identity) -> UserModel:
        return await self._driver(identity)

    async def update_driver_profile(
        self,
        identity: Identity,
        *,
        vehicle: Optional[dict[str, Any]] = None,
        documents: Optional[dict[str, Any]] = None,
    ) -> UserModel:
        driver = await self._driver(identity)
        # JSON columns: assign a new dict so the change is detected
        if vehicle:
            driver.vehicle = {**(driver.vehicle or {}), **vehicle}
        if documents:
            driver.documents = {**(driver.documents or {}), **documents}
        return driver

    async def update_location(self, identity: Identity, lat: float, lng: float) -> UserModel:
        driver = await self._driver(identity)
        driver.current_lat = lat
        driver.current_lng = lng
        driver.location_updated_at = utcnow()
        return driver

    async def nearby_drivers(
        self, lat: float, lng: float, radius_km: Optional[float] = None
    ) -> list[UserModel]:
        return await self.users.nearby_drivers(
            lat,
            lng,
            radius_km if radius_km is not None else settings.search_radius_km,
            settings.search_limit,
        )
