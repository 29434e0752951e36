"""
Bearer-token authentication.

``get_identity`` turns the ``Authorization: Bearer <jwt>`` header into an
explicit ``Identity`` that routes pass down to the services.  The user row
is re-read on every request so a banned or suspended account loses access
immediately rather than when its token expires.
"""

from __future__ import annotations

import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.domain.entities import Identity
from src.domain.enums import AccountStatus, UserRole
from src.domain.errors import AccessDenied, AuthenticationFailed
from src.infrastructure.repositories import UserRepository
from src.infrastructure.security import decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    if credentials is None:
        raise AuthenticationFailed("Missing bearer token")
    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthenticationFailed("Invalid or expired token") from exc

    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise AuthenticationFailed("Invalid or expired token")
    if user.status != AccountStatus.ACTIVE:
        raise AccessDenied(f"Account is {AccountStatus(user.status).value}")
    return Identity(id=user.id, role=UserRole(user.role))


def require_role(*roles: UserRole):
    """Dependency factory: the caller must hold one of *roles*."""

    async def _guard(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in roles:
            raise AccessDenied("Access denied")
        return identity

    return _guard


require_admin = require_role(UserRole.ADMIN)
require_driver = require_role(UserRole.DRIVER)
