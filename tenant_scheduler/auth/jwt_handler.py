import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from tenant_scheduler.auth.identity import Identity, Role, parse_role, role_from_groups
from tenant_scheduler.core.config import Settings
from tenant_scheduler.core.errors import AuthenticationError

logger = logging.getLogger(__name__)

TENANT_CLAIM = "tenant_id"
ROLE_CLAIM = "role"
GROUPS_CLAIM = "groups"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(
    settings: Settings,
    user_id: str,
    tenant_id: str,
    role: Role,
    expires_minutes: int | None = None,
) -> str:
    expire_minutes = expires_minutes if expires_minutes is not None else settings.jwt_expires_minutes
    now = _utcnow()
    payload = {
        "sub": user_id,
        TENANT_CLAIM: tenant_id,
        ROLE_CLAIM: role.value,
        "exp": now + timedelta(minutes=expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> dict:
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )


class IdentityVerifier:
    """Turns a bearer token into a verified ``Identity`` or raises ``AuthenticationError``."""

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        self._settings = settings
        self._clock = clock

    def verify(self, token: str) -> Identity:
        if not token:
            raise AuthenticationError("Bearer token is required")

        try:
            payload = decode_access_token(self._settings, token)
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token: %s", exc)
            raise AuthenticationError("Invalid token") from exc

        user_id = payload.get("sub")
        tenant_id = payload.get(TENANT_CLAIM)
        if not user_id or not tenant_id:
            raise AuthenticationError("Token is missing subject or tenant")

        try:
            if payload.get(ROLE_CLAIM):
                role = parse_role(payload[ROLE_CLAIM])
            else:
                role = role_from_groups(payload.get(GROUPS_CLAIM) or [])
        except ValueError as exc:
            raise AuthenticationError("Token carries no known role") from exc

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        if expires_at <= self._clock():
            raise AuthenticationError("Token has expired")

        return Identity(user_id=user_id, tenant_id=tenant_id, role=role, expires_at=expires_at)
