"""Verified caller identity."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = 'user'
    TENANT_ADMIN = 'tenant-admin'
    SUPER_ADMIN = 'super-admin'


# Group names issued by the identity provider; 'tenant-user' is its name for USER.
ROLE_ALIASES = {
    'user': Role.USER,
    'tenant-user': Role.USER,
    'tenant-admin': Role.TENANT_ADMIN,
    'super-admin': Role.SUPER_ADMIN,
}

# Highest privilege first.
ROLE_PRECEDENCE = (Role.SUPER_ADMIN, Role.TENANT_ADMIN, Role.USER)


def parse_role(value: str) -> Role:
    try:
        return ROLE_ALIASES[value.strip().lower()]
    except (KeyError, AttributeError) as exc:
        raise ValueError(f'Unknown role: {value!r}') from exc


def role_from_groups(groups: list[str]) -> Role:
    """Pick the most privileged known role out of a group list."""
    roles = set()
    for group in groups:
        try:
            roles.add(parse_role(group))
        except ValueError:
            continue
    for role in ROLE_PRECEDENCE:
        if role in roles:
            return role
    raise ValueError('No known role in groups.')


@dataclass(frozen=True)
class Identity:
    user_id: str
    tenant_id: str
    role: Role
    expires_at: datetime | None = None
