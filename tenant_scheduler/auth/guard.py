"""Tenant-level and record-level authorization.

The two checks are separate on purpose: list queries are scoped by the index
they read, so they only need the tenant check, while point operations learn
the owner only after the row is fetched.
"""

from typing import Protocol

from tenant_scheduler.auth.identity import Identity, Role
from tenant_scheduler.core.errors import AccessDenied


class OwnedRecord(Protocol):
    owner_user_id: str


def can_access_tenant(identity: Identity, requested_tenant_id: str) -> bool:
    match identity.role:
        case Role.SUPER_ADMIN:
            return True
        case Role.TENANT_ADMIN | Role.USER:
            return identity.tenant_id == requested_tenant_id


def can_act_on_record(identity: Identity, record: OwnedRecord) -> bool:
    match identity.role:
        case Role.SUPER_ADMIN:
            return True
        case Role.TENANT_ADMIN | Role.USER:
            return identity.user_id == record.owner_user_id


def require_tenant_access(identity: Identity, requested_tenant_id: str) -> None:
    if not can_access_tenant(identity, requested_tenant_id):
        raise AccessDenied('Access denied to tenant')


def require_record_access(identity: Identity, record: OwnedRecord) -> None:
    if not can_act_on_record(identity, record):
        raise AccessDenied('Access denied to appointment')
