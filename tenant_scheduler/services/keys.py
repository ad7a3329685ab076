"""Key derivation for the single appointments table.

Every key the store reads or writes is built here. The table carries three
lookup paths over the same row:

* primary (``pk``, ``sk``): one appointment by id
* tenant index (``gsi1pk``, ``gsi1sk``): all appointments of a tenant by start time
* owner index (``gsi2pk``, ``gsi2sk``): one owner's appointments by start time

Ids are expected to be non-empty and free of ``KEY_SEPARATOR``; the store
checks that with ``is_key_safe`` before calling into this module.
"""

from datetime import datetime, timezone
from typing import NamedTuple

KEY_SEPARATOR = '#'
TENANT_TAG = 'TENANT'
APPOINTMENT_TAG = 'APPOINTMENT'
USER_TAG = 'USER'
DATE_TAG = 'DATE'
TIME_TAG = 'TIME'


class PrimaryKey(NamedTuple):
    pk: str
    sk: str


class TenantIndexKey(NamedTuple):
    gsi1pk: str
    gsi1sk: str


class OwnerIndexKey(NamedTuple):
    gsi2pk: str
    gsi2sk: str


def _join(*parts: str) -> str:
    return KEY_SEPARATOR.join(parts)


def is_key_safe(value: str | None) -> bool:
    return bool(value) and KEY_SEPARATOR not in value


def tenant_partition(tenant_id: str) -> str:
    return _join(TENANT_TAG, tenant_id)


def owner_partition(tenant_id: str, owner_user_id: str) -> str:
    return _join(TENANT_TAG, tenant_id, USER_TAG, owner_user_id)


def start_time_sort_key(start_time: datetime) -> str:
    """Encode a start time so lexical order matches chronological order.

    Naive datetimes are taken to be UTC already.
    """
    if start_time.tzinfo is not None:
        start_time = start_time.astimezone(timezone.utc)
    return _join(
        DATE_TAG,
        start_time.strftime('%Y-%m-%d'),
        TIME_TAG,
        start_time.strftime('%H:%M:%S'),
    )


def primary_key(tenant_id: str, appointment_id: str) -> PrimaryKey:
    return PrimaryKey(
        pk=_join(TENANT_TAG, tenant_id, APPOINTMENT_TAG, appointment_id),
        sk=_join(APPOINTMENT_TAG, appointment_id),
    )


def tenant_index_key(tenant_id: str, start_time: datetime) -> TenantIndexKey:
    return TenantIndexKey(
        gsi1pk=tenant_partition(tenant_id),
        gsi1sk=start_time_sort_key(start_time),
    )


def owner_index_key(tenant_id: str, owner_user_id: str, start_time: datetime) -> OwnerIndexKey:
    return OwnerIndexKey(
        gsi2pk=owner_partition(tenant_id, owner_user_id),
        gsi2sk=start_time_sort_key(start_time),
    )


def index_keys(tenant_id: str, appointment_id: str, owner_user_id: str, start_time: datetime) -> dict[str, str]:
    """All six key attributes for one row, ready to assign onto the model."""
    return {
        **primary_key(tenant_id, appointment_id)._asdict(),
        **tenant_index_key(tenant_id, start_time)._asdict(),
        **owner_index_key(tenant_id, owner_user_id, start_time)._asdict(),
    }
