import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from tenant_scheduler.auth.dependencies import get_current_identity, get_settings, get_store
from tenant_scheduler.auth.guard import require_tenant_access
from tenant_scheduler.auth.identity import Identity
from tenant_scheduler.core.config import Settings
from tenant_scheduler.core.errors import Conflict
from tenant_scheduler.core.responses import success
from tenant_scheduler.schemas import AppointmentCreate, AppointmentPatch, AppointmentRecord, AppointmentStatus
from tenant_scheduler.services.appointment_store import AppointmentStore

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)


def create_with_fresh_ids(
    store: AppointmentStore,
    tenant_id: str,
    owner_user_id: str,
    data: AppointmentCreate,
    attempts: int,
) -> AppointmentRecord:
    """Call ``store.create`` until it lands on an unused id or attempts run out."""
    for attempt in range(1, attempts + 1):
        try:
            return store.create(tenant_id, owner_user_id, data)
        except Conflict:
            if attempt >= attempts:
                raise
            logger.warning(
                'Appointment id collision, retrying with a new id',
                extra={'tenant_id': tenant_id, 'attempt': attempt},
            )
    raise Conflict()


@router.post('/{tenant_id}/appointments', status_code=status.HTTP_201_CREATED)
def create_appointment(
    tenant_id: str,
    data: AppointmentCreate,
    identity: Identity = Depends(get_current_identity),
    store: AppointmentStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    require_tenant_access(identity, tenant_id)
    record = create_with_fresh_ids(store, tenant_id, identity.user_id, data, settings.create_id_attempts)
    return success(record.to_response())


@router.get('/{tenant_id}/appointments')
def list_appointments(
    tenant_id: str,
    from_time: datetime | None = Query(default=None, alias='from'),
    to_time: datetime | None = Query(default=None, alias='to'),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    identity: Identity = Depends(get_current_identity),
    store: AppointmentStore = Depends(get_store),
):
    filters = {'from': from_time, 'to': to_time, 'status': appointment_status}
    appointments = store.list(tenant_id, identity, filters)
    return success({
        'appointments': [record.to_response() for record in appointments],
        'count': len(appointments),
    })


@router.get('/{tenant_id}/appointments/{appointment_id}')
def get_appointment(
    tenant_id: str,
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    store: AppointmentStore = Depends(get_store),
):
    record = store.get_by_id(tenant_id, appointment_id, identity)
    return success(record.to_response())


@router.put('/{tenant_id}/appointments/{appointment_id}')
def update_appointment(
    tenant_id: str,
    appointment_id: str,
    patch: AppointmentPatch,
    identity: Identity = Depends(get_current_identity),
    store: AppointmentStore = Depends(get_store),
):
    record = store.update(tenant_id, appointment_id, identity, patch)
    return success(record.to_response())


@router.delete('/{tenant_id}/appointments/{appointment_id}')
def delete_appointment(
    tenant_id: str,
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    store: AppointmentStore = Depends(get_store),
):
    deleted = store.delete(tenant_id, appointment_id, identity)
    return success({'appointmentId': appointment_id, 'deleted': deleted})
