import asyncio
import json
from dataclasses import replace
from types import SimpleNamespace

import pytest
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPAuthorizationCredentials

from tenant_scheduler.auth.dependencies import get_current_identity
from tenant_scheduler.auth.identity import Identity, Role
from tenant_scheduler.auth.jwt_handler import IdentityVerifier, create_access_token
from tenant_scheduler.core.errors import (
    AccessDenied,
    AuthenticationError,
    Conflict,
    NotFound,
    StorageUnavailable,
    ValidationError,
)
from tenant_scheduler.main import create_app, request_validation_handler, scheduler_error_handler
from tenant_scheduler.routes.appointment_routes import (
    create_appointment,
    create_with_fresh_ids,
    delete_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
)
from tenant_scheduler.schemas import AppointmentCreate, AppointmentPatch, AppointmentStatus


def _fake_request(method: str = 'GET', path: str = '/tenants/t1/appointments'):
    return SimpleNamespace(method=method, url=SimpleNamespace(path=path))


def _list(store, tenant_id: str, identity: Identity, **filters):
    return list_appointments(
        tenant_id=tenant_id,
        from_time=filters.get('from_time'),
        to_time=filters.get('to_time'),
        appointment_status=filters.get('appointment_status'),
        identity=identity,
        store=store,
    )


@pytest.fixture
def sync_request(sync_fields: dict) -> AppointmentCreate:
    return AppointmentCreate.model_validate(sync_fields)


def test_create_appointment_wraps_record_in_success_envelope(store, settings, owner, sync_request) -> None:
    response = create_appointment(tenant_id='t1', data=sync_request, identity=owner, store=store, settings=settings)

    assert response['success'] is True
    data = response['data']
    assert data['tenantId'] == 't1'
    assert data['ownerUserId'] == 'u1'
    assert data['status'] == 'scheduled'
    assert data['reminderLeadMinutes'] == 60
    assert data['startTime'].startswith('2024-06-01T10:00:00')


def test_create_appointment_rejects_foreign_tenant(store, settings, owner, sync_request) -> None:
    with pytest.raises(AccessDenied):
        create_appointment(tenant_id='t2', data=sync_request, identity=owner, store=store, settings=settings)

    assert _list(store, 't1', owner)['data']['count'] == 0


def test_sync_scenario_across_roles(store, settings, owner, other_user, sync_request) -> None:
    created = create_appointment(tenant_id='t1', data=sync_request, identity=owner, store=store, settings=settings)
    appointment_id = created['data']['appointmentId']

    with pytest.raises(AccessDenied):
        get_appointment(tenant_id='t1', appointment_id=appointment_id, identity=other_user, store=store)

    ops_admin = Identity(user_id='ops-1', tenant_id='t9', role=Role.SUPER_ADMIN)
    listed = _list(store, 't1', ops_admin)

    assert listed['data']['count'] == 1
    assert listed['data']['appointments'][0]['appointmentId'] == appointment_id


def test_list_appointments_passes_query_filters(store, owner) -> None:
    store.create('t1', 'u1', {'title': 'A', 'startTime': '2024-06-01T08:00:00Z', 'endTime': '2024-06-01T09:00:00Z'})
    store.create('t1', 'u1', {
        'title': 'B',
        'startTime': '2024-06-02T08:00:00Z',
        'endTime': '2024-06-02T09:00:00Z',
        'status': 'confirmed',
    })

    response = _list(store, 't1', owner, appointment_status=AppointmentStatus.CONFIRMED)

    assert [item['title'] for item in response['data']['appointments']] == ['B']
    assert response['data']['count'] == 1


def test_update_and_get_round_trip(store, owner, sync_request, clock) -> None:
    created = store.create('t1', 'u1', sync_request)
    clock.advance(minutes=1)

    updated = update_appointment(
        tenant_id='t1',
        appointment_id=created.appointment_id,
        patch=AppointmentPatch(status=AppointmentStatus.CONFIRMED),
        identity=owner,
        store=store,
    )
    fetched = get_appointment(tenant_id='t1', appointment_id=created.appointment_id, identity=owner, store=store)

    assert updated == fetched
    assert fetched['data']['status'] == 'confirmed'


def test_delete_appointment_reports_whether_anything_was_removed(store, owner, sync_request) -> None:
    created = store.create('t1', 'u1', sync_request)

    first = delete_appointment(tenant_id='t1', appointment_id=created.appointment_id, identity=owner, store=store)
    second = delete_appointment(tenant_id='t1', appointment_id=created.appointment_id, identity=owner, store=store)

    assert first['data'] == {'appointmentId': created.appointment_id, 'deleted': True}
    assert second['data'] == {'appointmentId': created.appointment_id, 'deleted': False}


def test_get_appointment_is_not_found_for_unknown_id(store, owner) -> None:
    with pytest.raises(NotFound):
        get_appointment(tenant_id='t1', appointment_id='missing', identity=owner, store=store)


def test_create_with_fresh_ids_retries_after_conflict(sync_request) -> None:
    calls = []

    class FlakyStore:
        def create(self, tenant_id, owner_user_id, data):
            calls.append(tenant_id)
            if len(calls) == 1:
                raise Conflict()
            return 'created'

    assert create_with_fresh_ids(FlakyStore(), 't1', 'u1', sync_request, attempts=3) == 'created'
    assert len(calls) == 2


def test_create_with_fresh_ids_gives_up_after_last_attempt(sync_request) -> None:
    class CollidingStore:
        def create(self, tenant_id, owner_user_id, data):
            raise Conflict()

    with pytest.raises(Conflict):
        create_with_fresh_ids(CollidingStore(), 't1', 'u1', sync_request, attempts=2)


def test_get_current_identity_requires_credentials(settings) -> None:
    with pytest.raises(AuthenticationError) as exception_info:
        get_current_identity(credentials=None, verifier=IdentityVerifier(settings))

    assert exception_info.value.message == 'Authorization header is required'


def test_get_current_identity_verifies_bearer_token(settings) -> None:
    token = create_access_token(settings, user_id='u1', tenant_id='t1', role=Role.TENANT_ADMIN)
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)

    identity = get_current_identity(credentials=credentials, verifier=IdentityVerifier(settings))

    assert (identity.user_id, identity.tenant_id, identity.role) == ('u1', 't1', Role.TENANT_ADMIN)


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (AuthenticationError('Invalid token'), 401),
        (AccessDenied(), 403),
        (NotFound(), 404),
        (Conflict(), 409),
        (StorageUnavailable(), 503),
    ],
)
def test_scheduler_error_handler_maps_kinds_to_status_codes(error, status_code: int) -> None:
    response = asyncio.run(scheduler_error_handler(_fake_request(), error))

    assert response.status_code == status_code
    body = json.loads(response.body)
    assert body['success'] is False
    assert body['error']['message'] == error.message


def test_scheduler_error_handler_includes_validation_details(store) -> None:
    with pytest.raises(ValidationError) as exception_info:
        store.create('t1', 'u1', {'title': 'No times'})

    response = asyncio.run(scheduler_error_handler(_fake_request('POST'), exception_info.value))

    body = json.loads(response.body)
    assert response.status_code == 400
    assert {detail['field'] for detail in body['error']['details']} == {'startTime', 'endTime'}


def test_request_validation_handler_uses_error_envelope() -> None:
    exc = RequestValidationError([{'loc': ('body', 'title'), 'msg': 'Field required', 'type': 'missing'}])

    response = asyncio.run(request_validation_handler(_fake_request('POST'), exc))

    assert response.status_code == 400
    assert json.loads(response.body) == {
        'success': False,
        'error': {
            'message': 'Validation failed',
            'details': [{'field': 'body.title', 'message': 'Field required'}],
        },
    }


def test_create_app_wires_routes_and_state(settings) -> None:
    app = create_app(settings)

    assert app.url_path_for('list_appointments', tenant_id='t1') == '/tenants/t1/appointments'
    assert app.url_path_for('get_appointment', tenant_id='t1', appointment_id='a1') == '/tenants/t1/appointments/a1'
    assert app.url_path_for('delete_appointment', tenant_id='t1', appointment_id='a1') == '/tenants/t1/appointments/a1'
    assert app.state.settings is settings
    assert isinstance(app.state.identity_verifier, IdentityVerifier)


def test_create_app_refuses_placeholder_secret_in_production(settings) -> None:
    with pytest.raises(RuntimeError):
        create_app(replace(settings, app_env='production', jwt_secret_key='change-me'))
