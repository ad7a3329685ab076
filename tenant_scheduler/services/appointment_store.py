"""Appointment lifecycle over the single appointments table.

Every operation opens its own session and closes it before returning. Storage
failures are rolled back and surfaced as ``StorageUnavailable``; the store
never retries on its own.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tenant_scheduler.auth.guard import require_record_access, require_tenant_access
from tenant_scheduler.auth.identity import Identity, Role
from tenant_scheduler.core.config import Settings
from tenant_scheduler.core.errors import Conflict, NotFound, StorageUnavailable, ValidationError
from tenant_scheduler.models.appointment import Appointment
from tenant_scheduler.schemas import (
    AppointmentCreate,
    AppointmentPatch,
    AppointmentRecord,
    AppointmentStatus,
    as_utc,
    can_transition,
)
from tenant_scheduler.services.filters import AppointmentFilters, apply_filters
from tenant_scheduler.services.keys import (
    index_keys,
    is_key_safe,
    owner_index_key,
    owner_partition,
    primary_key,
    tenant_index_key,
    tenant_partition,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_appointment_id() -> str:
    return str(uuid.uuid4())


def _to_storage(value: datetime) -> datetime:
    """Columns hold naive UTC so every backend round-trips the same value."""
    return as_utc(value).replace(tzinfo=None)


def _to_column(value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_storage(value)
    if isinstance(value, AppointmentStatus):
        return value.value
    return value


def _require_key_safe(value: str | None, name: str) -> None:
    if not is_key_safe(value):
        raise ValidationError(f'{name} must be a non-empty id without "#".')


def _parse(model: type[BaseModel], value: Any) -> Any:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except PydanticValidationError as exc:
        details = [
            {'field': '.'.join(str(part) for part in error['loc']), 'message': error['msg']}
            for error in exc.errors()
        ]
        raise ValidationError('Validation failed', details=details) from exc


class AppointmentStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_appointment_id,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._clock = clock
        self._id_factory = id_factory

    @staticmethod
    def _to_record(row: Appointment) -> AppointmentRecord:
        return AppointmentRecord(**{name: getattr(row, name) for name in AppointmentRecord.model_fields})

    @staticmethod
    def _fetch(db: Session, tenant_id: str, appointment_id: str) -> Appointment | None:
        key = primary_key(tenant_id, appointment_id)
        return db.get(Appointment, (key.pk, key.sk))

    def _next_updated_at(self, previous: datetime) -> datetime:
        now = self._clock()
        if now <= previous:
            return previous + timedelta(microseconds=1)
        return now

    def _storage_failure(self, db: Session, action: str) -> StorageUnavailable:
        db.rollback()
        logger.exception('Storage failure while %s', action)
        return StorageUnavailable()

    def create(
        self,
        tenant_id: str,
        owner_user_id: str,
        fields: AppointmentCreate | Mapping[str, Any],
    ) -> AppointmentRecord:
        """Persist a new appointment under a freshly generated id.

        Raises ``Conflict`` when a row already sits at the generated primary
        key; callers retry with another call, which draws a new id.
        """
        _require_key_safe(tenant_id, 'tenantId')
        _require_key_safe(owner_user_id, 'ownerUserId')
        data = _parse(AppointmentCreate, fields)

        appointment_id = self._id_factory()
        _require_key_safe(appointment_id, 'appointmentId')
        now = self._clock()
        reminder_lead_minutes = data.reminder_lead_minutes
        if reminder_lead_minutes is None:
            reminder_lead_minutes = self._settings.default_reminder_minutes

        row = Appointment(
            **index_keys(tenant_id, appointment_id, owner_user_id, data.start_time),
            appointment_id=appointment_id,
            tenant_id=tenant_id,
            owner_user_id=owner_user_id,
            title=data.title,
            description=data.description,
            start_time=_to_storage(data.start_time),
            end_time=_to_storage(data.end_time),
            location=data.location,
            attendees=list(data.attendees),
            status=data.status.value,
            reminder_lead_minutes=reminder_lead_minutes,
            created_at=_to_storage(now),
            updated_at=_to_storage(now),
            expires_at=_to_storage(now + timedelta(days=self._settings.retention_days)),
        )

        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
            record = self._to_record(row)
        except IntegrityError as exc:
            db.rollback()
            logger.warning(
                'Appointment id collision',
                extra={'tenant_id': tenant_id, 'appointment_id': appointment_id},
            )
            raise Conflict() from exc
        except SQLAlchemyError as exc:
            raise self._storage_failure(db, 'creating an appointment') from exc
        finally:
            db.close()

        logger.info(
            'Appointment created',
            extra={'tenant_id': tenant_id, 'appointment_id': appointment_id, 'owner_user_id': owner_user_id},
        )
        return record

    def get_by_id(self, tenant_id: str, appointment_id: str, identity: Identity) -> AppointmentRecord:
        require_tenant_access(identity, tenant_id)
        _require_key_safe(tenant_id, 'tenantId')
        _require_key_safe(appointment_id, 'appointmentId')

        db = self._session_factory()
        try:
            row = self._fetch(db, tenant_id, appointment_id)
            if row is None:
                raise NotFound()
            record = self._to_record(row)
        except SQLAlchemyError as exc:
            raise self._storage_failure(db, 'reading an appointment') from exc
        finally:
            db.close()

        require_record_access(identity, record)
        return record

    def list(
        self,
        tenant_id: str,
        identity: Identity,
        filters: AppointmentFilters | Mapping[str, Any] | None = None,
    ) -> list[AppointmentRecord]:
        """Appointments of a tenant (super-admin) or of the caller, by start time."""
        require_tenant_access(identity, tenant_id)
        _require_key_safe(tenant_id, 'tenantId')
        if filters is not None:
            filters = _parse(AppointmentFilters, filters)

        db = self._session_factory()
        try:
            match identity.role:
                case Role.SUPER_ADMIN:
                    query = db.query(Appointment).filter(
                        Appointment.gsi1pk == tenant_partition(tenant_id),
                    ).order_by(Appointment.gsi1sk.asc(), Appointment.start_time.asc(), Appointment.sk.asc())
                case Role.TENANT_ADMIN | Role.USER:
                    _require_key_safe(identity.user_id, 'userId')
                    query = db.query(Appointment).filter(
                        Appointment.gsi2pk == owner_partition(tenant_id, identity.user_id),
                    ).order_by(Appointment.gsi2sk.asc(), Appointment.start_time.asc(), Appointment.sk.asc())
            records = [self._to_record(row) for row in query.all()]
        except SQLAlchemyError as exc:
            raise self._storage_failure(db, 'listing appointments') from exc
        finally:
            db.close()

        return apply_filters(records, filters)

    def update(
        self,
        tenant_id: str,
        appointment_id: str,
        identity: Identity,
        patch: AppointmentPatch | Mapping[str, Any],
    ) -> AppointmentRecord:
        require_tenant_access(identity, tenant_id)
        _require_key_safe(tenant_id, 'tenantId')
        _require_key_safe(appointment_id, 'appointmentId')
        changes = _parse(AppointmentPatch, patch).changes()

        db = self._session_factory()
        try:
            row = self._fetch(db, tenant_id, appointment_id)
            if row is None:
                raise NotFound()
            current = self._to_record(row)
            require_record_access(identity, current)

            start_time = changes.get('start_time', current.start_time)
            end_time = changes.get('end_time', current.end_time)
            if end_time <= start_time:
                raise ValidationError('endTime must be after startTime.')

            target_status = changes.get('status')
            if target_status is not None and not can_transition(current.status, target_status):
                raise ValidationError(
                    f'Cannot change status from {current.status.value} to {target_status.value}.'
                )

            for name, value in changes.items():
                setattr(row, name, _to_column(value))

            # Both secondary sort keys move together with the start time, in the same row write.
            if start_time != current.start_time:
                row.gsi1sk = tenant_index_key(tenant_id, start_time).gsi1sk
                row.gsi2sk = owner_index_key(tenant_id, current.owner_user_id, start_time).gsi2sk

            row.updated_at = _to_storage(self._next_updated_at(current.updated_at))
            db.commit()
            record = self._to_record(row)
        except SQLAlchemyError as exc:
            raise self._storage_failure(db, 'updating an appointment') from exc
        finally:
            db.close()

        logger.info(
            'Appointment updated',
            extra={'tenant_id': tenant_id, 'appointment_id': appointment_id, 'user_id': identity.user_id},
        )
        return record

    def delete(self, tenant_id: str, appointment_id: str, identity: Identity) -> bool:
        """Hard-delete one appointment. Returns False when there was nothing to delete."""
        require_tenant_access(identity, tenant_id)
        _require_key_safe(tenant_id, 'tenantId')
        _require_key_safe(appointment_id, 'appointmentId')

        db = self._session_factory()
        try:
            row = self._fetch(db, tenant_id, appointment_id)
            if row is None:
                return False
            require_record_access(identity, row)
            db.delete(row)
            db.commit()
        except SQLAlchemyError as exc:
            raise self._storage_failure(db, 'deleting an appointment') from exc
        finally:
            db.close()

        logger.info(
            'Appointment deleted',
            extra={'tenant_id': tenant_id, 'appointment_id': appointment_id, 'user_id': identity.user_id},
        )
        return True

    def purge_expired(self, now: datetime | None = None) -> int:
        """Physically remove every appointment past its retention date, in all tenants."""
        cutoff = _to_storage(now or self._clock())

        db = self._session_factory()
        try:
            removed = db.query(Appointment).filter(
                Appointment.expires_at <= cutoff,
            ).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as exc:
            raise self._storage_failure(db, 'purging expired appointments') from exc
        finally:
            db.close()

        logger.info('Purged expired appointments', extra={'removed': removed})
        return removed
