"""Pydantic shapes for appointment input, patches and stored records."""

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_LOCATION_LENGTH = 200
MAX_REMINDER_LEAD_MINUTES = 10080  # one week

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.CONFIRMED: {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED},
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_attendees(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    normalized = []
    for attendee in value:
        candidate = attendee.strip()
        if not EMAIL_PATTERN.match(candidate):
            raise ValueError(f'Attendee {attendee!r} is not an email address.')
        normalized.append(candidate)
    return normalized


class AppointmentCreate(_CamelModel):
    model_config = ConfigDict(extra='forbid')

    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    start_time: datetime
    end_time: datetime
    location: str | None = Field(default=None, max_length=MAX_LOCATION_LENGTH)
    attendees: list[str] = Field(default_factory=list)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reminder_lead_minutes: int | None = Field(default=None, ge=0, le=MAX_REMINDER_LEAD_MINUTES)

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title is required.')
        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_times(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator('attendees')
    @classmethod
    def validate_attendees(cls, value: list[str]) -> list[str]:
        return _normalize_attendees(value)

    @model_validator(mode='after')
    def validate_time_range(self) -> 'AppointmentCreate':
        if self.end_time <= self.start_time:
            raise ValueError('endTime must be after startTime.')
        return self


class AppointmentPatch(_CamelModel):
    """Partial update. Only fields present in the payload change."""

    model_config = ConfigDict(extra='forbid')

    title: str | None = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    start_time: datetime | None = None
    end_time: datetime | None = None
    location: str | None = Field(default=None, max_length=MAX_LOCATION_LENGTH)
    attendees: list[str] | None = None
    status: AppointmentStatus | None = None
    reminder_lead_minutes: int | None = Field(default=None, ge=0, le=MAX_REMINDER_LEAD_MINUTES)

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title is required.')
        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_times(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @field_validator('attendees')
    @classmethod
    def validate_attendees(cls, value: list[str] | None) -> list[str] | None:
        return _normalize_attendees(value)

    @model_validator(mode='after')
    def reject_clearing_required_fields(self) -> 'AppointmentPatch':
        nullable = {'description', 'location'}
        for name in self.model_fields_set - nullable:
            if getattr(self, name) is None:
                raise ValueError(f'{to_camel(name)} cannot be cleared.')
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class AppointmentRecord(_CamelModel):
    appointment_id: str
    tenant_id: str
    owner_user_id: str
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    location: str | None = None
    attendees: list[str] = Field(default_factory=list)
    status: AppointmentStatus
    reminder_lead_minutes: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @field_validator('start_time', 'end_time', 'created_at', 'updated_at', 'expires_at')
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_response(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)
