"""In-memory narrowing of an already tenant- or owner-scoped result set."""

from datetime import datetime
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tenant_scheduler.schemas import AppointmentRecord, AppointmentStatus, as_utc


class AppointmentFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    from_time: datetime | None = Field(default=None, alias='from')
    to_time: datetime | None = Field(default=None, alias='to')
    status: AppointmentStatus | None = None

    @field_validator('from_time', 'to_time')
    @classmethod
    def normalize_bounds(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @model_validator(mode='after')
    def validate_range(self) -> 'AppointmentFilters':
        if self.from_time and self.to_time and self.from_time > self.to_time:
            raise ValueError('"from" must not be after "to".')
        return self

    def matches(self, record: AppointmentRecord) -> bool:
        if self.from_time is not None and record.start_time < self.from_time:
            return False
        if self.to_time is not None and record.start_time > self.to_time:
            return False
        if self.status is not None and record.status != self.status:
            return False
        return True


def apply_filters(
    records: Iterable[AppointmentRecord],
    filters: AppointmentFilters | None = None,
) -> list[AppointmentRecord]:
    if filters is None:
        return list(records)
    return [record for record in records if filters.matches(record)]
