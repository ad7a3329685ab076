"""Remove appointments whose retention date has passed, across all tenants.

Usage:
    python -m tenant_scheduler.purge_expired
"""
import sys

from tenant_scheduler.core.config import load_settings
from tenant_scheduler.core.errors import StorageUnavailable
from tenant_scheduler.database import build_engine, build_session_factory, ensure_appointment_schema
from tenant_scheduler.services.appointment_store import AppointmentStore


def main() -> None:
    settings = load_settings()
    engine = build_engine(settings)
    ensure_appointment_schema(engine)
    store = AppointmentStore(build_session_factory(engine), settings)
    try:
        removed = store.purge_expired()
    except StorageUnavailable as exc:
        print(exc.message, file=sys.stderr)
        sys.exit(1)
    print(f"Removed {removed} expired appointment(s).")


if __name__ == "__main__":
    main()
