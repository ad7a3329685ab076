from threading import Lock

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tenant_scheduler.core.config import Settings


Base = declarative_base()

_schema_lock = Lock()


def build_engine(settings: Settings) -> Engine:
    connect_args = {}
    if settings.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(settings.database_url, echo=settings.sql_echo, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def ensure_appointment_schema(engine: Engine) -> None:
    """Create the appointments table and its secondary indexes if missing."""
    from tenant_scheduler.models.appointment import Appointment

    with _schema_lock:
        Base.metadata.create_all(bind=engine, tables=[Appointment.__table__])
