import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tenant_scheduler.auth.jwt_handler import IdentityVerifier
from tenant_scheduler.core.config import Settings, load_settings, validate_runtime_config
from tenant_scheduler.core.errors import SchedulerError
from tenant_scheduler.core.responses import error_response
from tenant_scheduler.database import build_engine, build_session_factory, ensure_appointment_schema
from tenant_scheduler.routes import appointment_routes
from tenant_scheduler.services.appointment_store import AppointmentStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
    )


async def scheduler_error_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {'field': '.'.join(str(part) for part in error.get('loc', [])), 'message': error.get('msg', 'Invalid value')}
        for error in exc.errors()
    ]
    return error_response(400, 'Validation failed', details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error('Unhandled exception on %s %s', request.method, request.url.path, exc_info=exc)
    return error_response(500, 'Internal server error')


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    validate_runtime_config(settings)
    configure_logging(settings)

    engine = build_engine(settings)

    app = FastAPI(title='Tenant Scheduler API')
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = AppointmentStore(build_session_factory(engine), settings)
    app.state.identity_verifier = IdentityVerifier(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    app.add_exception_handler(SchedulerError, scheduler_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            ensure_appointment_schema(engine)
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.get('/')
    def root():
        return {'status': 'Tenant Scheduler API Running'}

    app.include_router(appointment_routes.router, prefix='/tenants')
    return app


app = create_app()
