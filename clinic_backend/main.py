import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clinic_backend.auth.jwt_handler import TokenVerifier
from clinic_backend.core import config
from clinic_backend.core.errors import SchedulingError
from clinic_backend.core.logging_config import configure_logging
from clinic_backend.database import Base, engine, ensure_appointment_schema
from clinic_backend.middleware.log_middleware import LogMiddleware
from clinic_backend.models import appointment, audit_log, doctor, patient, schedule, user  # noqa: F401
from clinic_backend.routes import appointment_routes, doctor_routes
from clinic_backend.services.notifications import LoggingNotifier, Notifier

logger = logging.getLogger(__name__)

REQUEST_FIELD_ORDER = (
    'doctor_id',
    'reason',
    'duration_minutes',
    'appointment_type',
    'appointment_date',
    'appointment_time',
)


def _error_field(error: dict) -> str:
    loc = [part for part in error.get('loc', ()) if part not in ('body', 'path', 'query')]
    return str(loc[0]) if loc else ''


def describe_validation_errors(errors: list[dict]) -> str:
    """Reduce pydantic errors to the single message the client sees."""
    missing = [_error_field(error) for error in errors if error.get('type') == 'missing']
    if missing:
        named = [field for field in missing if field]
        if not named:
            return 'Request body is required.'
        return f"Missing required fields: {', '.join(named)}"

    def priority(error: dict) -> int:
        field = _error_field(error)
        return REQUEST_FIELD_ORDER.index(field) if field in REQUEST_FIELD_ORDER else len(REQUEST_FIELD_ORDER)

    first = sorted(errors, key=priority)[0]
    message = first.get('msg', 'Invalid request.')
    return message.removeprefix('Value error, ')


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'error': describe_validation_errors(exc.errors()), 'kind': 'validation'},
    )


def create_app(token_verifier: TokenVerifier | None = None, notifier: Notifier | None = None) -> FastAPI:
    configure_logging()
    config.validate_runtime_config()

    app = FastAPI(title='Clinic Booking API')
    app.state.token_verifier = token_verifier or TokenVerifier(
        config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
        expires_minutes=config.JWT_EXPIRES_MINUTES,
    )
    app.state.notifier = notifier or LoggingNotifier()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    app.add_middleware(LogMiddleware)

    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            Base.metadata.create_all(bind=engine)
            ensure_appointment_schema()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.get('/')
    def root():
        return {'status': 'Clinic Booking API Running'}

    app.include_router(doctor_routes.router, prefix='/doctors')
    app.include_router(appointment_routes.router, prefix='/appointments')

    return app


app = create_app()
