import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from braidbook.core import config, errors
from braidbook.database import Base, engine, ensure_availability_schema, ensure_booking_schema
from braidbook.models import availability, booking, provider, service  # noqa: F401
from braidbook.routes import availability_routes, booking_routes, provider_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='Braidbook Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(errors.BookingError)
async def booking_error_handler(request: Request, exc: errors.BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = exc.errors()
    message = details[0].get('msg', 'Invalid request.') if details else 'Invalid request.'
    return JSONResponse(
        status_code=422,
        content={'code': errors.ValidationError.code, 'message': message, 'errors': jsonable_errors(details)},
    )


def jsonable_errors(details: list) -> list[dict]:
    return [
        {'loc': list(detail.get('loc', ())), 'msg': detail.get('msg', ''), 'type': detail.get('type', '')}
        for detail in details
    ]


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Braidbook Booking API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(booking_routes.router, prefix='/bookings')
app.include_router(provider_routes.router, prefix='/providers')
