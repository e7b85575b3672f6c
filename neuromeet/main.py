import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from neuromeet.core import config
from neuromeet.database import (
    Base,
    drop_legacy_sessions_table,
    engine,
    ensure_booking_indexes,
    ensure_rating_schema,
    ensure_user_schema,
)
from neuromeet.models import availability, booking, favorite, rating, user  # noqa: F401
from neuromeet.routes import (
    availability_routes,
    booking_routes,
    favorite_routes,
    rating_routes,
    therapist_routes,
    user_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='NeuroMeet API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        ensure_user_schema()
        Base.metadata.create_all(bind=engine)
        ensure_rating_schema()
        drop_legacy_sessions_table()
        ensure_booking_indexes()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'NeuroMeet API Running'}


app.include_router(user_routes.router, prefix='/users')
app.include_router(therapist_routes.router, prefix='/therapists')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(booking_routes.router, prefix='/bookings')
app.include_router(rating_routes.router, prefix='/ratings')
app.include_router(favorite_routes.router)
