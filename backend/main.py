import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

import backend.models  # noqa: F401  registers every table on Base.metadata
from backend.core import config
from backend.database import Base, engine, ensure_appointment_schema
from backend.routes import (
    ai_routes,
    appointment_routes,
    auth_routes,
    chat_routes,
    doctor_routes,
    patient_routes,
    review_routes,
)
from backend.services.chat_sessions import ChatSessionStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Dental Clinic API')
app.state.chat_sessions = ChatSessionStore()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Dental Clinic API Running'}


@app.get('/health')
def health():
    return {'status': 'ok', 'environment': config.APP_ENV}


app.include_router(auth_routes.router, prefix='/api/auth')
app.include_router(doctor_routes.router, prefix='/api/doctors')
app.include_router(patient_routes.router, prefix='/api/patients')
app.include_router(appointment_routes.router, prefix='/api/appointments')
app.include_router(review_routes.router, prefix='/api/reviews')
app.include_router(chat_routes.router, prefix='/api/chat')
app.include_router(ai_routes.router, prefix='/api/ai')
