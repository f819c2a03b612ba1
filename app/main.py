"""
VoiceForm Backend API
Forms, responses and metered speech-to-text for the voice form builder.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Platform log collectors read stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True  # Override any existing configuration
)

from app.api.routes import forms, responses, transcribe, usage
from app.db.base import Base
from app.db.session import engine, normalize_database_url
# Registers every table on Base.metadata
from app.models import Subscription, ApiUsage, Form, FormSubmission  # noqa: F401

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
PROJECT_ROOT = Path(__file__).resolve().parent.parent
RATE_LIMIT_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"]


def run_migrations() -> None:
    """
    Upgrade the schema to the latest Alembic revision.
    A failed migration aborts startup rather than serving against a stale schema.
    """
    alembic_ini = PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("No alembic.ini at %s, skipping migrations", PROJECT_ROOT)
        return

    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        logger.error("DATABASE_URL is not set, skipping migrations. Point it at the Supabase Postgres instance.")
        return

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", normalize_database_url(db_url))
    try:
        command.upgrade(alembic_cfg, "head")
    except Exception:
        logger.exception("Alembic upgrade failed")
        raise
    logger.info("Database schema is at head")


def get_cors_origins() -> list[str]:
    origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


app = FastAPI(title="VoiceForm API", version=APP_VERSION)


@app.on_event("startup")
async def startup_event():
    """Create missing tables, then bring the schema to head."""
    logger.info("Ensuring database tables exist")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception:
        logger.exception("Could not create database tables")
        raise

    run_migrations()


# The browser client reads the quota headers on transcription responses
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
    expose_headers=RATE_LIMIT_HEADERS,
)

app.include_router(forms.router, prefix="/api", tags=["Forms"])
app.include_router(responses.router, prefix="/api", tags=["Responses"])
app.include_router(transcribe.router, prefix="/api", tags=["Transcription"])
app.include_router(usage.router, prefix="/api", tags=["Usage"])


@app.get("/health")
def health_check():
    return {"status": "healthy", "version": APP_VERSION}
