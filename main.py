"""
Main application entry point for the StrayHome API.

This module initializes the FastAPI application, configures logging and
CORS, initializes the rate limiter with a Redis backend, serves locally
stored photos, and includes routers for authentication, users, animal
listings, adoption requests and statistics.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- redis.asyncio: Async Redis client
- fakeredis.aioredis: Fake Redis for testing/offline
- strayhome.database: Database engine
- strayhome.models: SQLAlchemy models
- strayhome.animals: Animal listings router
- strayhome.adoptions: Adoption requests router
- strayhome.stats: Statistics router
- strayhome.auth: Authentication router
- strayhome.users: Users router
- strayhome.core: Application settings
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi_limiter import FastAPILimiter
from fakeredis.aioredis import FakeRedis
import redis.asyncio as redis

from strayhome.database import engine
from strayhome import models, animals, adoptions, stats
from strayhome.auth import router as auth_router
from strayhome.users import router as users_router
from strayhome.core import get_settings
from strayhome.storage import UPLOAD_URL_PREFIX

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables (for development only)
models.Base.metadata.create_all(bind=engine)

# Initialize FastAPI application
app = FastAPI(title="StrayHome API")

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """
    FastAPI startup event handler.

    Prepares the local photo directory and initializes the rate limiter
    with a Redis backend. Falls back to FakeRedis if Redis is unavailable
    (e.g., during local development).
    """
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting disabled")
        return
    redis_client = redis.from_url(
        settings.REDIS_URL, encoding="utf-8", decode_responses=True
    )
    try:
        await FastAPILimiter.init(redis_client)
    except Exception:
        logger.warning("Redis unavailable at %s, using FakeRedis", settings.REDIS_URL)
        await FastAPILimiter.init(FakeRedis(decode_responses=True))


# Include routers for application areas
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(animals.router)
app.include_router(adoptions.router)
app.include_router(stats.router)

app.mount(
    UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"msg": "StrayHome API. Visit /docs for Swagger UI"}
