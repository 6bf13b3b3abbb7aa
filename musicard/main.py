"""
MusiCard - FastAPI Backend
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from musicard.config import settings
from musicard.errors import MusiCardError
from musicard.logging_utils import configure_logging
from musicard.routers import auth, config, db, images, search, spotify, storage, users, youtube

configure_logging()
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _get_cors_origins() -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(
        "Starting MusiCard API (env=%s, storage=%s, debug=%s)",
        settings.environment, settings.storage_provider, settings.debug,
    )

    from musicard.services.database import init_db, close_db
    if settings.storage_provider == "remote":
        try:
            await init_db()
        except Exception as e:
            logger.warning("Database initialization warning: %s", e)

    yield

    logger.info("Shutting down...")
    from musicard.services.blob_store import blob_store
    from musicard.services.image_relay import image_relay
    from musicard.services.kv_store import kv_store
    await image_relay.close()
    await blob_store.close()
    await kv_store.close()
    await close_db()


app = FastAPI(
    title="MusiCard",
    description="API for shareable music business cards",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


@app.exception_handler(MusiCardError)
async def musicard_error_handler(request: Request, exc: MusiCardError):
    logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(config.router, prefix="/api/config", tags=["Config"])
app.include_router(db.router, prefix="/api/db", tags=["Database"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(storage.router, prefix="/api/storage", tags=["Storage"])
app.include_router(images.router, prefix="/api", tags=["Images"])
app.include_router(search.router, prefix="/api/search", tags=["Search"])
app.include_router(spotify.router, prefix="/api/spotify", tags=["Spotify"])
app.include_router(youtube.router, prefix="/api/youtube", tags=["YouTube"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "MusiCard"}


@app.get("/health")
async def health():
    """Detailed health check: verifies Redis and PostgreSQL connectivity."""
    checks = {"api": True}

    # Redis
    try:
        from musicard.services.kv_store import kv_store
        client = await kv_store.get_client()
        await client.ping()
        checks["redis"] = True
    except Exception:
        checks["redis"] = False

    # PostgreSQL
    from musicard.services.database import ping_db
    checks["postgres"] = await ping_db()

    status = "healthy" if all(checks.values()) else "degraded"
    return {"status": status, "version": VERSION, "services": checks}
