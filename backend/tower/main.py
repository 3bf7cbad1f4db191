"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tower.config import settings
from tower.db.database import engine, Base
from tower.db.redis import close_redis
from tower.exceptions import (
    ConflictError,
    DeckValidationError,
    FloorConflictError,
    NotFoundError,
    PersistenceError,
    TowerError,
    ValidationError,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from tower.services.generation_service import generation_worker

    # Startup: create tables (dev only; use Alembic in production)
    import tower.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    generation_worker.start()
    yield
    # Shutdown: stop background generation, close connections
    await generation_worker.stop()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title="Endless Tower API",
    description="Backend API for the Endless Tower single-player progression mode",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # TODO: restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error mapping ---


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    content = {"detail": exc.message}
    if isinstance(exc, DeckValidationError):
        content["reason"] = exc.reason
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    content = {"detail": exc.message}
    if isinstance(exc, FloorConflictError):
        content["current_floor"] = exc.current_floor
    return JSONResponse(status_code=409, content=content)


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.exception_handler(TowerError)
async def tower_error_handler(request: Request, exc: TowerError):
    logger.error("Unhandled tower error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# --- Routes ---
# Import here (not at top level) so modules with heavy deps don't block startup
from tower.api.routes import tower  # noqa: E402

app.include_router(tower.router, prefix="/api/tower", tags=["tower"])


@app.get("/health")
async def health_check():
    return {"status": "ok"}
