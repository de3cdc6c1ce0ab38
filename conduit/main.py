import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from conduit.cache import CacheManager
from conduit.config import settings
from conduit.database import Database
from conduit.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConduitError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from conduit.logging_config import setup_logging
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, comments, profiles, tags, users

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins.
_STATUS_BY_ERROR: tuple[tuple[type[ConduitError], int], ...] = (
    (ValidationError, 422),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    engine_kwargs = {} if settings.DATABASE_URL.startswith("sqlite") else {"pool_pre_ping": True}
    database = Database(settings.DATABASE_URL, echo=settings.DEBUG, **engine_kwargs)
    cache = CacheManager(settings.REDIS_URL)
    await cache.connect()
    app.state.database = database
    app.state.cache = cache
    logger.info("Conduit started (env=%s)", settings.APP_ENV)
    yield
    # Shutdown
    await cache.disconnect()
    await database.dispose()


app = FastAPI(
    title="Conduit API",
    description="Social publishing core: articles, comments, favorites and follows",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConduitError)
async def handle_domain_error(request: Request, exc: ConduitError) -> JSONResponse:
    status_code = next(
        (code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 400
    )
    headers = {"WWW-Authenticate": "Token"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content={"errors": exc.errors}, headers=headers)


@app.exception_handler(IntegrityError)
async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Unclassified integrity error on %s: %s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"errors": {"conflict": ["the request conflicts with existing data"]}},
    )


# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(tags.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
