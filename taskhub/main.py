"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi.errors import RateLimitExceeded

from taskhub.core.config import settings
from taskhub.core.exceptions import TaskHubError
from taskhub.core.middleware import setup_middleware
from taskhub.core.rate_limiter import limiter, rate_limit_exceeded_handler
from taskhub.services.cache_service import CacheService
from taskhub.services.effects import EffectDispatcher
from taskhub.services.file_service import FileService
from taskhub.services.realtime import ConnectionManager

from taskhub.api.auth import router as auth_router
from taskhub.api.users import router as users_router
from taskhub.api.categories import router as categories_router
from taskhub.api.freelancers import router as freelancers_router
from taskhub.api.tasks import router as tasks_router
from taskhub.api.bids import router as bids_router
from taskhub.api.milestones import router as milestones_router
from taskhub.api.messages import router as messages_router
from taskhub.api.notifications import router as notifications_router
from taskhub.api.payments import router as payments_router
from taskhub.api.uploads import router as uploads_router
from taskhub.api.admin import router as admin_router
from taskhub.api.ws import router as ws_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("taskhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting TaskHub API")
    try:
        app.state.files.ensure_bucket()
        logger.info("MinIO bucket ready")
    except Exception as e:
        logger.warning("MinIO not available: %s", e)

    if app.state.cache.health_check():
        logger.info("Redis connected")
    else:
        logger.warning("Redis not available; category cache disabled")

    yield

    logger.info("Shutting down TaskHub API")


def create_app(with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="TaskHub API",
        description="Freelance marketplace: tasks, bids, milestone escrow, chat",
        version="0.1.0",
        lifespan=lifespan if with_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Collaborators shared by every request
    app.state.cache = CacheService()
    app.state.files = FileService()
    app.state.dispatcher = EffectDispatcher(ConnectionManager())

    # Middleware
    setup_middleware(app)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.exception_handler(TaskHubError)
    async def taskhub_exception_handler(request: Request, exc: TaskHubError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "message": "Validation failed",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    # Register routers
    for router in (
        auth_router, users_router, categories_router, freelancers_router,
        tasks_router, bids_router, milestones_router, messages_router,
        notifications_router, payments_router, uploads_router, admin_router,
    ):
        app.include_router(router, prefix="/api")
    app.include_router(ws_router)

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {"success": True, "data": {"status": "ok"}}

    return app


app = create_app()
