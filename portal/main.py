import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.config import settings
from portal.core.errors import register_exception_handlers
from portal.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"{settings.PROJECT_NAME} v{settings.VERSION} starting")
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_STR}/openapi.json",
        docs_url=f"{settings.API_STR}/docs",
        redoc_url=f"{settings.API_STR}/redoc",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Routers
    from portal.routes.api import api_router
    from portal.auth.router import router as auth_router

    app.include_router(api_router, prefix=settings.API_STR)
    app.include_router(auth_router, prefix=f"{settings.API_STR}/auth", tags=["auth"])

    # Set all CORS enabled origins
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Health Check
    @app.get("/health")
    def health_check():
        return {"status": "ok", "version": settings.VERSION}

    return app

app = create_app()
