"""FastAPI application for the watchlist and alert-rule service."""

import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request

from .. import __version__
from ..config.logging import get_logger
from ..config.settings import get_settings
from ..ormdb.database import create_tables
from .deps import verify_auth_token
from .exceptions import setup_exception_handlers
from .health import router as health_router
from .routers import (
    admin_router,
    alerts_router,
    instruments_router,
    rules_router,
    watchlist_router,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    logger.info("Starting stockwatch API")
    create_tables()

    yield

    logger.info("stockwatch API shutdown completed")


async def add_request_id_middleware(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    logger.info(
        "Request started",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        user_id=request.headers.get("x-user-id"),
    )

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    logger.info(
        "Request completed",
        request_id=request_id,
        status_code=response.status_code,
        method=request.method,
        path=request.url.path,
    )

    return response


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    # Interactive docs are not served in production
    show_docs = not get_settings().is_production()
    app = FastAPI(
        title="Stockwatch API",
        description="Per-user A-share watchlists and price alert rules.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if show_docs else None,
        redoc_url="/redoc" if show_docs else None,
        openapi_url="/openapi.json" if show_docs else None,
    )

    app.middleware("http")(add_request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(health_router, tags=["Health"])

    authenticated = [Depends(verify_auth_token)]
    app.include_router(instruments_router, tags=["Instruments"], dependencies=authenticated)
    app.include_router(watchlist_router, tags=["Watchlist"], dependencies=authenticated)
    app.include_router(rules_router, tags=["Monitor Rules"], dependencies=authenticated)
    app.include_router(alerts_router, tags=["Alerts"], dependencies=authenticated)
    app.include_router(admin_router, tags=["Admin"], dependencies=authenticated)

    return app


app = create_app()
