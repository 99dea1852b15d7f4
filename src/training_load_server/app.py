"""Litestar application factory."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog
from advanced_alchemy.config.asyncio import AsyncSessionConfig
from litestar import Litestar, Request, Response
from litestar.contrib.sqlalchemy.plugins import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
from litestar.openapi import OpenAPIConfig
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
)
from sqlalchemy.ext.asyncio import AsyncEngine

from training_load_server import __version__
from training_load_server.api import api_routers
from training_load_server.core.config import settings
from training_load_server.core.database import close_database, engine, init_database
from training_load_server.core.errors import ErrorType, TrainingLoadError
from training_load_server.routes import root_redirect

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

ERROR_STATUS_CODES = {
    ErrorType.VALIDATION: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorType.NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorType.BAD_REQUEST: HTTP_400_BAD_REQUEST,
}


def training_load_error_handler(request: Request, exc: TrainingLoadError) -> Response:
    """Render a domain error as a JSON body with a matching status code."""
    status_code = ERROR_STATUS_CODES[exc.error_type]
    logger.info(
        "Request failed",
        path=request.url.path,
        status_code=status_code,
        **exc.to_log_dict(),
    )
    return Response(content=exc.to_dict(), status_code=status_code)


def make_lifespan(
    db_engine: AsyncEngine,
) -> Callable[[Litestar], AbstractAsyncContextManager[None]]:
    """Build the lifespan manager for an engine."""

    @asynccontextmanager
    async def lifespan(app: Litestar) -> AsyncIterator[None]:
        """Application lifespan manager.

        Checks the database on startup and closes the pool on shutdown.
        """
        logger.info("Starting training-load-server", version=__version__)

        await init_database(db_engine)

        yield

        await close_database(db_engine)
        logger.info("Shutdown complete")

    return lifespan


def create_app(engine_instance: AsyncEngine | None = None) -> Litestar:
    """Create Litestar application.

    Args:
        engine_instance: Engine to serve from (defaults to the configured one)

    Returns:
        Configured Litestar app instance
    """
    db_engine = engine_instance or engine

    return Litestar(
        route_handlers=[root_redirect, *api_routers],
        lifespan=[make_lifespan(db_engine)],
        openapi_config=OpenAPIConfig(
            title="training-load-server API",
            version=__version__,
            description="Training load, periodization and plan feasibility for endurance athletes",
        ),
        plugins=[
            SQLAlchemyPlugin(
                config=SQLAlchemyAsyncConfig(
                    engine_instance=db_engine,
                    session_dependency_key="session",
                    session_config=AsyncSessionConfig(expire_on_commit=False),
                ),
            ),
        ],
        exception_handlers={TrainingLoadError: training_load_error_handler},
        debug=settings.log_level == "DEBUG",
    )


# Application instance
app = create_app()
