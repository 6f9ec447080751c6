from typing import Optional

import time
from contextlib import asynccontextmanager
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from aggregator_engine.errors import AggregatorError
from ..config import AppSettings
from ..logging import init_logging
from ..services.aggregation_service import AggregationService
from .middleware import (
    RequestIDMiddleware,
    aggregator_exception_handler,
    generic_exception_handler,
    http_exception_handler,
)
from .routes import aggregated, health


def create_app(
    settings: Optional[AppSettings] = None,
    aggregation_service: Optional[AggregationService] = None,
) -> FastAPI:
    settings = settings or AppSettings()
    log = init_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Warm the repositories on startup; requests retry initialization if this fails
        if not await app.state.aggregation_service.check_database():
            log.warning("startup_database_unavailable", database_url=settings.database_url)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Service health and uptime"},
            {"name": "aggregated", "description": "Paginated weather and news records"},
        ],
    )

    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(AggregatorError, aggregator_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(aggregated.router, prefix="/api", tags=["aggregated"])

    app.state.settings = settings
    app.state.start_time = time.time()
    # Repositories are built lazily so tests without lifespan still work
    app.state.aggregation_service = aggregation_service or AggregationService(settings)

    return app


if __name__ == "__main__":
    import uvicorn

    s = AppSettings()
    uvicorn.run(create_app(s), host=s.host, port=s.port)
