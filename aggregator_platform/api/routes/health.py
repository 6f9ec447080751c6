import time
from fastapi import APIRouter, Request

import structlog
from ...schemas.health import HealthResponse

router = APIRouter()
logger = structlog.get_logger()


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Health status",
    responses={
        200: {
            "description": "Service is up; `database` reports repository reachability",
            "content": {
                "application/json": {
                    "example": {"status": "ok", "uptime_s": 12.34, "version": "0.1.0", "database": "ok"}
                }
            },
        }
    },
)
async def health(request: Request) -> HealthResponse:
    settings = request.app.state.settings
    uptime = max(0.0, time.time() - float(getattr(request.app.state, "start_time", time.time())))
    database_ok = await request.app.state.aggregation_service.check_database()
    logger.info("health_check", env=settings.app_env, database=database_ok)
    return HealthResponse(
        status="ok" if database_ok else "degraded",
        uptime_s=uptime,
        version=settings.app_version,
        database="ok" if database_ok else "unavailable",
    )
