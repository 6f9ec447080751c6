from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from aggregator_engine.errors import AggregatorError
from ...schemas.aggregated import AggregatedData, AggregatedResponse, ErrorResponse

router = APIRouter()
logger = structlog.get_logger()


def query_params(request: Request) -> Dict[str, Any]:
    """Collapse query parameters into a dict; repeated keys become lists."""
    params: Dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in params:
            existing = params[key]
            params[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            params[key] = value
    return params


@router.get(
    "/aggregated-data",
    response_model=AggregatedResponse,
    summary="Paginated weather and news records",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def aggregated_data(request: Request):
    service = request.app.state.aggregation_service
    settings = request.app.state.settings
    try:
        data = await service.get_aggregated_data(query_params(request))
    except AggregatorError:
        # Mapped to a status code by the app's exception handlers
        raise
    except Exception as e:
        logger.exception("aggregated_data_failed", error=str(e))
        body = {"success": False, "message": "Internal server error"}
        if not settings.is_production:
            body["error"] = str(e)
        return JSONResponse(status_code=500, content=body)
    return AggregatedResponse(success=True, data=AggregatedData.model_validate(data))
