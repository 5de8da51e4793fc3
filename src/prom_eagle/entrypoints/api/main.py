import logging
from typing import Annotated

from fastapi import Depends, FastAPI, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from prom_eagle import __version__
from prom_eagle.domain.errors import ExpositionError
from prom_eagle.entrypoints.api import dependencies
from prom_eagle.services.registry import PowerGauge, build_registry

logger = logging.getLogger(__name__)


def render_metrics(registry: CollectorRegistry) -> bytes:
    try:
        return generate_latest(registry)
    except Exception as e:
        raise ExpositionError(f"Failed to render metrics: {e}") from e


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> Response:
    # Unknown paths and wrong methods both answer with a bare 404
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=exc.status_code, headers=getattr(exc, "headers", None))


def get_metrics(
    registry: Annotated[CollectorRegistry, Depends(dependencies.get_registry)],
) -> Response:
    try:
        body = render_metrics(registry)
    except ExpositionError as e:
        logger.error(f"Scrape failed: {e}", exc_info=True)
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(content=body, media_type=CONTENT_TYPE_LATEST)


def create_app(gauge: PowerGauge) -> FastAPI:
    """Build the exposition app around an existing gauge."""
    app = FastAPI(
        title="Prom Eagle",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
    )
    app.state.gauge = gauge
    app.state.registry = build_registry(gauge)

    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    # Plain def: FastAPI runs each scrape in its threadpool
    app.add_api_route("/metrics", get_metrics, methods=["GET"])

    return app
