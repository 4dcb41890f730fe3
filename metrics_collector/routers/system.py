"""
Metrics Collector - System Router

HTML overview of all metrics and the storage health probe.
"""

import html

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse

from metrics_common.errors import StorageError

from ..storage import MetricStore
from .deps import get_store
from .metrics import format_value

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def list_metrics(store: MetricStore = Depends(get_store)):
    """Render every known metric as an HTML list."""
    metrics = await store.get_all()

    items = "\n".join(
        f"<li>{html.escape(m.id)} ({m.type}): {html.escape(format_value(m))}</li>"
        for m in metrics
    )
    body = (
        "<!DOCTYPE html>\n<html>\n<head><title>Metrics</title></head>\n<body>\n"
        "<h1>Metrics</h1>\n"
        f"<ul>\n{items}\n</ul>\n"
        "</body>\n</html>\n"
    )
    return HTMLResponse(body)


@router.get("/ping", response_class=PlainTextResponse)
async def ping(store: MetricStore = Depends(get_store)):
    """Check database connectivity. Only the relational backend can answer 200."""
    try:
        await store.ping()
    except StorageError as e:
        logger.warning("Ping failed", backend=store.kind.value, error=str(e))
        return PlainTextResponse("Database unavailable", status_code=500)

    return PlainTextResponse("OK")
