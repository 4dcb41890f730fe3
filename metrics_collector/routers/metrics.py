"""
Metrics Collector - Metrics Router

JSON update/read/batch endpoints and the legacy plain-text protocol.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

from metrics_common.errors import BatchApplyError, MetricValidationError, StorageError
from metrics_common.models import Metric, MetricKind, load_metrics

from ..services import MetricIngestor
from .deps import get_ingestor, read_payload, signed_json

router = APIRouter()


class ValueRequest(BaseModel):
    id: str = ""
    type: str = ""


def format_value(metric: Metric) -> str:
    """Plain-text rendering of a metric's current value."""
    if metric.delta is not None:
        return str(metric.delta)
    value = metric.value
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


# =========================================
# JSON protocol
# =========================================

@router.post("/update")
async def update_metric(
    request: Request,
    body: bytes = Depends(read_payload),
    ingestor: MetricIngestor = Depends(get_ingestor),
):
    """Apply a single JSON update and return the stored state."""
    try:
        metric = Metric.model_validate_json(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    try:
        stored = await ingestor.apply(metric)
    except MetricValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=500, detail="Storage error")

    return signed_json(request, stored.to_dict())


@router.post("/value")
async def read_metric(
    request: Request,
    body: bytes = Depends(read_payload),
    ingestor: MetricIngestor = Depends(get_ingestor),
):
    """Read a single metric by {id, type}."""
    try:
        query = ValueRequest.model_validate_json(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if not query.id or not query.type:
        raise HTTPException(status_code=400, detail="Missing ID or type")

    try:
        metric = await ingestor.read(query.id, Metric(id=query.id, type=query.type).kind)
    except MetricValidationError:
        raise HTTPException(status_code=400, detail="Unknown metric type")

    if metric is None:
        raise HTTPException(status_code=404, detail="Metric not found")

    return signed_json(request, metric.to_dict())


@router.post("/updates")
async def update_batch(
    request: Request,
    body: bytes = Depends(read_payload),
    ingestor: MetricIngestor = Depends(get_ingestor),
):
    """Apply a batch of JSON updates; any invalid element rejects the batch."""
    try:
        batch = load_metrics(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    try:
        applied = await ingestor.apply_batch(batch)
    except MetricValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BatchApplyError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Storage error during batch update: {e.failed} failed, {e.applied} applied",
        )

    return signed_json(request, [m.to_dict() for m in applied])


# =========================================
# Legacy plain-text protocol
# =========================================

@router.post("/update/{kind}/{name}/{value}", response_class=PlainTextResponse)
async def update_metric_plain(
    kind: str,
    name: str,
    value: str,
    ingestor: MetricIngestor = Depends(get_ingestor),
):
    """Legacy single update: POST /update/{kind}/{name}/{value}."""
    metric_kind = Metric(id=name, type=kind.lower()).kind

    try:
        if metric_kind == MetricKind.GAUGE:
            try:
                metric = Metric.gauge(name, float(value))
            except ValueError:
                return PlainTextResponse("Only Float type for Gauge allowed!", status_code=400)
        elif metric_kind == MetricKind.COUNTER:
            try:
                metric = Metric.counter(name, int(value))
            except ValueError:
                return PlainTextResponse("Only Int type for Counter allowed!", status_code=400)
        else:
            return PlainTextResponse("Unknown metric type", status_code=400)

        await ingestor.apply(metric)
    except MetricValidationError as e:
        return PlainTextResponse(str(e), status_code=400)
    except StorageError:
        return PlainTextResponse("Failed to update metric", status_code=500)

    return PlainTextResponse("OK")


@router.get("/value/{kind}/{name}", response_class=PlainTextResponse)
async def read_metric_plain(
    kind: str,
    name: str,
    ingestor: MetricIngestor = Depends(get_ingestor),
):
    """Legacy single read: GET /value/{kind}/{name}."""
    metric_kind = Metric(id=name, type=kind.lower()).kind
    if metric_kind is None:
        return PlainTextResponse("Unknown metric type", status_code=404)

    metric = await ingestor.read(name, metric_kind)
    if metric is None:
        return PlainTextResponse("Unknown metric name", status_code=404)

    return PlainTextResponse(format_value(metric))
