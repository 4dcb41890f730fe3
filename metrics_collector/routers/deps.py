"""
Metrics Collector - Request Dependencies

Shared FastAPI dependencies: app services and the verified request body.
"""

import gzip
import zlib
from typing import Any

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from metrics_common.integrity import HASH_HEADER, IntegrityGuard

from ..services import MetricIngestor
from ..storage import MetricStore

logger = structlog.get_logger(__name__)


def get_store(request: Request) -> MetricStore:
    return request.app.state.store


def get_ingestor(request: Request) -> MetricIngestor:
    return request.app.state.ingestor


def get_guard(request: Request) -> IntegrityGuard:
    return request.app.state.guard


async def read_payload(request: Request, guard: IntegrityGuard = Depends(get_guard)) -> bytes:
    """Return the request body after signature check and decompression.

    The signature covers the raw bytes as sent, so it is checked before
    the body is decompressed or parsed.
    """
    raw = await request.body()

    if guard.enabled:
        signature = request.headers.get(HASH_HEADER)
        if not signature:
            logger.warning("Missing payload signature", path=request.url.path)
            raise HTTPException(status_code=400, detail=f"Missing {HASH_HEADER} header")
        if not guard.verify(raw, signature):
            logger.warning("Payload signature mismatch", path=request.url.path)
            raise HTTPException(status_code=400, detail=f"Invalid {HASH_HEADER} signature")

    if "gzip" in request.headers.get("content-encoding", "").lower():
        try:
            return gzip.decompress(raw)
        except (OSError, EOFError, zlib.error):
            raise HTTPException(status_code=400, detail="Invalid gzip body")

    return raw


def signed_json(request: Request, content: Any, status_code: int = 200) -> JSONResponse:
    """JSON response carrying a signature of its body when a key is set."""
    response = JSONResponse(content=content, status_code=status_code)
    signature = get_guard(request).sign(response.body)
    if signature:
        response.headers[HASH_HEADER] = signature
    return response
