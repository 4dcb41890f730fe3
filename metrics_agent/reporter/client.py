"""
Metrics Agent - Collector Client

HTTP client for the collector's update endpoints.
"""

import gzip
import json
from typing import List, Optional
from urllib.parse import quote

import httpx
import structlog

from metrics_common.errors import CollectorResponseError
from metrics_common.integrity import HASH_HEADER, IntegrityGuard
from metrics_common.models import Metric, dump_metrics

logger = structlog.get_logger(__name__)


class CollectorClient:
    """Sends metric records to the collector.

    JSON payloads are gzip-compressed and, with a key configured, signed
    over the compressed bytes. Any non-200 answer raises
    CollectorResponseError so the caller's classifier can decide on retry.
    """

    def __init__(
        self,
        base_url: str,
        key: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._guard = IntegrityGuard(key)
        self._http_client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def send_batch(self, metrics: List[Metric]) -> None:
        """POST /updates with the whole batch."""
        await self._post_json("/updates", dump_metrics(metrics))

    async def send_metric(self, metric: Metric) -> None:
        """POST /update with a single record."""
        await self._post_json("/update", json.dumps(metric.to_dict()).encode())

    async def send_plain(self, metric: Metric) -> None:
        """Legacy POST /update/{kind}/{name}/{value}; no compression, no signature."""
        value = metric.delta if metric.delta is not None else repr(metric.value)
        path = f"/update/{quote(metric.type, safe='')}/{quote(metric.id, safe='')}/{value}"

        response = await self._http_client.post(path, headers={"Content-Type": "text/plain"})
        self._check(response)

    async def _post_json(self, path: str, payload: bytes) -> None:
        body = gzip.compress(payload)

        headers = {
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
            "Accept-Encoding": "gzip",
        }
        signature = self._guard.sign(body)
        if signature:
            headers[HASH_HEADER] = signature

        response = await self._http_client.post(path, content=body, headers=headers)
        self._check(response)

    def _check(self, response: httpx.Response) -> None:
        if response.status_code != 200:
            logger.debug(
                "Collector rejected request",
                path=response.request.url.path,
                status=response.status_code,
            )
            raise CollectorResponseError(response.status_code, response.text)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()
