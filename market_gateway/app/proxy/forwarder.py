"""
Proxy forwarder for the upstream market data API.

Callers name the upstream resource with the reserved `endpoint` query
parameter; every other parameter is passed through. The credential is held
here and attached server-side, and neither it nor the upstream base URL ever
appears in a response body.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, TYPE_CHECKING

import httpx

from shared.errors import (
    ConfigurationError,
    DecodeFailureError,
    GatewayException,
    MissingEndpointError,
    RequestFailedError,
    TransportFailureError,
    ValidationError,
)
from shared.logging import get_logger

from ..adapters.request_client import API_KEY_HEADER
from ..domain.descriptor import ROUTING_PARAM, build_cache_key, normalize_endpoint_path

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..caching.cache_manager import CacheManager
    from shared.metrics import MetricsCollector


CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
GENERIC_ERROR = "Internal server error"


@dataclass(frozen=True)
class ForwardResult:
    """Outcome of one forwarded request, ready to be rendered as JSON."""

    status_code: int
    payload: Any
    headers: Dict[str, str] = field(default_factory=dict)


class ProxyForwarder:
    """Validates, resolves, dispatches and relays one proxied call."""

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional["CacheManager"] = None,
        metrics: Optional["MetricsCollector"] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("gateway.proxy")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def resolve(self, endpoint: str, query: Iterable[Tuple[str, str]]) -> httpx.URL:
        """Upstream URL for `endpoint` with every non-routing parameter copied in order."""
        target = f"{(self.base_url or '').rstrip('/')}/{normalize_endpoint_path(endpoint)}"
        params = [(name, value) for name, value in query if name != ROUTING_PARAM]
        return httpx.URL(target, params=params)

    async def forward(
        self,
        method: str,
        query: Iterable[Tuple[str, str]],
        body: Optional[Any] = None,
    ) -> ForwardResult:
        """Forward one request; always yields exactly one terminal result."""
        try:
            payload = await self._forward(method.upper(), list(query), body)
        except (MissingEndpointError, ValidationError) as exc:
            self.logger.info("Proxy request rejected", reason=exc.code)
            return self._error(exc.status_code, exc.message)
        except RequestFailedError as exc:
            return self._error(exc.status_code, exc.message)
        except GatewayException as exc:
            self.logger.error(
                "Proxy request failed",
                code=exc.code,
                error=exc.details.get("error", exc.message),
            )
            return self._error(500, GENERIC_ERROR)
        except Exception as exc:
            self.logger.error("Unexpected proxy failure", error=str(exc), exc_info=exc)
            return self._error(500, GENERIC_ERROR)
        return ForwardResult(200, payload, dict(CORS_HEADERS))

    async def _forward(self, method: str, query: List[Tuple[str, str]], body: Optional[Any]) -> Any:
        endpoint = next((value for name, value in query if name == ROUTING_PARAM), None)
        if not endpoint or not normalize_endpoint_path(endpoint):
            raise MissingEndpointError()
        if not self.base_url or not self.api_key:
            raise ConfigurationError(details={"error": "upstream base URL or credential not configured"})

        try:
            url = self.resolve(endpoint, query)
        except httpx.InvalidURL as exc:
            raise ValidationError("Invalid endpoint", {"error": str(exc)}) from exc
        if method != "GET" or self.cache is None:
            return await self._dispatch(method, url, body)

        params = [(name, value) for name, value in query if name != ROUTING_PARAM]
        cache_key = build_cache_key(method, endpoint, params)
        return await self.cache.get(cache_key, lambda: self._dispatch(method, url, body))

    async def _dispatch(self, method: str, url: httpx.URL, body: Optional[Any]) -> Any:
        headers = {"Content-Type": "application/json", API_KEY_HEADER: self.api_key}
        start = time.perf_counter()
        try:
            response = await self._http.request(method, url, headers=headers, json=body)
        except httpx.RequestError as exc:
            self.logger.error(
                "Upstream transport failure",
                upstream_url=str(url),
                method=method,
                error=str(exc),
                exc_info=exc,
            )
            self._record("transport_error", start)
            raise TransportFailureError(details={"error": str(exc)}) from exc

        if not response.is_success:
            self.logger.error(
                "Upstream request failed",
                upstream_url=str(url),
                method=method,
                status_code=response.status_code,
                response=response.text[:500],
            )
            self._record("http_error", start)
            raise RequestFailedError(
                response.status_code,
                f"Upstream request failed with status {response.status_code}",
            )

        if not response.content:
            self._record("success", start)
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            self.logger.error(
                "Upstream returned undecodable body",
                upstream_url=str(url),
                status_code=response.status_code,
                error=str(exc),
            )
            self._record("decode_error", start)
            raise DecodeFailureError("Upstream body is not valid JSON", {"error": str(exc)}) from exc

        self._record("success", start)
        self.logger.debug("Upstream request succeeded", upstream_url=str(url), status_code=response.status_code)
        return payload

    def _error(self, status_code: int, message: str) -> ForwardResult:
        return ForwardResult(status_code, {"error": message}, dict(CORS_HEADERS))

    def _record(self, outcome: str, start: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("upstream_requests_total", component="proxy", outcome=outcome)
        self.metrics.observe_histogram(
            "upstream_request_duration_seconds",
            time.perf_counter() - start,
            component="proxy",
        )

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()
