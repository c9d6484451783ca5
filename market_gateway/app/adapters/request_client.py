"""
Typed request client shared by every market data service client.
"""

import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Type, TypeVar, TYPE_CHECKING, cast

import httpx

from shared.errors import DecodeFailureError, RequestFailedError, TransportFailureError, ValidationError
from shared.logging import get_logger

from ..domain.descriptor import (
    ROUTING_PARAM,
    RequestDescriptor,
    Scalar,
    normalize_endpoint_path,
    query_items,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..caching.cache_manager import CacheManager
    from shared.metrics import MetricsCollector


T = TypeVar("T")

API_KEY_HEADER = "x-api-key"


@dataclass(frozen=True)
class ServiceClientConfig:
    """Where a client sends requests and which credential it presents."""

    base_url: str
    api_key: Optional[str] = None
    origin: Optional[str] = None


class TypedRequestClient:
    """Builds routed URLs, attaches credentials and decodes JSON responses.

    Requests are addressed to `{origin}{base_url}?endpoint=<path>&...`, the
    shape the proxy forwarder expects. No retries happen here; callers own
    their retry policy.
    """

    def __init__(
        self,
        config: ServiceClientConfig,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional["CacheManager"] = None,
        metrics: Optional["MetricsCollector"] = None,
        timeout: Optional[float] = None,
    ):
        self.config = config
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("gateway.request_client")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _base(self) -> str:
        base_url = self.config.base_url
        if not self.config.origin or base_url.startswith(("http://", "https://")):
            return base_url
        return f"{self.config.origin.rstrip('/')}/{base_url.lstrip('/')}"

    def build_url(self, endpoint_path: str, query_params: Optional[Mapping[str, Scalar]] = None) -> str:
        if query_params and ROUTING_PARAM in query_params:
            raise ValidationError(
                f"'{ROUTING_PARAM}' is reserved for routing and cannot be a query parameter",
                {"parameter": ROUTING_PARAM},
            )
        params = [(ROUTING_PARAM, normalize_endpoint_path(endpoint_path))]
        params.extend(query_items(query_params))
        return str(httpx.URL(self._base(), params=params))

    async def request(
        self,
        endpoint_path: str,
        *,
        method: str = "GET",
        query_params: Optional[Mapping[str, Scalar]] = None,
        body: Optional[Any] = None,
        response_type: Optional[Type[T]] = None,
    ) -> T:
        url = self.build_url(endpoint_path, query_params)
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers[API_KEY_HEADER] = self.config.api_key

        start = time.perf_counter()
        try:
            response = await self._http.request(
                method.upper(),
                url,
                headers=headers,
                json=body,
            )
        except httpx.RequestError as exc:
            self.logger.error(
                "Market data request transport failure",
                endpoint=normalize_endpoint_path(endpoint_path),
                method=method,
                error=str(exc),
            )
            self._record("transport_error", start)
            raise TransportFailureError(details={"error": str(exc)}) from exc

        if not response.is_success:
            self.logger.warning(
                "Market data request failed",
                endpoint=normalize_endpoint_path(endpoint_path),
                method=method,
                status_code=response.status_code,
            )
            self._record("http_error", start)
            raise RequestFailedError(response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            self._record("decode_error", start)
            raise DecodeFailureError("Response body is not valid JSON", {"error": str(exc)}) from exc

        self._record("success", start)
        return self._decode(payload, response_type)

    async def fetch(self, descriptor: RequestDescriptor, ttl_millis: Optional[int] = None) -> Any:
        """Run a descriptor, through the cache when one is configured."""

        async def _produce() -> Any:
            return await self.request(
                descriptor.endpoint_path,
                method=descriptor.method,
                query_params=descriptor.query_params,
                body=descriptor.body,
            )

        if self.cache is None:
            return await _produce()
        return await self.cache.get(descriptor.cache_key(), _produce, ttl_millis)

    def _decode(self, payload: Any, response_type: Optional[Type[T]]) -> T:
        # Unchecked: the caller's annotation is trusted. Schema validation
        # belongs here if it is ever added.
        return cast(T, payload)

    def _record(self, outcome: str, start: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("upstream_requests_total", component="client", outcome=outcome)
        self.metrics.observe_histogram(
            "upstream_request_duration_seconds",
            time.perf_counter() - start,
            component="client",
        )

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()
