"""
Market Gateway service.

Fronts the upstream market data API: callers hit `/api/proxy`, the gateway
injects the server-held credential, and successful reads are cached.
"""

import json
from typing import Any, Dict, Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ValidationError

from market_gateway.app.caching import CacheManager, CacheStore, RedisCacheStore
from market_gateway.app.proxy import ProxyForwarder


SERVICE_NAME = "gateway"
SERVICE_PORT = 8000


class GatewayService(BaseService):
    """Gateway service implementation.

    The cache store and HTTP client are built here, at the process entry
    point, and injected into the components that use them.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        cache_store: Optional[CacheStore] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config)

        self._owns_http = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=self.config.upstream_timeout_seconds)

        if cache_store is None and self.config.caching_active:
            cache_store = RedisCacheStore(self.config.cache_redis_url, self.config.cache_redis_token)
        self.cache_store = cache_store

        self.cache_manager: Optional[CacheManager] = None
        if self.cache_store is not None and self.config.cache_enabled:
            self.cache_manager = CacheManager(
                self.cache_store,
                default_ttl_millis=self.config.default_cache_ttl_ms,
                metrics=self.metrics,
                dedupe_inflight=self.config.cache_dedupe_inflight,
            )

        self.forwarder = ProxyForwarder(
            self.config.upstream_base_url,
            self.config.upstream_api_key,
            http_client=self.http_client,
            cache=self.cache_manager,
            metrics=self.metrics,
        )

        @self.app.on_event("startup")
        async def _startup():
            if not self.config.upstream_api_key:
                self.logger.warning("Upstream credential is not configured; proxy calls will fail")
            self.logger.info(
                "Gateway started",
                caching=self.cache_manager is not None,
                default_cache_ttl_ms=self.config.default_cache_ttl_ms,
            )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.close()

        self._setup_gateway_routes()
        self.app.state.gateway_service = self

    def _setup_gateway_routes(self):
        """Set up gateway routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": self.service_name,
                "version": "1.0.0",
                "caching": self.cache_manager is not None,
            }

        @self.app.api_route("/api/proxy", methods=["GET", "POST", "PUT", "DELETE"])
        async def proxy(request: Request):
            """Forward `?endpoint=<path>&...` to the upstream API."""
            body = None
            if request.method != "GET":
                body = await self._read_json_body(request)

            result = await self.forwarder.forward(
                request.method,
                request.query_params.multi_items(),
                body,
            )
            return JSONResponse(
                status_code=result.status_code,
                content=result.payload,
                headers=result.headers,
            )

    async def _read_json_body(self, request: Request) -> Optional[Any]:
        raw = await request.body()
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            raise ValidationError("Request body must be valid JSON")

    async def _check_dependencies(self) -> Dict[str, str]:
        if self.cache_manager is None:
            return {"cache": "disabled"}
        ping = getattr(self.cache_store, "ping", None)
        if ping is None:
            return {"cache": "ok"}
        try:
            return {"cache": "ok" if await ping() else "error"}
        except Exception as exc:
            self.logger.warning("Cache store health check failed", error=str(exc))
            return {"cache": "error"}

    async def close(self) -> None:
        """Release the HTTP client and cache store connection."""
        if self._owns_http:
            await self.http_client.aclose()
        if self.cache_store is not None:
            await self.cache_store.close()


def create_app(config: Optional[ServiceConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = GatewayService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = GatewayService(get_config(SERVICE_NAME, SERVICE_PORT))
    service.run()
