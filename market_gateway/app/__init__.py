"""
Market Gateway service package.

The gateway sits between callers and a rate-limited market data API:
- Proxy forwarding: `?endpoint=` routing with server-side credential injection
- Caching: fail-open read-through cache with per-entry TTL
- Typed request clients reused by every domain client

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.adapters: Typed request client and domain service clients.
- app.caching: Cache manager and backing stores.
- app.proxy: Request forwarder.
- app.domain: Request descriptors and query state.
"""
