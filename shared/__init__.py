"""
Shared utilities for the Market Gateway.

This package aggregates the building blocks every service module uses:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and trace correlation
- metrics: Prometheus metrics helpers
- errors: Gateway error types and the public error envelope
- base_service: FastAPI service skeleton (middleware, health, metrics)

Do not import from market_gateway into shared/.
"""
