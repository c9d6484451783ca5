"""
Request descriptors identifying a single upstream market data call.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from shared.errors import ValidationError


ROUTING_PARAM = "endpoint"

Scalar = Union[str, int, float, bool, None]


def normalize_endpoint_path(endpoint_path: str) -> str:
    """Strip leading separators so `/token/mcap` and `token/mcap` route alike."""
    return endpoint_path.lstrip("/")


def format_query_value(value: Any) -> str:
    """Canonical string form of a scalar query value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def query_items(query_params: Optional[Mapping[str, Scalar]]) -> List[Tuple[str, str]]:
    """Stringified query pairs in insertion order, dropping None values."""
    if not query_params:
        return []
    return [
        (name, format_query_value(value))
        for name, value in query_params.items()
        if value is not None
    ]


def build_cache_key(
    method: str,
    endpoint_path: str,
    items: Sequence[Tuple[str, str]],
    body: Optional[Any] = None,
) -> str:
    """Stable key shared by equivalent requests.

    Parameters are sorted so that their order does not change the key.
    """
    params = "&".join(f"{name}={value}" for name, value in sorted(items))
    key = f"{method.upper()}:{normalize_endpoint_path(endpoint_path)}?{params}"
    if body is not None:
        encoded = json.dumps(body, sort_keys=True, default=str).encode()
        key = f"{key}#{hashlib.sha256(encoded).hexdigest()[:16]}"
    return key


@dataclass(frozen=True)
class RequestDescriptor:
    """Identifies an upstream call: path, query parameters, method and body."""

    endpoint_path: str
    query_params: Mapping[str, Scalar] = field(default_factory=dict)
    method: str = "GET"
    body: Optional[Any] = None

    def __post_init__(self) -> None:
        if not normalize_endpoint_path(self.endpoint_path or ""):
            raise ValidationError("Endpoint path must not be empty")
        if ROUTING_PARAM in self.query_params:
            raise ValidationError(
                f"'{ROUTING_PARAM}' is reserved for routing and cannot be a query parameter",
                details={"endpoint_path": self.endpoint_path},
            )
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "query_params", dict(self.query_params))

    @property
    def normalized_path(self) -> str:
        return normalize_endpoint_path(self.endpoint_path)

    def query_items(self) -> List[Tuple[str, str]]:
        return query_items(self.query_params)

    def cache_key(self) -> str:
        # None values are ignored just like on the wire.
        return build_cache_key(self.method, self.endpoint_path, self.query_items(), self.body)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "endpoint_path": self.normalized_path,
            "method": self.method,
            "query_params": dict(self.query_params),
        }
        if self.body is not None:
            payload["body"] = self.body
        return payload
