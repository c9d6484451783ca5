"""
Read-through cache manager for upstream market data.

The cache is an optimisation only: every store failure degrades to calling
the producer directly. Entries are JSON envelopes carrying their own
`stored_at_ms`/`ttl_millis` so validity is checked on read even when the
store does not honour expiry itself.
"""

import asyncio
import hashlib
import inspect
import json
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING, TypeVar, Union

from shared.config import DEFAULT_CACHE_TTL_MS
from shared.errors import CacheUnavailableError, DecodeFailureError, ValidationError
from shared.logging import get_logger

from .store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


T = TypeVar("T")

Producer = Callable[[], Union[T, Awaitable[T]]]

KEY_NAMESPACE = "market_gateway"


def _now_ms() -> int:
    return int(time.time() * 1000)


class CacheManager:
    """Get-or-compute-and-store over an injected `CacheStore`."""

    def __init__(
        self,
        store: CacheStore,
        *,
        default_ttl_millis: int = DEFAULT_CACHE_TTL_MS,
        metrics: Optional["MetricsCollector"] = None,
        dedupe_inflight: bool = True,
        clock: Callable[[], int] = _now_ms,
    ):
        self.store = store
        self.default_ttl_millis = default_ttl_millis
        self.metrics = metrics
        self.dedupe_inflight = dedupe_inflight
        self.clock = clock
        self.logger = get_logger("gateway.cache_manager")
        self._inflight: Dict[str, "asyncio.Task[Any]"] = {}

    def _make_key(self, key: str) -> str:
        return f"{KEY_NAMESPACE}:{hashlib.md5(key.encode()).hexdigest()}"

    async def get(self, key: str, compute: Producer, ttl_millis: Optional[int] = None) -> Any:
        """Return the cached value for `key`, computing and storing it on a miss."""
        if not key:
            raise ValidationError("Cache key must not be empty")
        ttl = self.default_ttl_millis if ttl_millis is None else ttl_millis
        store_key = self._make_key(key)

        found, value = await self._read(store_key, key)
        if found:
            self._count("cache_requests_total", result="hit")
            return value
        self._count("cache_requests_total", result="miss")

        if not self.dedupe_inflight:
            return await self._compute_and_store(store_key, key, compute, ttl)

        task = self._inflight.get(store_key)
        if task is not None:
            self._count("cache_inflight_joins_total")
            self.logger.debug("Joining in-flight computation", key=key)
            return await asyncio.shield(task)

        task = asyncio.ensure_future(self._compute_and_store(store_key, key, compute, ttl))
        self._inflight[store_key] = task
        task.add_done_callback(lambda done: self._release(store_key, done))
        return await asyncio.shield(task)

    def _release(self, store_key: str, task: "asyncio.Task[Any]") -> None:
        # Runs when the computation settles, even if every waiter was cancelled.
        if self._inflight.get(store_key) is task:
            del self._inflight[store_key]
        if not task.cancelled():
            task.exception()

    async def invalidate(self, key: str) -> bool:
        """Remove the entry for `key`. Absent keys are not an error.

        Returns False only when the store could not be reached.
        """
        if not key:
            raise ValidationError("Cache key must not be empty")
        try:
            removed = await self.store.delete(self._make_key(key))
        except Exception as exc:
            self._store_failure("invalidate", key, CacheUnavailableError(details={"error": str(exc)}))
            return False
        self.logger.info("Cache entry invalidated", key=key, removed=removed)
        return True

    async def _read(self, store_key: str, key: str):
        try:
            raw = await self.store.get(store_key)
        except Exception as exc:
            self._store_failure("read", key, CacheUnavailableError(details={"error": str(exc)}))
            return False, None

        if raw is None:
            return False, None

        try:
            entry = self._decode_entry(raw)
        except DecodeFailureError as exc:
            self._store_failure("read", key, exc)
            return False, None

        if not self._is_fresh(entry):
            self.logger.debug("Cache entry expired", key=key)
            return False, None
        return True, entry["value"]

    async def _compute_and_store(self, store_key: str, key: str, compute: Producer, ttl: int) -> Any:
        result = compute()
        if inspect.isawaitable(result):
            result = await result

        entry = {
            "key": key,
            "value": result,
            "stored_at_ms": self.clock(),
            "ttl_millis": ttl,
        }
        try:
            payload = json.dumps(entry)
        except (TypeError, ValueError) as exc:
            self._store_failure("write", key, DecodeFailureError("Value is not JSON serialisable", {"error": str(exc)}))
            return result

        try:
            await self.store.set(store_key, payload, ttl_millis=ttl if ttl > 0 else None)
        except Exception as exc:
            self._store_failure("write", key, CacheUnavailableError(details={"error": str(exc)}))
            return result

        self.logger.debug("Cached value", key=key, ttl_millis=ttl)
        return result

    def _decode_entry(self, raw: Any) -> Dict[str, Any]:
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            entry = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise DecodeFailureError("Stored cache value is not valid JSON", {"error": str(exc)})

        if not isinstance(entry, dict) or "value" not in entry:
            raise DecodeFailureError("Stored cache value has an unexpected shape")
        try:
            entry["stored_at_ms"] = int(entry["stored_at_ms"])
            entry["ttl_millis"] = int(entry["ttl_millis"])
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodeFailureError("Stored cache entry is missing timing metadata", {"error": str(exc)})
        return entry

    def _is_fresh(self, entry: Dict[str, Any]) -> bool:
        ttl = entry["ttl_millis"]
        if ttl <= 0:
            return True
        return self.clock() < entry["stored_at_ms"] + ttl

    def _store_failure(self, operation: str, key: str, exc: Union[CacheUnavailableError, DecodeFailureError]) -> None:
        reason = "decode" if isinstance(exc, DecodeFailureError) else "unavailable"
        self.logger.warning(
            "Cache store failure, falling back to direct computation",
            operation=operation,
            reason=reason,
            key=key,
            code=exc.code,
            error=exc.details.get("error", exc.message),
        )
        self._count("cache_errors_total", operation=operation, reason=reason)

    def _count(self, metric_name: str, **labels) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter(metric_name, **labels)
        except Exception as exc:  # pragma: no cover - metrics failures never break lookups
            self.logger.debug("Failed to record cache metric", metric=metric_name, error=str(exc))
