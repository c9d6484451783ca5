"""
Query state driver for UI-facing consumers.

`ApiQuery` mirrors the data-fetch hook a front end binds to: it owns one
`ApiState`, re-runs its producer when the dependency values change, and
publishes every state transition to subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from shared.logging import get_logger


T = TypeVar("T")

_UNSET: Any = object()


@dataclass(frozen=True)
class ApiState(Generic[T]):
    data: Optional[T] = None
    loading: bool = False
    error: Optional[str] = None


class ApiQuery(Generic[T]):
    """Drives a single logical query and its `ApiState`."""

    def __init__(self, producer: Callable[[], Awaitable[T]], deps: Sequence[Any] = ()):
        self._producer = producer
        self._deps: Any = _UNSET
        self._initial_deps = tuple(deps)
        self._generation = 0
        self._listeners: List[Callable[[ApiState[T]], None]] = []
        self.state: ApiState[T] = ApiState()
        self.logger = get_logger("gateway.api_state")

    def subscribe(self, listener: Callable[[ApiState[T]], None]) -> Callable[[], None]:
        """Register a transition listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def run(self, deps: Optional[Sequence[Any]] = None) -> ApiState[T]:
        """Invoke the producer if this is the first run or `deps` changed by value."""
        next_deps: Tuple[Any, ...] = self._initial_deps if deps is None else tuple(deps)
        if self._deps is not _UNSET and next_deps == self._deps:
            return self.state
        self._deps = next_deps
        return await self._execute()

    async def refresh(self) -> ApiState[T]:
        """Re-invoke the producer regardless of dependencies."""
        if self._deps is _UNSET:
            self._deps = self._initial_deps
        return await self._execute()

    async def _execute(self) -> ApiState[T]:
        self._generation += 1
        generation = self._generation
        self._transition(loading=True)

        try:
            value = await self._producer()
        except Exception as exc:
            if generation != self._generation:
                return self.state
            message = str(exc) or exc.__class__.__name__
            self.logger.warning("Query failed", error=message)
            self._transition(loading=False, error=message)
            return self.state

        if generation != self._generation:
            # A newer run owns the state now.
            return self.state
        self._transition(loading=False, data=value, error=None)
        return self.state

    def _transition(self, **changes: Any) -> None:
        self.state = replace(self.state, **changes)
        for listener in list(self._listeners):
            listener(self.state)
