"""
Computation registry: at most one in-flight computation per key.

Each (date, score type) key moves NOT_STARTED -> IN_FLIGHT -> COMPUTED.
Callers that arrive while a computation is IN_FLIGHT await the same future
instead of starting another one. A failed or empty computation resets the
key to NOT_STARTED and nothing is cached.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from ..models.enums import ComputationState


logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    state: ComputationState
    future: "asyncio.Future[Any]"
    result: Any = None


class ComputationRegistry:
    """Keyed computation states with shared futures."""

    def __init__(self) -> None:
        self._entries: Dict[Hashable, _Entry] = {}

    def state(self, key: Hashable) -> ComputationState:
        entry = self._entries.get(key)
        return entry.state if entry else ComputationState.NOT_STARTED

    def result(self, key: Hashable) -> Optional[Any]:
        """Cached result for a COMPUTED key, else None."""
        entry = self._entries.get(key)
        if entry is not None and entry.state == ComputationState.COMPUTED:
            return entry.result
        return None

    def future(self, key: Hashable) -> Optional["asyncio.Future[Any]"]:
        entry = self._entries.get(key)
        return entry.future if entry else None

    def invalidate(self, key: Hashable) -> bool:
        """Drop a COMPUTED result so the next request recomputes. In-flight work is left alone."""
        entry = self._entries.get(key)
        if entry is not None and entry.state == ComputationState.COMPUTED:
            del self._entries[key]
            return True
        return False

    def computed_keys(self) -> Tuple[Hashable, ...]:
        return tuple(k for k, e in self._entries.items() if e.state == ComputationState.COMPUTED)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the result for `key`, computing it at most once at a time.

        A None result is handed to every joined caller but not cached.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if entry.state == ComputationState.COMPUTED:
                return entry.result
            # Shield so a cancelled joiner does not cancel the shared work
            return await asyncio.shield(entry.future)

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._entries[key] = _Entry(state=ComputationState.IN_FLIGHT, future=future)

        try:
            result = await factory()
        except asyncio.CancelledError:
            self._entries.pop(key, None)
            future.cancel()
            raise
        except Exception as e:
            self._entries.pop(key, None)
            future.set_exception(e)
            # Joiners re-raise it; mark retrieved for the no-joiner case
            future.exception()
            logger.debug(f"Computation {key} failed, reset to not started: {e!r}")
            raise

        if result is None:
            self._entries.pop(key, None)
        else:
            self._entries[key] = _Entry(state=ComputationState.COMPUTED, future=future, result=result)
        future.set_result(result)
        return result


def score_key(day: date, score_type: Any) -> Tuple[date, Any]:
    return (day, score_type)
