"""
Result events and the event bus.

Calculators never touch presentation state. Each finished computation is
published as a tagged event onto every subscriber's queue.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from ..exceptions import ReadinessEngineError
from ..models.scores import DailyLoad, DailyScore, IllnessIndicator


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreComputed:
    score: DailyScore
    kind: str = field(default="score_computed", init=False)


@dataclass(frozen=True)
class LoadUpdated:
    load: DailyLoad
    kind: str = field(default="load_updated", init=False)


@dataclass(frozen=True)
class IllnessEvaluated:
    date: date
    indicator: Optional[IllnessIndicator]
    kind: str = field(default="illness_evaluated", init=False)


@dataclass(frozen=True)
class ComputationFailed:
    date: date
    computation: str
    error: Dict[str, Any]
    occurred_at: datetime = field(default_factory=datetime.now)
    kind: str = field(default="computation_failed", init=False)

    @classmethod
    def from_error(cls, day: date, computation: str, error: Exception) -> "ComputationFailed":
        if isinstance(error, ReadinessEngineError):
            payload = error.to_dict()
        else:
            payload = {"error": {"code": "INTERNAL_ERROR", "message": str(error)}}
        return cls(date=day, computation=computation, error=payload)


EngineEvent = Union[ScoreComputed, LoadUpdated, IllnessEvaluated, ComputationFailed]


class EventBus:
    """Fan-out of engine events to per-subscriber asyncio queues."""

    def __init__(self, maxsize: int = 0) -> None:
        self._maxsize = maxsize
        self._subscribers: List[asyncio.Queue] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: EngineEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full, dropping {event.kind} event")
