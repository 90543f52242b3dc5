"""Async services: the scoring engine, its computation registry and event bus."""

from .base import ActivityFeed, BaseService, TierProvider, WearableFeed
from .engine import ReadinessEngine
from .events import (
    ComputationFailed,
    EngineEvent,
    EventBus,
    IllnessEvaluated,
    LoadUpdated,
    ScoreComputed,
)
from .registry import ComputationRegistry, score_key
from .store import ReadinessStore

__all__ = [
    "ActivityFeed",
    "BaseService",
    "TierProvider",
    "WearableFeed",
    "ReadinessEngine",
    "ComputationFailed",
    "EngineEvent",
    "EventBus",
    "IllnessEvaluated",
    "LoadUpdated",
    "ScoreComputed",
    "ComputationRegistry",
    "score_key",
    "ReadinessStore",
]
