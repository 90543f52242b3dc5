"""
Activity deduplication across platforms.

The same ride is often uploaded to several platforms. Matching criteria:
- Different source platforms
- Start times within 90 minutes
- Durations within 10% of their mean
- Distances within 10% of their mean (only when both have a distance)

Matches are grouped transitively and exactly one canonical record survives
per group: the most complete one (power/HR/load fields), then by platform
priority, then by id. The reducer is pure and order-independent.
"""

import logging
from typing import Dict, Iterable, List

from .models.enums import SourcePlatform
from .models.records import Activity


logger = logging.getLogger(__name__)


PLATFORM_PRIORITY: Dict[SourcePlatform, int] = {
    SourcePlatform.INTERVALS: 0,
    SourcePlatform.STRAVA: 1,
    SourcePlatform.WEARABLE: 2,
    SourcePlatform.OTHER: 3,
}


def _within_pct(a: float, b: float, tolerance_pct: float) -> bool:
    mean = (a + b) / 2
    if mean <= 0:
        return True
    return abs(a - b) / mean <= tolerance_pct


def match_activities(
    a: Activity,
    b: Activity,
    start_tolerance_seconds: float = 5400,
    duration_tolerance_pct: float = 0.10,
    distance_tolerance_pct: float = 0.10,
) -> bool:
    """Check if two activities from different platforms describe the same session."""
    if a.source_platform == b.source_platform:
        return False

    if abs((a.start - b.start).total_seconds()) >= start_tolerance_seconds:
        return False

    if not _within_pct(a.duration_seconds, b.duration_seconds, duration_tolerance_pct):
        return False

    if a.distance and b.distance:
        if not _within_pct(a.distance, b.distance, distance_tolerance_pct):
            return False

    return True


def canonical_sort_key(activity: Activity):
    """Lower sorts first: most complete, then platform priority, then id."""
    return (
        -activity.completeness(),
        PLATFORM_PRIORITY.get(activity.source_platform, len(PLATFORM_PRIORITY)),
        activity.id,
    )


def select_canonical(duplicates: List[Activity]) -> Activity:
    return min(duplicates, key=canonical_sort_key)


def group_duplicates(activities: List[Activity], **tolerances) -> List[List[Activity]]:
    """Transitive groups of matching activities (union-find over all pairs)."""
    parent = list(range(len(activities)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(len(activities)):
        for j in range(i + 1, len(activities)):
            if match_activities(activities[i], activities[j], **tolerances):
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    parent[max(root_i, root_j)] = min(root_i, root_j)

    groups: Dict[int, List[Activity]] = {}
    for i, activity in enumerate(activities):
        groups.setdefault(find(i), []).append(activity)
    return list(groups.values())


def deduplicate_activities(
    activities: Iterable[Activity],
    start_tolerance_seconds: float = 5400,
    duration_tolerance_pct: float = 0.10,
    distance_tolerance_pct: float = 0.10,
) -> List[Activity]:
    """
    Collapse cross-platform duplicates to one canonical record each.

    Returns:
        Canonical activities sorted by start time (then id)
    """
    # Stable input order so the grouping never depends on caller ordering
    ordered = sorted(activities, key=lambda a: (a.start, a.id, a.source_platform.value))
    groups = group_duplicates(
        ordered,
        start_tolerance_seconds=start_tolerance_seconds,
        duration_tolerance_pct=duration_tolerance_pct,
        distance_tolerance_pct=distance_tolerance_pct,
    )

    result = []
    for group in groups:
        canonical = select_canonical(group)
        if len(group) > 1:
            dropped = [a.id for a in group if a is not canonical]
            logger.debug(f"Kept {canonical.id} ({canonical.source_platform.value}), dropped duplicates {dropped}")
        result.append(canonical)

    return sorted(result, key=lambda a: (a.start, a.id))
