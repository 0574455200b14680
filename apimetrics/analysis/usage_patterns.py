"""Usage-pattern heuristics — bursts, pagination, scheduling, operation scope."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from ..schema import OperationCatalogEntry, PeakTime, RequestRecord, ScheduledPattern, key_label
from .enricher import CatalogIndex
from .grouping import clean_key
from .normalizer import NormalizedRecord

_PAGINATION_PARAMS = ("perPage=", "startingAfter=")
_SCOPED_SEGMENT = re.compile(r"device|network", re.IGNORECASE)
_MINUTES_PER_DAY = 1440


def truncate_agent(user_agent: str, length: int = 40) -> str:
    """Shorten *user_agent* to *length* characters plus ``"..."``."""
    if len(user_agent) > length:
        return user_agent[:length] + "..."
    return user_agent


def source_addresses_by_hour(
    records: Sequence[RequestRecord],
    normalized: Sequence[NormalizedRecord],
) -> Dict[str, List[str]]:
    """Distinct source addresses seen in each hour bucket, first-seen order."""
    by_hour: Dict[str, Dict[str, None]] = {}
    for record, norm in zip(records, normalized):
        if norm.hour_key is None:
            continue
        seen = by_hour.setdefault(norm.hour_key, {})
        seen.setdefault(key_label(clean_key(record.source_address)), None)
    return {hour: list(addresses) for hour, addresses in by_hour.items()}


def max_burst_rate(epoch_ms: Sequence[int], window_seconds: float = 1.0) -> float:
    """Highest request density in any ``[t, t + window)`` window.

    Windows start at each observed timestamp.

    Args:
        epoch_ms: Request timestamps in milliseconds, any order.
        window_seconds: Window width.

    Returns:
        Maximum requests per second.
    """
    if not epoch_ms:
        return 0.0
    times = sorted(epoch_ms)
    window_ms = window_seconds * 1000.0
    best = 0
    end = 0
    for start, t in enumerate(times):
        if end < start:
            end = start
        while end < len(times) and times[end] < t + window_ms:
            end += 1
        best = max(best, end - start)
    return best / window_seconds


def detect_pagination(
    records: Sequence[RequestRecord],
    normalized: Sequence[NormalizedRecord],
) -> bool:
    """Heuristic: regular request intervals plus pagination query params."""
    times = sorted(n.epoch_ms for n in normalized if n.epoch_ms is not None)
    intervals = [b - a for a, b in zip(times, times[1:])]
    consistent = len(set(intervals)) < len(intervals) / 2
    has_params = any(
        r.query_string and any(p in r.query_string for p in _PAGINATION_PARAMS)
        for r in records
    )
    return consistent and has_params


def operation_scope(operation_id: Optional[str]) -> str:
    """Resource scope implied by an operation id."""
    if not operation_id:
        return "unknown"
    for marker in ("Administered", "Organization", "Network", "Device"):
        if marker in operation_id:
            return marker.lower()
    return "unknown"


def find_organization_alternative(
    operation_id: str,
    catalog: CatalogIndex,
) -> Optional[OperationCatalogEntry]:
    """Catalog operation covering *operation_id* at organization scope."""
    base = _SCOPED_SEGMENT.sub("organization", operation_id, count=1).lower()
    if base == operation_id.lower():
        return None
    for entry in catalog:
        if entry.operation_id == operation_id:
            continue
        if base in entry.operation_id.lower() and "/organizations/" in entry.path:
            return entry
    return None


def identify_scheduled_patterns(
    records: Sequence[RequestRecord],
    normalized: Sequence[NormalizedRecord],
    traffic_threshold: int = 500,
) -> List[ScheduledPattern]:
    """Find agents whose traffic concentrates on specific minutes of the day.

    A minute bucket counts as a peak when its volume exceeds the traffic
    threshold spread over a day.  Agents without peaks are omitted.
    """
    per_minute_threshold = traffic_threshold / _MINUTES_PER_DAY
    patterns: Dict[str, Dict[str, List[int]]] = {}
    for record, norm in zip(records, normalized):
        if norm.local is None:
            continue
        agent = key_label(clean_key(record.user_agent))
        minute = f"{norm.local.hour:02d}:{norm.local.minute:02d}"
        counts = patterns.setdefault(agent, {}).setdefault(minute, [0, 0])
        counts[0 if norm.is_success else 1] += 1

    results: List[ScheduledPattern] = []
    for agent, minutes in patterns.items():
        peaks = [
            PeakTime(time=minute, success=s, failure=f)
            for minute, (s, f) in minutes.items()
            if s + f > per_minute_threshold
        ]
        if not peaks:
            continue
        results.append(ScheduledPattern(
            user_agent=agent,
            peak_times=peaks,
            potential_schedule=f"Every {_MINUTES_PER_DAY // len(peaks)} min",
            total_successes=sum(s for s, _ in minutes.values()),
        ))
    return results
