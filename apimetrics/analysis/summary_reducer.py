"""Top-N summary reducer — folds agent profiles into cross-agent leaderboards."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from ..schema import AgentProfile, CountBucket, NamedMetric, OverallStats, Summary, SummaryEntry
from .grouping import sort_by_volume

# Leaderboard rows are keyed by (display name, is_unknown).
_Key = Tuple[str, bool]
_Table = Dict[_Key, List[int]]


class SummaryReducer:
    """Re-sum nested profile metrics and keep the top entries.

    Args:
        limit: Length of every leaderboard.  Defaults to ``5``.
    """

    def __init__(self, limit: int = 5) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._limit = limit

    def reduce(self, profiles: Sequence[AgentProfile]) -> Summary:
        """Aggregate *profiles* into a :class:`Summary`.

        Leaderboards are ordered by success count; the failure board only
        keeps entries with at least one failure, ordered by failure count.
        """
        operations: _Table = {}
        hours: _Table = {}
        days: _Table = {}
        actors: _Table = {}
        addresses: _Table = {}
        total_success = 0
        total_failure = 0

        for profile in profiles:
            _accumulate(operations, ((_key(m), m) for m in profile.operations))
            _accumulate(hours, ((_key(m), m) for m in profile.hourly_activity))
            _accumulate(days, ((_key(m), m) for m in profile.daily_activity))
            _accumulate(actors, (((a.details, False), a) for a in profile.actors))
            _accumulate(addresses, ((_key(m), m) for m in profile.source_addresses))
            total_success += profile.success
            total_failure += profile.failure

        return Summary(
            top_success_operations=self._top(operations),
            top_failure_operations=self._top_failures(operations),
            busiest_hours=self._top(hours),
            busiest_days=self._top(days),
            most_active_actors=self._top(actors),
            most_active_addresses=self._top(addresses),
            overall_stats=OverallStats(
                total_success=total_success,
                total_failure=total_failure,
            ),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _top(self, table: _Table) -> List[SummaryEntry]:
        entries = _entries(table)
        return sort_by_volume(entries, lambda e: e.success)[: self._limit]

    def _top_failures(self, table: _Table) -> List[SummaryEntry]:
        entries = [e for e in _entries(table) if e.failure > 0]
        return sort_by_volume(entries, lambda e: e.failure)[: self._limit]


def _accumulate(
    table: _Table,
    items: Iterable[Tuple[_Key, CountBucket]],
) -> None:
    for key, bucket in items:
        counts = table.setdefault(key, [0, 0])
        counts[0] += bucket.success
        counts[1] += bucket.failure


def _key(metric: NamedMetric) -> _Key:
    return metric.name, metric.is_unknown


def _entries(table: _Table) -> List[SummaryEntry]:
    return [
        SummaryEntry(name=name, is_unknown=is_unknown, success=s, failure=f)
        for (name, is_unknown), (s, f) in table.items()
    ]


def reduce_profiles(profiles: Sequence[AgentProfile], limit: int = 5) -> Summary:
    """Functional wrapper around :class:`SummaryReducer`."""
    return SummaryReducer(limit).reduce(profiles)
