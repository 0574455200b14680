"""Per-agent profile builder — every dimension re-run on one agent's own traffic."""

from __future__ import annotations

from typing import Any, List, Sequence

from ..schema import AgentProfile, ProfileActor, RequestRecord, key_label
from ..telemetry import get_logger
from .enricher import RosterIndex
from .grouping import (
    by_attribute,
    by_day,
    by_hour,
    group_and_count,
    partition,
    sort_by_volume,
    to_sorted_metrics,
)
from .normalizer import NormalizedRecord

_logger = get_logger(__name__)


class ProfileBuilder:
    """Build one :class:`AgentProfile` per distinct ``user_agent``.

    The batch is partitioned by agent once; each partition is then
    grouped by operation, source address, hour, day and actor.

    Args:
        roster: Actor roster used to label and filter profile actors.
    """

    def __init__(self, roster: RosterIndex) -> None:
        self._roster = roster

    def build(
        self,
        records: Sequence[RequestRecord],
        normalized: Sequence[NormalizedRecord],
    ) -> List[AgentProfile]:
        """Return profiles sorted descending by request volume.

        Args:
            records: Request records.
            normalized: Normalizer output aligned with *records*.
        """
        parts = partition(records, normalized, by_attribute("user_agent"))
        profiles = [
            self._build_one(key, recs, norms)
            for key, (recs, norms) in parts.items()
        ]
        _logger.debug("Built %d agent profile(s)", len(profiles))
        return sort_by_volume(profiles, lambda p: p.total)

    def _build_one(
        self,
        key: Any,
        records: List[RequestRecord],
        normalized: List[NormalizedRecord],
    ) -> AgentProfile:
        success = sum(1 for n in normalized if n.is_success)
        return AgentProfile(
            user_agent=key_label(key),
            is_unknown=key is None,
            operations=to_sorted_metrics(
                group_and_count(records, normalized, by_attribute("operation_id")),
            ),
            source_addresses=to_sorted_metrics(
                group_and_count(records, normalized, by_attribute("source_address")),
            ),
            actors=self._actors(records, normalized),
            hourly_activity=to_sorted_metrics(
                group_and_count(records, normalized, by_hour, drop_missing=True),
            ),
            daily_activity=to_sorted_metrics(
                group_and_count(records, normalized, by_day, drop_missing=True),
            ),
            success=success,
            failure=len(normalized) - success,
        )

    def _actors(
        self,
        records: List[RequestRecord],
        normalized: List[NormalizedRecord],
    ) -> List[ProfileActor]:
        """Roster-matched actors only; unmatched ids still count in agent totals."""
        groups = group_and_count(records, normalized, by_attribute("actor_id"))
        actors: List[ProfileActor] = []
        for actor_id, bucket in groups.items():
            label = self._roster.display_label(actor_id)
            if label is None:
                continue
            actors.append(ProfileActor(
                details=label,
                success=bucket.success,
                failure=bucket.failure,
            ))
        return sort_by_volume(actors, lambda a: a.total)


def build_profiles(
    records: Sequence[RequestRecord],
    normalized: Sequence[NormalizedRecord],
    roster: RosterIndex,
) -> List[AgentProfile]:
    """Functional wrapper around :class:`ProfileBuilder`."""
    return ProfileBuilder(roster).build(records, normalized)
