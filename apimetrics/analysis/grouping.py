"""Grouping & counting engine — the group-by-key primitive every dimension uses."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..schema import CountBucket, GroupKey, NamedMetric, format_success_rate, key_label
from .normalizer import NormalizedRecord

__all__ = [
    "KeyFn",
    "by_attribute",
    "by_day",
    "by_hour",
    "clean_key",
    "format_success_rate",
    "group_and_count",
    "partition",
    "sort_by_volume",
    "to_sorted_metrics",
]

KeyFn = Callable[[Any, NormalizedRecord], Optional[str]]

T = TypeVar("T")


def clean_key(value: Any) -> GroupKey:
    """Map missing or blank keys to the unknown key (``None``)."""
    if value is None:
        return None
    text = str(value)
    return text if text else None


def by_attribute(name: str) -> KeyFn:
    """Key extractor reading attribute *name* from the raw record."""
    def _key(record: Any, _norm: NormalizedRecord) -> Optional[str]:
        return getattr(record, name, None)
    return _key


def by_hour(_record: Any, norm: NormalizedRecord) -> Optional[str]:
    return norm.hour_key


def by_day(_record: Any, norm: NormalizedRecord) -> Optional[str]:
    return norm.day_key


def group_and_count(
    records: Sequence[Any],
    normalized: Sequence[NormalizedRecord],
    key_fn: KeyFn,
    *,
    drop_missing: bool = False,
) -> Dict[GroupKey, CountBucket]:
    """Count successes and failures per key.

    Args:
        records: Raw records.
        normalized: Normalizer output aligned with *records*.
        key_fn: Extracts the grouping key from a record.
        drop_missing: Skip records whose key is missing instead of
            counting them under the unknown key.  Used for time buckets,
            where a missing key means an unparseable timestamp.

    Returns:
        Mapping of key to :class:`CountBucket`, in first-seen key order.
    """
    if len(records) != len(normalized):
        raise ValueError("records and normalized must be the same length")

    tallies: Dict[GroupKey, List[int]] = {}
    for record, norm in zip(records, normalized):
        key = clean_key(key_fn(record, norm))
        if key is None and drop_missing:
            continue
        counts = tallies.setdefault(key, [0, 0])
        counts[0 if norm.is_success else 1] += 1

    return {
        key: CountBucket(success=s, failure=f)
        for key, (s, f) in tallies.items()
    }


def sort_by_volume(items: Iterable[T], volume: Callable[[T], int]) -> List[T]:
    """Stable descending sort by *volume*."""
    return sorted(items, key=volume, reverse=True)


def to_sorted_metrics(groups: Dict[GroupKey, CountBucket]) -> List[NamedMetric]:
    """Convert a grouping to :class:`NamedMetric` sorted by total volume."""
    metrics = [
        NamedMetric(
            name=key_label(key),
            is_unknown=key is None,
            success=bucket.success,
            failure=bucket.failure,
        )
        for key, bucket in groups.items()
    ]
    return sort_by_volume(metrics, lambda m: m.total)


def partition(
    records: Sequence[Any],
    normalized: Sequence[NormalizedRecord],
    key_fn: KeyFn,
) -> Dict[GroupKey, Tuple[List[Any], List[NormalizedRecord]]]:
    """Split a batch by key once, keeping records and normalizer output aligned."""
    parts: Dict[GroupKey, Tuple[List[Any], List[NormalizedRecord]]] = {}
    for record, norm in zip(records, normalized):
        key = clean_key(key_fn(record, norm))
        recs, norms = parts.setdefault(key, ([], []))
        recs.append(record)
        norms.append(norm)
    return parts
