"""Metadata enricher — joins operations against the catalog and actors against the roster."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..schema import (
    ActorMetric,
    ActorRosterEntry,
    NamedMetric,
    OperationCatalogEntry,
    OperationMetric,
)
from ..telemetry import get_logger

_logger = get_logger(__name__)

RosterInput = Iterable[Union[ActorRosterEntry, Mapping[str, Any]]]
CatalogInput = Iterable[Union[OperationCatalogEntry, Mapping[str, Any]]]


class CatalogIndex:
    """Exact-id lookup over operation catalog entries.

    Duplicate ids keep the first entry, matching a linear ``find``.
    """

    def __init__(self, entries: CatalogInput = ()) -> None:
        self._by_id: Dict[str, OperationCatalogEntry] = {}
        for raw in entries:
            entry = (
                raw if isinstance(raw, OperationCatalogEntry)
                else OperationCatalogEntry.model_validate(raw)
            )
            self._by_id.setdefault(entry.operation_id, entry)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def get(self, operation_id: Optional[str]) -> Optional[OperationCatalogEntry]:
        if operation_id is None:
            return None
        return self._by_id.get(operation_id)


class RosterIndex:
    """Exact-id lookup over actor roster entries."""

    def __init__(self, entries: Optional[RosterInput] = None) -> None:
        self._by_id: Dict[str, ActorRosterEntry] = {}
        for raw in entries or ():
            entry = (
                raw if isinstance(raw, ActorRosterEntry)
                else ActorRosterEntry.model_validate(raw)
            )
            self._by_id.setdefault(entry.id, entry)

    def __len__(self) -> int:
        return len(self._by_id)

    def display_label(self, actor_id: Optional[str]) -> Optional[str]:
        """``"<name> (<email>)"`` or ``None`` when the id is not on the roster."""
        if actor_id is None:
            return None
        entry = self._by_id.get(actor_id)
        return entry.display_label if entry is not None else None


def enrich_operations(
    metrics: List[NamedMetric],
    catalog: CatalogIndex,
) -> List[OperationMetric]:
    """Attach catalog description, deprecation and tags to operation metrics.

    Order is preserved.  Operations missing from the catalog (and the
    unknown bucket) get empty defaults.
    """
    enriched: List[OperationMetric] = []
    misses = 0
    for metric in metrics:
        info = None if metric.is_unknown else catalog.get(metric.name)
        if info is None:
            misses += 1
        enriched.append(OperationMetric(
            name=metric.name,
            is_unknown=metric.is_unknown,
            success=metric.success,
            failure=metric.failure,
            description=info.description if info else "",
            deprecated=info.deprecated if info else False,
            beta=info.is_beta if info else False,
            tags=list(info.tags) if info else [],
        ))
    if misses and len(catalog):
        _logger.debug("%d operation(s) not found in catalog", misses)
    return enriched


def enrich_actors(
    metrics: List[NamedMetric],
    roster: RosterIndex,
) -> List[ActorMetric]:
    """Attach roster display labels to actor metrics, preserving order."""
    return [
        ActorMetric(
            name=metric.name,
            is_unknown=metric.is_unknown,
            success=metric.success,
            failure=metric.failure,
            display_label=None if metric.is_unknown else roster.display_label(metric.name),
        )
        for metric in metrics
    ]
