"""Record normalizer — success flag and local time-bucket keys."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple, Union

from ..schema import INVALID_TIMESTAMP, DeliveryRecord, RequestRecord, TimestampValue

AnyRecord = Union[RequestRecord, DeliveryRecord]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class NormalizedRecord:
    """Canonical fields derived from one raw record.

    ``instant`` is the UTC timestamp; ``hour_key`` / ``day_key`` are
    computed from local wall-clock time.  All three are ``None`` when
    the timestamp could not be parsed.
    """

    is_success: bool
    hour_key: Optional[str]
    day_key: Optional[str]
    instant: Optional[datetime]
    local: Optional[datetime]

    @property
    def epoch_ms(self) -> Optional[int]:
        if self.instant is None:
            return None
        return (self.instant - _EPOCH) // timedelta(milliseconds=1)


def is_success_code(code: Optional[int]) -> bool:
    """``True`` iff *code* is a 2xx status."""
    return code is not None and 200 <= code < 300


def parse_timestamp(value: TimestampValue) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch-milliseconds number to aware UTC.

    Naive timestamps are taken as UTC.  Returns ``None`` when *value*
    is missing or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _EPOCH + timedelta(milliseconds=value)
        except (OverflowError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_local(instant: datetime, utc_offset_minutes: Optional[int] = None) -> datetime:
    """Convert *instant* to local wall-clock time.

    Uses the host time zone unless a fixed offset is given.
    """
    if utc_offset_minutes is None:
        return instant.astimezone()
    return instant.astimezone(timezone(timedelta(minutes=utc_offset_minutes)))


def format_hour_key(local: datetime) -> str:
    """Half-open hour label, e.g. ``"14:00 - 15:00"``."""
    return f"{local.hour}:00 - {local.hour + 1}:00"


def format_day_key(local: datetime) -> str:
    """ISO calendar date ``YYYY-MM-DD``."""
    return local.date().isoformat()


def hour_from_key(hour_key: str) -> Optional[int]:
    """Start hour of an hour label, or ``None`` if it is not one."""
    head = hour_key.split(":", 1)[0].strip()
    return int(head) if head.isdigit() else None


def normalize(
    record: AnyRecord,
    utc_offset_minutes: Optional[int] = None,
) -> NormalizedRecord:
    """Derive the success flag and time buckets for one record.

    Delivery records are bucketed on ``sent_at``.
    """
    raw = record.timestamp if isinstance(record, RequestRecord) else record.sent_at
    instant = parse_timestamp(raw)
    if instant is None:
        return NormalizedRecord(
            is_success=is_success_code(record.response_code),
            hour_key=None,
            day_key=None,
            instant=None,
            local=None,
        )
    local = to_local(instant, utc_offset_minutes)
    return NormalizedRecord(
        is_success=is_success_code(record.response_code),
        hour_key=format_hour_key(local),
        day_key=format_day_key(local),
        instant=instant,
        local=local,
    )


def normalize_batch(
    records: Sequence[AnyRecord],
    utc_offset_minutes: Optional[int] = None,
) -> List[NormalizedRecord]:
    """Normalize every record, preserving order."""
    return [normalize(r, utc_offset_minutes) for r in records]


def batch_window(normalized: Sequence[NormalizedRecord]) -> Tuple[int, str, str, int]:
    """Time window covered by a normalized batch.

    Returns:
        ``(timespan_ms, start_iso, end_iso, invalid_count)``.  Start and end
        fall back to ``"Invalid timestamp"`` when no timestamp parsed.
    """
    instants = [n.instant for n in normalized if n.instant is not None]
    invalid = len(normalized) - len(instants)
    if not instants:
        return 0, INVALID_TIMESTAMP, INVALID_TIMESTAMP, invalid
    start, end = min(instants), max(instants)
    timespan_ms = int(round((end - start).total_seconds() * 1000))
    return timespan_ms, _iso(start), _iso(end), invalid


def _iso(instant: datetime) -> str:
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")
