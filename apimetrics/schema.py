"""Pydantic v2 schemas for the metrics aggregation engine.

Every model uses ``model_config = ConfigDict(frozen=True)`` for immutability.
Input records accept the upstream camelCase wire names as aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

#: Grouping key: ``None`` is the unknown bucket, a string is a known id.
GroupKey = Optional[str]

UNKNOWN_LABEL = "unknown"
INVALID_TIMESTAMP = "Invalid timestamp"

TimestampValue = Union[str, int, float, None]


def format_success_rate(success: int, failure: int, empty: str = "N/A") -> str:
    """Format ``success / (success + failure)`` as ``"66.67%"``.

    Args:
        success: Numerator count.
        failure: Remaining count of the denominator.
        empty: Sentinel returned when the denominator is zero.
    """
    total = success + failure
    if total <= 0:
        return empty
    return f"{success / total * 100:.2f}%"


def rate_value(success: int, failure: int) -> Optional[float]:
    """Numeric success percentage rounded to 2 places, or ``None``."""
    total = success + failure
    if total <= 0:
        return None
    return round(success / total * 100, 2)


def key_label(key: GroupKey) -> str:
    """Display label for a grouping key."""
    return UNKNOWN_LABEL if key is None else key


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class AnomalyType(str, Enum):
    """Rule that produced an :class:`AnomalyFinding`."""
    HIGH_FAILURE_RATE = "HighFailureRate"
    DEPRECATED_OPERATION = "DeprecatedOperation"
    BETA_OPERATION = "BetaOperation"
    HIGH_TRAFFIC = "HighTraffic"
    HIGH_ACTIVITY = "HighActivity"
    BUSIEST_HOURS = "BusiestHours"
    OFF_PEAK_ACTIVITY = "OffPeakActivity"
    NO_ANOMALIES = "NoAnomalies"


class ReportFormat(str, Enum):
    """Supported output formats."""
    MARKDOWN = "markdown"
    JSON = "json"


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------

class RequestRecord(BaseModel):
    """One API access-log entry."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timestamp: TimestampValue = Field(default=None, alias="ts")
    actor_id: Optional[str] = Field(default=None, alias="adminId")
    source_address: Optional[str] = Field(default=None, alias="sourceIp")
    operation_id: Optional[str] = Field(default=None, alias="operationId")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    response_code: Optional[int] = Field(default=None, alias="responseCode")
    path: Optional[str] = None
    query_string: Optional[str] = Field(default=None, alias="queryString")

    @property
    def is_success(self) -> bool:
        code = self.response_code
        return code is not None and 200 <= code < 300


class DeliveryRecord(BaseModel):
    """One webhook-delivery log entry."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    sent_at: TimestampValue = Field(default=None, alias="sentAt")
    logged_at: TimestampValue = Field(default=None, alias="loggedAt")
    network_id: Optional[str] = Field(default=None, alias="networkId")
    alert_type: Optional[str] = Field(default=None, alias="alertType")
    url: Optional[str] = None
    response_code: Optional[int] = Field(default=None, alias="responseCode")
    response_duration: Optional[float] = Field(default=None, alias="responseDuration")

    @property
    def is_success(self) -> bool:
        code = self.response_code
        return code is not None and 200 <= code < 300


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

class OperationCatalogEntry(BaseModel):
    """Operation description taken from the OpenAPI catalog."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    operation_id: str = Field(alias="operationId")
    description: str = ""
    deprecated: bool = False
    tags: List[str] = Field(default_factory=list)
    path: str = ""
    method: str = ""

    @property
    def is_beta(self) -> bool:
        return "beta" in self.tags


class ActorRosterEntry(BaseModel):
    """Authenticated identity used for display-label joins."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    email: str = ""

    @property
    def display_label(self) -> str:
        return f"{self.name} ({self.email})"


# ---------------------------------------------------------------------------
# Metric entities
# ---------------------------------------------------------------------------

class CountBucket(BaseModel):
    """Success/failure tally with derived rate."""
    model_config = ConfigDict(frozen=True)

    empty_rate_label: ClassVar[str] = "N/A"

    success: int = Field(default=0, ge=0)
    failure: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return self.success + self.failure

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> str:
        return format_success_rate(self.success, self.failure, self.empty_rate_label)

    @property
    def success_rate_value(self) -> Optional[float]:
        return rate_value(self.success, self.failure)


class NamedMetric(CountBucket):
    """The universal shape returned by every grouping pass."""

    name: str
    is_unknown: bool = False


class OperationMetric(NamedMetric):
    """Operation metric joined against the catalog."""

    description: str = ""
    deprecated: bool = False
    beta: bool = False
    tags: List[str] = Field(default_factory=list)


class ActorMetric(NamedMetric):
    """Actor metric joined against the roster."""

    display_label: Optional[str] = None


class ProfileActor(CountBucket):
    """Roster-matched actor inside an :class:`AgentProfile`."""

    details: str


class AgentProfile(CountBucket):
    """Full breakdown of one client agent's own traffic."""

    user_agent: str
    is_unknown: bool = False
    operations: List[NamedMetric] = Field(default_factory=list)
    source_addresses: List[NamedMetric] = Field(default_factory=list)
    actors: List[ProfileActor] = Field(default_factory=list)
    hourly_activity: List[NamedMetric] = Field(default_factory=list)
    daily_activity: List[NamedMetric] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

class SummaryEntry(CountBucket):
    """Leaderboard row re-summed across agent profiles."""

    empty_rate_label: ClassVar[str] = "0.00%"

    name: str
    is_unknown: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failure_rate(self) -> str:
        return format_success_rate(self.failure, self.success, "0.00%")


class OverallStats(BaseModel):
    """Grand totals over every agent profile."""
    model_config = ConfigDict(frozen=True)

    total_success: int = Field(default=0, ge=0)
    total_failure: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall_success_rate(self) -> str:
        return format_success_rate(self.total_success, self.total_failure, "0.00%")


class Summary(BaseModel):
    """Top-N cross-agent leaderboards."""
    model_config = ConfigDict(frozen=True)

    top_success_operations: List[SummaryEntry] = Field(default_factory=list)
    top_failure_operations: List[SummaryEntry] = Field(default_factory=list)
    busiest_hours: List[SummaryEntry] = Field(default_factory=list)
    busiest_days: List[SummaryEntry] = Field(default_factory=list)
    most_active_actors: List[SummaryEntry] = Field(default_factory=list)
    most_active_addresses: List[SummaryEntry] = Field(default_factory=list)
    overall_stats: OverallStats = Field(default_factory=OverallStats)


# ---------------------------------------------------------------------------
# Anomalies & patterns
# ---------------------------------------------------------------------------

class AnomalyFinding(BaseModel):
    """One rule match produced by the anomaly detector."""
    model_config = ConfigDict(frozen=True)

    type: AnomalyType
    entity_type: str
    entity_name: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PeakTime(CountBucket):
    """Minute-of-day bucket above the scheduling threshold."""

    time: str


class ScheduledPattern(BaseModel):
    """Recurring minute-of-day activity of one agent."""
    model_config = ConfigDict(frozen=True)

    user_agent: str
    peak_times: List[PeakTime] = Field(default_factory=list)
    potential_schedule: str = "No clear pattern"
    total_successes: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class ReportMeta(BaseModel):
    """Batch-level metadata attached to every report."""
    model_config = ConfigDict(frozen=True)

    count: int = Field(default=0, ge=0)
    timespan_ms: int = Field(default=0, ge=0)
    start_time: str = INVALID_TIMESTAMP
    end_time: str = INVALID_TIMESTAMP
    invalid_timestamps: int = Field(default=0, ge=0)
    catalog_size: int = Field(default=0, ge=0)
    catalog_available: bool = False


class MetricsReport(BaseModel):
    """Complete request-log metrics document."""
    model_config = ConfigDict(frozen=True)

    actors: List[ActorMetric] = Field(default_factory=list)
    agents: List[NamedMetric] = Field(default_factory=list)
    operations: List[OperationMetric] = Field(default_factory=list)
    source_addresses: List[NamedMetric] = Field(default_factory=list)
    hourly_activity: List[NamedMetric] = Field(default_factory=list)
    daily_activity: List[NamedMetric] = Field(default_factory=list)
    applications: List[AgentProfile] = Field(default_factory=list)
    deprecated_operations: List[OperationMetric] = Field(default_factory=list)
    beta_operations: List[OperationMetric] = Field(default_factory=list)
    source_addresses_by_hour: Dict[str, List[str]] = Field(default_factory=dict)
    scheduled_patterns: List[ScheduledPattern] = Field(default_factory=list)
    meta: ReportMeta = Field(default_factory=ReportMeta)
    summary: Summary = Field(default_factory=Summary)
    anomalies: List[AnomalyFinding] = Field(default_factory=list)

    def dimensions(self) -> Dict[str, List[NamedMetric]]:
        """Return every flat dimension keyed by its display name."""
        return {
            "Actors": list(self.actors),
            "Agents": list(self.agents),
            "Operations": list(self.operations),
            "Source Addresses": list(self.source_addresses),
            "Hourly Activity": list(self.hourly_activity),
            "Daily Activity": list(self.daily_activity),
        }


class HostStats(CountBucket):
    """Delivery outcomes and latency for one receiving host."""

    hostname: str
    avg_success_duration: Optional[float] = None
    avg_failure_duration: Optional[float] = None


class WebhookMeta(BaseModel):
    """Batch-level metadata for webhook deliveries."""
    model_config = ConfigDict(frozen=True)

    count: int = Field(default=0, ge=0)
    timespan_ms: int = Field(default=0, ge=0)
    start_time: str = INVALID_TIMESTAMP
    end_time: str = INVALID_TIMESTAMP
    invalid_timestamps: int = Field(default=0, ge=0)
    overall: OverallStats = Field(default_factory=OverallStats)


class WebhookReport(BaseModel):
    """Complete webhook-delivery metrics document."""
    model_config = ConfigDict(frozen=True)

    urls: List[NamedMetric] = Field(default_factory=list)
    networks: List[NamedMetric] = Field(default_factory=list)
    alert_types: List[NamedMetric] = Field(default_factory=list)
    hourly_activity: List[NamedMetric] = Field(default_factory=list)
    daily_activity: List[NamedMetric] = Field(default_factory=list)
    http_servers: List[HostStats] = Field(default_factory=list)
    meta: WebhookMeta = Field(default_factory=WebhookMeta)

    def dimensions(self) -> Dict[str, List[NamedMetric]]:
        """Return every flat dimension keyed by its display name."""
        return {
            "URLs": list(self.urls),
            "Networks": list(self.networks),
            "Alert Types": list(self.alert_types),
            "Hourly Activity": list(self.hourly_activity),
            "Daily Activity": list(self.daily_activity),
        }
