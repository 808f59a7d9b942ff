"""Status types written back to monitoring custom resources.

Field names follow the resources' camelCase wire format through pydantic
aliases; use ``model_dump(by_alias=True, exclude_none=True)`` to serialise.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def format_time(value: datetime) -> str:
    """Render a timestamp as RFC 3339 in UTC with second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def now() -> datetime:
    """Current time truncated to the second, matching stored precision."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class _StatusModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SampleTarget(_StatusModel):
    """One target previewed inside a sample group."""
    labels: Dict[str, str] = Field(default_factory=dict)
    last_error: Optional[str] = Field(default=None, alias="lastError")
    last_scrape_duration_seconds: str = Field(default="", alias="lastScrapeDurationSeconds")
    health: str = ""


class SampleGroup(_StatusModel):
    """Targets sharing one error value; `count` is the full population."""
    sample_targets: List[SampleTarget] = Field(default_factory=list, alias="sampleTargets")
    count: int = 0


class ScrapeEndpointStatus(_StatusModel):
    """Aggregated target health for one scrape endpoint."""
    name: str
    active_targets: int = Field(default=0, alias="activeTargets")
    unhealthy_targets: int = Field(default=0, alias="unhealthyTargets")
    last_update_time: Optional[datetime] = Field(default=None, alias="lastUpdateTime")
    sample_groups: List[SampleGroup] = Field(default_factory=list, alias="sampleGroups")
    collectors_fraction: str = Field(default="0", alias="collectorsFraction")

    @field_serializer('last_update_time')
    def _serialize_time(self, value: Optional[datetime]) -> Optional[str]:
        return format_time(value) if value is not None else None


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class MonitoringConditionType(str, Enum):
    CONFIGURATION_CREATE_SUCCESS = "ConfigurationCreateSuccess"
    COLLECTOR_DAEMONSET_EXISTS = "CollectorDaemonSetExists"


class MonitoringCondition(_StatusModel):
    """Condition record attached to a monitoring resource."""
    type: str = ""
    status: str = ""
    last_update_time: Optional[datetime] = Field(default=None, alias="lastUpdateTime")
    last_transition_time: Optional[datetime] = Field(default=None, alias="lastTransitionTime")
    reason: Optional[str] = None
    message: Optional[str] = None

    @field_serializer('last_update_time', 'last_transition_time')
    def _serialize_time(self, value: Optional[datetime]) -> Optional[str]:
        return format_time(value) if value is not None else None

    def is_valid(self) -> bool:
        return bool(self.type) and bool(self.status)


def default_conditions(at: datetime) -> List[MonitoringCondition]:
    return [
        MonitoringCondition(
            type=MonitoringConditionType.CONFIGURATION_CREATE_SUCCESS.value,
            status=ConditionStatus.UNKNOWN.value,
            last_update_time=at,
            last_transition_time=at,
        )
    ]


class MonitoringStatus(_StatusModel):
    """Generation and conditions shared by every monitoring resource."""
    observed_generation: int = Field(default=0, alias="observedGeneration")
    conditions: List[MonitoringCondition] = Field(default_factory=list)

    def set_monitoring_condition(
        self,
        generation: int,
        at: datetime,
        cond: MonitoringCondition
    ) -> bool:
        """
        Merge a condition into the status.

        The status is only modified when the resource generation changed or
        the condition's status value flipped; callers skip the write to the
        store when this returns False.

        Args:
            generation: Current metadata.generation of the resource
            at: Timestamp of this update attempt
            cond: Condition to merge, its timestamps are overwritten

        Returns:
            bool: True if the status changed and must be written
        """
        if not cond.is_valid():
            return False

        spec_changed = self.observed_generation != generation

        conds: Dict[str, MonitoringCondition] = {}
        for c in default_conditions(at):
            conds[c.type] = c
        for c in self.conditions:
            conds[c.type] = c

        cond.last_update_time = at
        old = conds.get(cond.type)
        if old is not None and old.status == cond.status:
            cond.last_transition_time = old.last_transition_time
            status_transition = False
        else:
            cond.last_transition_time = at
            status_transition = True

        conds[cond.type] = cond

        if not (spec_changed or status_transition):
            return False

        self.observed_generation = generation
        self.conditions = [conds[t] for t in sorted(conds)]
        return True


class PodMonitoringStatus(MonitoringStatus):
    """Status subresource of PodMonitoring and ClusterPodMonitoring."""
    endpoint_statuses: List[ScrapeEndpointStatus] = Field(default_factory=list, alias="endpointStatuses")


class EndpointStatusFields(_StatusModel):
    endpoint_statuses: List[ScrapeEndpointStatus] = Field(alias="endpointStatuses")


class EndpointStatusPatch(_StatusModel):
    """
    Merge patch touching only `status.endpointStatuses`.

    Other status fields are absent from the document, so a JSON merge
    patch leaves them as they are on the server.
    """
    status: EndpointStatusFields

    @classmethod
    def for_statuses(cls, statuses: List[ScrapeEndpointStatus]) -> "EndpointStatusPatch":
        return cls(status=EndpointStatusFields(endpoint_statuses=statuses))

    def to_body(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
