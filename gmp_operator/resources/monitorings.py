"""Monitoring custom resources whose status carries endpoint statuses."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .types import EndpointStatusPatch, PodMonitoringStatus, ScrapeEndpointStatus

GROUP = "monitoring.googleapis.com"
VERSION = "v1"


class MonitoringResource(ABC):
    """
    Capability interface over the resource kinds the status patcher writes.

    The aggregator and patcher only use this interface; each concrete kind
    supplies its own key format and API coordinates.
    """

    kind: str = ""
    plural: str = ""
    namespaced: bool = True

    def __init__(
        self,
        name: str,
        namespace: Optional[str] = None,
        generation: int = 0,
        status: Optional[PodMonitoringStatus] = None
    ):
        self.name = name
        self.namespace = namespace
        self.generation = generation
        self.status = status or PodMonitoringStatus()

    @abstractmethod
    def get_key(self) -> str:
        """Identifier prefix used in the scrape pools generated for this resource."""

    def get_endpoint_statuses(self) -> List[ScrapeEndpointStatus]:
        return self.status.endpoint_statuses

    def set_endpoint_statuses(self, statuses: List[ScrapeEndpointStatus]) -> None:
        self.status.endpoint_statuses = statuses

    def status_patch(self) -> EndpointStatusPatch:
        """Partial update carrying only this resource's endpoint statuses."""
        return EndpointStatusPatch.for_statuses(self.get_endpoint_statuses())

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "MonitoringResource":
        """
        Build a resource from an object returned by the store.

        Args:
            obj: Custom object as a dict (metadata/spec/status)

        Returns:
            MonitoringResource: Instance of the calling class
        """
        metadata = obj.get("metadata") or {}
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace") if cls.namespaced else None,
            generation=metadata.get("generation") or 0,
            status=PodMonitoringStatus.model_validate(obj.get("status") or {}),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.get_key()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MonitoringResource):
            return NotImplemented
        return (self.kind, self.namespace, self.name) == (other.kind, other.namespace, other.name)

    def __hash__(self) -> int:
        return hash((self.kind, self.namespace, self.name))


class PodMonitoring(MonitoringResource):
    """Namespace-scoped pod monitoring."""

    kind = "PodMonitoring"
    plural = "podmonitorings"
    namespaced = True

    def get_key(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"


class ClusterPodMonitoring(MonitoringResource):
    """Cluster-scoped pod monitoring."""

    kind = "ClusterPodMonitoring"
    plural = "clusterpodmonitorings"
    namespaced = False

    def get_key(self) -> str:
        return f"{self.kind}/{self.name}"


# Kinds that receive endpoint status writes.
MONITORING_KINDS = (PodMonitoring, ClusterPodMonitoring)
