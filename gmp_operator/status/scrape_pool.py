"""Parsing of the scrape pool identifiers generated for monitoring resources.

Every scrape pool is named after the resource that produced it:

- ``kind/group`` for pools without a backing resource (``kubelet``)
- ``kind/name/group`` for cluster-scoped resources
- ``kind/namespace/name/group`` for namespaced resources

The *key* identifies the resource (``PodMonitoring/ns/name``) and the *group*
the endpoint within it (``metrics``).
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ..resources.monitorings import ClusterPodMonitoring, MonitoringResource, PodMonitoring
from ..utils.errors import ScrapePoolParseError

KIND_KUBELET = "kubelet"
KIND_POD_MONITORING = PodMonitoring.kind
KIND_CLUSTER_POD_MONITORING = ClusterPodMonitoring.kind
KIND_CLUSTER_NODE_MONITORING = "ClusterNodeMonitoring"

# Kinds whose targets are tallied but whose status is never written.
RESERVED_KINDS = frozenset({KIND_KUBELET, KIND_CLUSTER_NODE_MONITORING})


@dataclass(frozen=True)
class ScrapePoolKey:
    """Parsed scrape pool identifier."""

    kind: str
    name: Optional[str]
    group: str
    key: str
    namespace: Optional[str] = None

    @property
    def has_owner(self) -> bool:
        return self.kind not in RESERVED_KINDS


def _split_at(pool: str, index: int) -> Tuple[str, str]:
    # index points at the separator in front of the group
    return pool[:index], pool[index + 1:]


def parse_scrape_pool(pool: str) -> ScrapePoolKey:
    """
    Parse a scrape pool identifier.

    The key is sliced out of the original string rather than re-joined
    from its parts, so it is byte-identical to the prefix of `pool`.

    Args:
        pool: Scrape pool identifier reported by a collector

    Returns:
        ScrapePoolKey: Parsed identifier

    Raises:
        ScrapePoolParseError: If the kind is unknown or the segment count is wrong
    """
    split = pool.split("/")
    kind = split[0]

    if kind == KIND_KUBELET:
        if len(split) != 2:
            raise ScrapePoolParseError(f"invalid {kind} scrape pool format {pool!r}")
        return ScrapePoolKey(kind=kind, name=None, group=split[1], key=kind)

    if kind == KIND_POD_MONITORING:
        if len(split) != 4:
            raise ScrapePoolParseError(f"invalid {kind} scrape pool format {pool!r}")
        key, group = _split_at(pool, len(split[0]) + 1 + len(split[1]) + 1 + len(split[2]))
        return ScrapePoolKey(kind=kind, namespace=split[1], name=split[2], group=group, key=key)

    if kind == KIND_CLUSTER_POD_MONITORING:
        if len(split) != 3:
            raise ScrapePoolParseError(f"invalid {kind} scrape pool format {pool!r}")
        key, group = _split_at(pool, len(split[0]) + 1 + len(split[1]))
        return ScrapePoolKey(kind=kind, name=split[1], group=group, key=key)

    if kind == KIND_CLUSTER_NODE_MONITORING:
        # The group may carry an extra metrics path segment.
        if len(split) not in (3, 4):
            raise ScrapePoolParseError(f"invalid {kind} scrape pool format {pool!r}")
        key, group = _split_at(pool, len(split[0]) + 1 + len(split[1]))
        return ScrapePoolKey(kind=kind, name=split[1], group=group, key=key)

    raise ScrapePoolParseError(f"unknown scrape kind {kind!r}")


def owner_for_key(key: str) -> Optional[MonitoringResource]:
    """
    Resolve a scrape pool key back to the resource that owns it.

    Args:
        key: Key part of a scrape pool, see `ScrapePoolKey.key`

    Returns:
        MonitoringResource: Unsaved reference carrying kind, namespace and name,
        or None for reserved pools that have no resource to patch

    Raises:
        ScrapePoolParseError: If the key does not match any known format
    """
    split = key.split("/")
    kind = split[0]

    if kind == KIND_KUBELET:
        if len(split) != 1:
            raise ScrapePoolParseError(f"invalid {kind} scrape key format {key!r}")
        return None

    if kind == KIND_POD_MONITORING:
        if len(split) != 3:
            raise ScrapePoolParseError(f"invalid {kind} scrape key format {key!r}")
        return PodMonitoring(namespace=split[1], name=split[2])

    if kind == KIND_CLUSTER_POD_MONITORING:
        if len(split) != 2:
            raise ScrapePoolParseError(f"invalid {kind} scrape key format {key!r}")
        return ClusterPodMonitoring(name=split[1])

    if kind == KIND_CLUSTER_NODE_MONITORING:
        if len(split) != 2:
            raise ScrapePoolParseError(f"invalid {kind} scrape key format {key!r}")
        return None

    raise ScrapePoolParseError(f"unknown scrape kind {kind!r}")
