"""Shared pytest configuration and fixtures."""

import copy
import pytest
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from kubernetes import client
from kubernetes.client.rest import ApiException

from gmp_operator.config.loader import ConfigLoader
from gmp_operator.config.models import OperatorConfig
from gmp_operator.utils.logger import setup_logger


# Path to config file
CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"


@pytest.fixture(scope="session")
def config() -> OperatorConfig:
    """Load the shipped configuration from config.yaml."""
    if not CONFIG_PATH.exists():
        pytest.skip(f"Config file not found: {CONFIG_PATH}")

    return ConfigLoader.load_from_file(str(CONFIG_PATH))


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


# ---------------------------------------------------------------------------
# Kubernetes object builders
# ---------------------------------------------------------------------------

def make_pod(
    name: str,
    ip: Optional[str] = "10.0.0.1",
    phase: str = "Running",
    container: str = "prometheus"
) -> client.V1Pod:
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace="gmp-system", labels={"app": "collector"}),
        spec=client.V1PodSpec(containers=[client.V1Container(name=container)]),
        status=client.V1PodStatus(phase=phase, pod_ip=ip),
    )


def make_daemonset(port_name: str = "prom-metrics", port: int = 19090) -> client.V1DaemonSet:
    return client.V1DaemonSet(
        metadata=client.V1ObjectMeta(name="collector", namespace="gmp-system"),
        spec=client.V1DaemonSetSpec(
            selector=client.V1LabelSelector(match_labels={"app": "collector"}),
            template=client.V1PodTemplateSpec(
                spec=client.V1PodSpec(containers=[
                    client.V1Container(name="config-reloader", ports=[
                        client.V1ContainerPort(name="cfg-rel-metrics", container_port=19091),
                    ]),
                    client.V1Container(name="prometheus", ports=[
                        client.V1ContainerPort(name=port_name, container_port=port),
                    ]),
                ]),
            ),
        ),
    )


def make_monitoring(
    kind: str,
    name: str,
    namespace: Optional[str] = None,
    status: Optional[dict] = None,
    generation: int = 1
) -> dict:
    metadata = {"name": name, "generation": generation}
    if namespace is not None:
        metadata["namespace"] = namespace
    return {
        "apiVersion": "monitoring.googleapis.com/v1",
        "kind": kind,
        "metadata": metadata,
        "spec": {"endpoints": [{"port": "metrics", "interval": "10s"}]},
        "status": status or {},
    }


def merge_patch(target: dict, patch: dict) -> dict:
    """Apply an RFC 7386 JSON merge patch."""
    result = copy.deepcopy(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_patch(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class FakeKubeClient:
    """In-memory stand-in for KubeClient."""

    def __init__(self):
        self.operator_config: Optional[dict] = None
        self.objects: Dict[Tuple[str, Optional[str], str], dict] = {}
        self.daemonset: Optional[client.V1DaemonSet] = None
        self.pods: List[client.V1Pod] = []
        self.patches: List[Tuple[Tuple[str, Optional[str], str], dict]] = []
        self.last_selector: Optional[str] = None

    def add(self, obj: dict) -> None:
        metadata = obj["metadata"]
        self.objects[(obj["kind"], metadata.get("namespace"), metadata["name"])] = obj

    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> dict:
        return self.objects[(kind, namespace, name)]

    def enable_target_status(self, enabled: bool = True) -> None:
        self.operator_config = {
            "metadata": {"name": "config", "namespace": "gmp-public"},
            "features": {"targetStatus": {"enabled": enabled}},
        }

    async def get_operator_config(self, namespace, name):
        return self.operator_config

    async def list_monitorings(self, resource_cls):
        return [
            resource_cls.from_object(obj)
            for (kind, _, _), obj in sorted(self.objects.items(), key=lambda kv: str(kv[0]))
            if kind == resource_cls.kind
        ]

    async def has_monitorings(self, resource_cls):
        return any(kind == resource_cls.kind for kind, _, _ in self.objects)

    async def get_daemonset(self, namespace, name):
        if self.daemonset is None:
            raise ApiException(status=404, reason="Not Found")
        return self.daemonset

    async def list_pods(self, namespace, label_selector):
        self.last_selector = label_selector
        return list(self.pods)

    async def patch_status(self, resource, patch):
        key = (resource.kind, resource.namespace, resource.name)
        body = patch.to_body()
        self.patches.append((key, body))
        if key not in self.objects:
            raise ApiException(status=404, reason=f"{resource.plural} {resource.name!r} not found")
        self.objects[key] = merge_patch(self.objects[key], body)


@pytest.fixture
def kube():
    return FakeKubeClient()
