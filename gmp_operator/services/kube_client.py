"""Asynchronous facade over the Kubernetes API used by the target status poller.

The official client is synchronous; every call runs in the loop's default
executor so the poll loop stays responsive.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Type

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..resources.monitorings import GROUP, VERSION, MonitoringResource
from ..resources.types import EndpointStatusPatch

MERGE_PATCH = "application/merge-patch+json"
OPERATOR_CONFIG_PLURAL = "operatorconfigs"


def selector_to_string(selector: Optional[client.V1LabelSelector]) -> str:
    """
    Render a label selector in the string form accepted by list calls.

    Args:
        selector: Selector from a workload spec

    Returns:
        str: e.g. "app=collector,tier in (a,b),!legacy"

    Raises:
        ValueError: If a match expression uses an unknown operator
    """
    if selector is None:
        return ""

    parts = [f"{k}={v}" for k, v in sorted((selector.match_labels or {}).items())]
    for expr in selector.match_expressions or []:
        values = ",".join(sorted(expr.values or []))
        if expr.operator == "In":
            parts.append(f"{expr.key} in ({values})")
        elif expr.operator == "NotIn":
            parts.append(f"{expr.key} notin ({values})")
        elif expr.operator == "Exists":
            parts.append(expr.key)
        elif expr.operator == "DoesNotExist":
            parts.append(f"!{expr.key}")
        else:
            raise ValueError(f"Unsupported label selector operator: {expr.operator}")
    return ",".join(parts)


class KubeClient:
    """Resource store operations needed by the target status pipeline."""

    def __init__(
        self,
        logger: logging.Logger,
        api_client: Optional[client.ApiClient] = None,
        kubeconfig: Optional[str] = None
    ):
        """
        Initialize the client.

        Args:
            logger: Logger instance
            api_client: Preconfigured API client, skips config loading
            kubeconfig: Kubeconfig path used when not running in a cluster
        """
        self.logger = logger.getChild(self.__class__.__name__)

        if api_client is None:
            self._load_config(kubeconfig)

        self._core_api = client.CoreV1Api(api_client)
        self._apps_api = client.AppsV1Api(api_client)
        self._custom_api = client.CustomObjectsApi(api_client)

    def _load_config(self, kubeconfig: Optional[str]) -> None:
        # Try in-cluster config first (when running in a pod)
        try:
            config.load_incluster_config()
            self.logger.info("Loaded in-cluster Kubernetes config")
        except config.ConfigException:
            config.load_kube_config(config_file=kubeconfig or None)
            self.logger.info("Loaded kubeconfig")

    async def _run(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def get_operator_config(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the singleton OperatorConfig resource.

        Returns:
            dict: The resource, or None if it does not exist yet

        Raises:
            ApiException: For any error other than not found
        """
        try:
            return await self._run(
                self._custom_api.get_namespaced_custom_object,
                GROUP, VERSION, namespace, OPERATOR_CONFIG_PLURAL, name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    async def list_monitorings(self, resource_cls: Type[MonitoringResource]) -> List[MonitoringResource]:
        """List every instance of a monitoring kind, across all namespaces for namespaced kinds."""
        result = await self._run(
            self._custom_api.list_cluster_custom_object,
            GROUP, VERSION, resource_cls.plural
        )
        return [resource_cls.from_object(item) for item in result.get("items", [])]

    async def has_monitorings(self, resource_cls: Type[MonitoringResource]) -> bool:
        """Whether at least one instance of a monitoring kind exists; stored status is not parsed."""
        result = await self._run(
            self._custom_api.list_cluster_custom_object,
            GROUP, VERSION, resource_cls.plural,
            limit=1
        )
        return bool(result.get("items"))

    async def get_daemonset(self, namespace: str, name: str) -> client.V1DaemonSet:
        return await self._run(self._apps_api.read_namespaced_daemon_set, name, namespace)

    async def list_pods(self, namespace: str, label_selector: str) -> List[client.V1Pod]:
        pods = await self._run(
            self._core_api.list_namespaced_pod,
            namespace,
            label_selector=label_selector or None
        )
        return list(pods.items)

    async def patch_status(self, resource: MonitoringResource, patch: EndpointStatusPatch) -> None:
        """
        Apply a JSON merge patch to the resource's status subresource.

        Raises:
            ApiException: If the resource is gone or the write was rejected
        """
        body = patch.to_body()
        if resource.namespaced:
            await self._run(
                self._custom_api.patch_namespaced_custom_object_status,
                GROUP, VERSION, resource.namespace, resource.plural, resource.name, body,
                _content_type=MERGE_PATCH
            )
        else:
            await self._run(
                self._custom_api.patch_cluster_custom_object_status,
                GROUP, VERSION, resource.plural, resource.name, body,
                _content_type=MERGE_PATCH
            )
