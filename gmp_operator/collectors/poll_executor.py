"""Concurrent polling of every collector pod with a bounded worker pool."""

import asyncio
from typing import List, Optional, Tuple
import logging

import httpx
from kubernetes import client

from ..config.models import OperatorConfig
from ..services.kube_client import KubeClient, selector_to_string
from ..utils.errors import CollectorPortNotFoundError
from ..utils.metrics import FetchOutcome, TargetRecord
from .base import BaseCollector, safe_fetch
from .target_fetcher import TargetFetcher

# Marks a closed job or result queue.
_CLOSED = object()


def is_collector_container(container: client.V1Container, container_name: str) -> bool:
    return container.name == container_name


def is_collector_pod(pod: client.V1Pod, container_name: str) -> bool:
    """A running pod that carries the collector container."""
    if pod.status is None or pod.status.phase != "Running":
        return False
    containers = pod.spec.containers if pod.spec else []
    return any(is_collector_container(c, container_name) for c in containers or [])


def find_collector_port(
    daemonset: client.V1DaemonSet,
    container_name: str,
    port_name: str
) -> Optional[int]:
    """Container port of the collector, looked up by port name."""
    for container in daemonset.spec.template.spec.containers or []:
        if not is_collector_container(container, container_name):
            continue
        for port in container.ports or []:
            if port.name == port_name:
                return port.container_port
    return None


class PollExecutor(BaseCollector):
    """
    Fetches the targets of all collector pods.

    A fixed pool of `poll_concurrency` workers drains a job queue fed by a
    single producer; a coordinator closes the result queue once every worker
    has exited so the consumer never waits on a queue nobody writes to.
    """

    def __init__(
        self,
        config: OperatorConfig,
        kube: KubeClient,
        logger: logging.Logger,
        fetcher: Optional[TargetFetcher] = None
    ):
        """
        Initialize the executor.

        Args:
            config: Operator configuration
            kube: Resource store client
            logger: Logger instance
            fetcher: Target fetcher, replaceable in tests
        """
        super().__init__(config, logger)
        self.kube = kube
        self.fetcher = fetcher or TargetFetcher(logger)

    async def discover(self) -> Tuple[List[client.V1Pod], int]:
        """
        Resolve the running collector pods and their metrics port.

        Returns:
            Tuple of (pods, port)

        Raises:
            CollectorPortNotFoundError: If no collector container names the metrics port
            ApiException: If the DaemonSet or pod list cannot be read
        """
        opts = self.config.operator
        daemonset = await self.kube.get_daemonset(opts.operator_namespace, opts.collector_name)

        port = find_collector_port(daemonset, opts.collector_container_name, opts.collector_port_name)
        if port is None:
            raise CollectorPortNotFoundError(
                f"unable to detect collector port {opts.collector_port_name!r} "
                f"on {opts.operator_namespace}/{opts.collector_name}"
            )

        selector = selector_to_string(daemonset.spec.selector)
        pods = await self.kube.list_pods(opts.operator_namespace, selector)
        pods = [p for p in pods if is_collector_pod(p, opts.collector_container_name)]
        return pods, port

    async def collect(self) -> List[FetchOutcome]:
        pods, port = await self.discover()
        self.logger.info(f"Polling {len(pods)} collector pod(s) on port {port}")
        return await self.fetch_all(pods, port)

    async def fetch_all(self, pods: List[client.V1Pod], port: int) -> List[FetchOutcome]:
        """
        Fetch targets from every pod with at most `poll_concurrency` in flight.

        Args:
            pods: Collector pods to poll
            port: Collector metrics port

        Returns:
            List[FetchOutcome]: Exactly one outcome per pod, in completion order
        """
        if not pods:
            return []

        settings = self.config.target_status
        loop = asyncio.get_running_loop()
        deadline = loop.time() + settings.fetch_deadline_seconds

        jobs: asyncio.Queue = asyncio.Queue()
        results: asyncio.Queue = asyncio.Queue()

        async with httpx.AsyncClient(timeout=settings.fetch_timeout_seconds) as http_client:

            async def worker():
                while True:
                    pod = await jobs.get()
                    if pod is _CLOSED:
                        return
                    await results.put(await self._fetch_pod(pod, http_client, port, deadline))

            async def produce():
                for pod in pods:
                    await jobs.put(pod)
                for _ in range(settings.poll_concurrency):
                    await jobs.put(_CLOSED)

            async def coordinate(workers):
                try:
                    await asyncio.gather(*workers, return_exceptions=True)
                finally:
                    results.put_nowait(_CLOSED)

            workers = [asyncio.create_task(worker()) for _ in range(settings.poll_concurrency)]
            helpers = [asyncio.create_task(produce()), asyncio.create_task(coordinate(workers))]

            outcomes = []
            try:
                while True:
                    outcome = await results.get()
                    if outcome is _CLOSED:
                        break
                    outcomes.append(outcome)
            finally:
                pending = [t for t in workers + helpers if not t.done()]
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        return outcomes

    @safe_fetch
    async def _fetch_pod(
        self,
        pod: client.V1Pod,
        http_client: httpx.AsyncClient,
        port: int,
        deadline: float
    ) -> List[TargetRecord]:
        remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        pod_ip = pod.status.pod_ip if pod.status else None
        return await asyncio.wait_for(self.fetcher.fetch(http_client, pod_ip, port), timeout=remaining)
