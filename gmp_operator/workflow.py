"""Target status cycle: poll collectors, aggregate, and patch resource statuses."""

import time
import logging
from typing import Dict, List, Optional

from prometheus_client import Gauge

from .collectors.poll_executor import PollExecutor
from .config.models import OperatorConfig
from .resources.monitorings import MONITORING_KINDS
from .resources.types import ScrapeEndpointStatus
from .services.kube_client import KubeClient
from .status.endpoint_builder import build_endpoint_statuses
from .status.patcher import StatusPatcher
from .utils.errors import TargetStatusError
from .utils.logger import setup_logger
from .utils.metrics import FetchOutcome

TARGET_STATUS_DURATION = Gauge(
    "prometheus_engine_target_status_duration",
    "A metric indicating how long it took to fetch the complete target status.",
)


class TargetStatusWorkflow:
    """
    Orchestrates one target status cycle.

    `reconcile` is the single entry point the scheduler calls; tests may
    call it (or `poll_and_update`) directly.
    """

    def __init__(
        self,
        config: OperatorConfig,
        kube: KubeClient,
        logger: Optional[logging.Logger] = None,
        executor: Optional[PollExecutor] = None
    ):
        """
        Initialize the workflow.

        Args:
            config: Operator configuration
            kube: Resource store client
            logger: Optional logger instance
            executor: Poll executor, replaceable in tests
        """
        self.config = config
        self.kube = kube
        self.logger = logger or setup_logger("workflow")
        self.executor = executor or PollExecutor(config, kube, self.logger)
        self.patcher = StatusPatcher(kube, self.logger)

    async def should_poll(self) -> bool:
        """
        Check whether target status polling applies right now.

        Returns:
            bool: False when the operator config is absent, the feature is
            disabled, or no monitoring resource exists

        Raises:
            ApiException: If the store cannot be read
        """
        opts = self.config.operator
        operator_config = await self.kube.get_operator_config(opts.public_namespace, opts.operator_config_name)
        if operator_config is None:
            self.logger.debug("Operator config not found, skipping target status")
            return False

        features = operator_config.get("features") or {}
        if not (features.get("targetStatus") or {}).get("enabled", False):
            self.logger.debug("Target status disabled, skipping")
            return False

        for kind in MONITORING_KINDS:
            if await self.kube.has_monitorings(kind):
                return True

        self.logger.debug("No monitoring resources, skipping target status")
        return False

    async def fetch_targets(self) -> List[FetchOutcome]:
        return await self.executor.collect()

    async def update_target_status(self, outcomes: List[FetchOutcome]) -> Dict[str, List[ScrapeEndpointStatus]]:
        """
        Aggregate outcomes and patch every owning resource.

        Returns:
            dict: The endpoint statuses that were written, keyed by scrape pool key

        Raises:
            TargetStatusError: After all resources were processed, if any
                target could not be parsed or any patch failed
        """
        endpoint_map, parse_errors = build_endpoint_statuses(outcomes)
        for error in parse_errors:
            self.logger.error(f"Skipping target: {error}")

        patch_errors = await self.patcher.patch_all(endpoint_map)

        errors: List[Exception] = [*parse_errors, *patch_errors]
        if errors:
            raise TargetStatusError(errors)
        return endpoint_map

    async def poll_and_update(self) -> Dict[str, List[ScrapeEndpointStatus]]:
        """
        Run one full poll-aggregate-patch cycle.

        Raises:
            CollectorPortNotFoundError: If the collector port cannot be resolved
            TargetStatusError: If parts of the update failed
        """
        outcomes = await self.fetch_targets()
        if not outcomes:
            self.logger.info("No collector pods found, nothing to update")
            return {}

        failed = sum(1 for o in outcomes if not o.reachable)
        if failed:
            self.logger.warning(f"{failed}/{len(outcomes)} collector pod(s) unreachable")

        return await self.update_target_status(outcomes)

    async def reconcile(self) -> bool:
        """
        Poll if applicable; never raises for ordinary failures.

        Returns:
            bool: True if a cycle ran and fully succeeded
        """
        start_time = time.time()

        try:
            if not await self.should_poll():
                return False
        except Exception as e:
            self.logger.error(f"Checking whether to poll failed: {e}", exc_info=True)
            return False

        try:
            endpoint_map = await self.poll_and_update()
        except Exception as e:
            self.logger.error(
                "Poll and update failed",
                exc_info=True,
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }
            )
            return False

        # Only record the duration of successful cycles.
        duration_ms = (time.time() - start_time) * 1000
        TARGET_STATUS_DURATION.set(duration_ms)
        self.logger.info(
            f"Target status updated for {len(endpoint_map)} scrape key(s) in {duration_ms:.0f}ms"
        )
        return True
