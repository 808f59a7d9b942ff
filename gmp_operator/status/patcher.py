"""Writes aggregated endpoint statuses back onto their monitoring resources."""

import logging
from typing import Dict, List

from ..resources.types import ScrapeEndpointStatus
from ..services.kube_client import KubeClient
from ..utils.errors import ScrapePoolParseError
from .scrape_pool import owner_for_key


class StatusPatcher:
    """
    Patches `status.endpointStatuses` of every resource in a status map.

    Each resource is written independently; failures are collected and
    returned so one missing or conflicting resource never blocks the others.
    """

    def __init__(self, kube: KubeClient, logger: logging.Logger):
        self.kube = kube
        self.logger = logger.getChild(self.__class__.__name__)

    async def patch_all(self, endpoint_map: Dict[str, List[ScrapeEndpointStatus]]) -> List[Exception]:
        """
        Apply one merge patch per owning resource.

        Args:
            endpoint_map: Endpoint statuses keyed by scrape pool key

        Returns:
            List[Exception]: Failures of individual resources, empty on success
        """
        errors: List[Exception] = []
        patched = 0

        for key in sorted(endpoint_map):
            try:
                resource = owner_for_key(key)
            except ScrapePoolParseError as e:
                errors.append(ScrapePoolParseError(f"building target: {key}: {e}"))
                continue
            if resource is None:
                # Reserved jobs have no resource to patch.
                continue

            resource.set_endpoint_statuses(endpoint_map[key])
            try:
                await self.kube.patch_status(resource, resource.status_patch())
                patched += 1
            except Exception as e:
                errors.append(RuntimeError(f"unable to patch status of {key}: {e}"))
                self.logger.error(
                    f"Patching status failed for {key}: {e}",
                    extra={"kind": resource.kind, "key": key, "error_type": type(e).__name__}
                )

        self.logger.info(f"Patched endpoint status of {patched} resource(s), {len(errors)} failure(s)")
        return errors
