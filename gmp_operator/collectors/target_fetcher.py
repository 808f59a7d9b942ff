"""Retrieval of the active scrape targets of a single collector pod."""

from typing import List
import logging

import httpx

from ..utils.errors import TargetFetchError
from ..utils.metrics import TargetRecord

TARGETS_PATH = "/api/v1/targets"


class TargetFetcher:
    """Queries the targets API a collector exposes on its metrics port."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger.getChild(self.__class__.__name__)

    @staticmethod
    def targets_url(pod_ip: str, port: int) -> str:
        host = f"[{pod_ip}]" if ":" in pod_ip else pod_ip
        return f"http://{host}:{port}{TARGETS_PATH}"

    async def fetch(self, http_client: httpx.AsyncClient, pod_ip: str, port: int) -> List[TargetRecord]:
        """
        Fetch the active targets of one collector.

        Args:
            http_client: Client shared by the poll cycle, carries the request timeout
            pod_ip: IP assigned to the collector pod
            port: Collector metrics port

        Returns:
            List[TargetRecord]: Active targets, possibly empty

        Raises:
            TargetFetchError: If the pod has no IP, the request fails, or the
                response cannot be decoded
        """
        if not pod_ip:
            raise TargetFetchError("pod does not have IP allocated")

        url = self.targets_url(pod_ip, port)
        try:
            response = await http_client.get(url, params={"state": "active"})
        except httpx.TimeoutException as e:
            raise TargetFetchError(f"timeout fetching targets from {url}") from e
        except httpx.RequestError as e:
            raise TargetFetchError(f"unable to fetch targets from {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TargetFetchError(f"unable to fetch targets from {url}: HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise TargetFetchError(f"invalid targets payload from {url}: {e}") from e

        if not isinstance(payload, dict) or payload.get("status") != "success":
            error = payload.get("error") if isinstance(payload, dict) else None
            raise TargetFetchError(f"targets API error from {url}: {error or 'unexpected response'}")

        data = payload.get("data") or {}
        try:
            targets = [TargetRecord.from_api(raw) for raw in data.get("activeTargets") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise TargetFetchError(f"invalid target in payload from {url}: {e!r}") from e

        self.logger.debug(f"Fetched {len(targets)} target(s) from {url}")
        return targets
