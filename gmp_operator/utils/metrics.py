"""Target data structures produced by collector polling."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from .status import TargetHealth


@dataclass
class TargetRecord:
    """One active scrape target reported by a collector pod."""

    scrape_pool: str
    health: TargetHealth
    last_error: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    last_scrape_duration: float = 0.0

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "TargetRecord":
        """
        Build a record from one entry of the targets API `activeTargets` list.

        Args:
            raw: Decoded JSON object

        Returns:
            TargetRecord: Parsed record

        Raises:
            KeyError: If the scrape pool is missing
            ValueError: If the scrape duration is not numeric
        """
        return cls(
            scrape_pool=raw["scrapePool"],
            health=TargetHealth.parse(raw.get("health", "")),
            last_error=raw.get("lastError") or "",
            labels=dict(raw.get("labels") or {}),
            last_scrape_duration=float(raw.get("lastScrapeDuration") or 0.0),
        )


@dataclass
class FetchOutcome:
    """
    Result of polling one collector pod.

    `targets` is None when the pod could not be reached; such outcomes still
    count towards the collectors fraction denominator.
    """

    pod_name: str
    targets: Optional[List[TargetRecord]] = None

    @property
    def reachable(self) -> bool:
        return self.targets is not None
