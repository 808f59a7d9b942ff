"""Aggregation of collector targets into per-resource endpoint statuses."""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from ..resources.types import SampleGroup, SampleTarget, ScrapeEndpointStatus, now
from ..utils.errors import ScrapePoolParseError
from ..utils.metrics import FetchOutcome, TargetRecord
from ..utils.status import TargetHealth
from .scrape_pool import parse_scrape_pool

# How many targets to keep in each sample group.
MAX_SAMPLE_TARGETS = 5


def format_float(value: float) -> str:
    """
    Render a float in positional notation with the shortest round-trip digits.

    1.0 renders as "1", 0.6 as "0.6" and 1e-05 as "0.00001".
    """
    text = format(Decimal(repr(float(value))), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def collectors_fraction(total: int, failed: int) -> str:
    """Share of collectors that answered; "0" when no collector was polled."""
    if total == 0:
        return "0"
    return format_float((total - failed) / total)


def _sample_order(target: SampleTarget) -> tuple:
    # Every target carries an instance label; the rest only breaks ties.
    return (
        target.labels.get("instance", ""),
        sorted(target.labels.items()),
        target.health,
        target.last_scrape_duration_seconds,
        target.last_error is None,
    )


class _EndpointAccumulator:
    """Collects the targets of one endpoint, see `build`."""

    def __init__(self, name: str, timestamp: datetime):
        self.name = name
        self.timestamp = timestamp
        self.active_targets = 0
        self.unhealthy_targets = 0
        self.groups_by_error: Dict[str, SampleGroup] = {}

    def add(self, record: TargetRecord) -> None:
        self.active_targets += 1

        last_error: Optional[str] = record.last_error
        if record.health == TargetHealth.UP:
            if not record.last_error:
                last_error = None
        else:
            self.unhealthy_targets += 1

        group = self.groups_by_error.get(record.last_error)
        if group is None:
            group = SampleGroup()
            self.groups_by_error[record.last_error] = group
        group.count += 1
        # Keep every sample until build so the preview is picked by instance.
        group.sample_targets.append(SampleTarget(
            health=record.health.value,
            last_error=last_error,
            labels=dict(record.labels),
            last_scrape_duration_seconds=format_float(record.last_scrape_duration),
        ))

    def build(self, fraction: str) -> ScrapeEndpointStatus:
        groups = []
        # The "no error" group sorts last.
        for error in sorted(self.groups_by_error, key=lambda e: (e == "", e)):
            group = self.groups_by_error[error]
            samples = sorted(group.sample_targets, key=_sample_order)
            groups.append(SampleGroup(
                sample_targets=samples[:MAX_SAMPLE_TARGETS],
                count=group.count,
            ))

        return ScrapeEndpointStatus(
            name=self.name,
            active_targets=self.active_targets,
            unhealthy_targets=self.unhealthy_targets,
            last_update_time=self.timestamp,
            sample_groups=groups,
            collectors_fraction=fraction,
        )


class EndpointStatusBuilder:
    """
    Builds deterministic endpoint statuses from one poll cycle's outcomes.

    Targets are grouped by scrape pool key (the owning resource) and then by
    group (the endpoint). Output ordering only depends on the input values,
    never on the order in which outcomes arrived.
    """

    def __init__(self, timestamp: Optional[datetime] = None):
        self.timestamp = timestamp or now()
        self.total = 0
        self.failed = 0
        self.errors: List[ScrapePoolParseError] = []
        self._by_key: Dict[str, Dict[str, _EndpointAccumulator]] = {}

    def add(self, outcome: FetchOutcome) -> None:
        """Tally one pod's outcome and fold in its targets."""
        self.total += 1
        if not outcome.reachable:
            self.failed += 1
            return
        for record in outcome.targets:
            self.add_target(record)

    def add_target(self, record: TargetRecord) -> None:
        try:
            pool = parse_scrape_pool(record.scrape_pool)
        except ScrapePoolParseError as e:
            self.errors.append(e)
            return

        by_group = self._by_key.setdefault(pool.key, {})
        accumulator = by_group.get(pool.group)
        if accumulator is None:
            accumulator = _EndpointAccumulator(record.scrape_pool, self.timestamp)
            by_group[pool.group] = accumulator
        accumulator.add(record)

    def build(self) -> Dict[str, List[ScrapeEndpointStatus]]:
        fraction = collectors_fraction(self.total, self.failed)
        result = {}
        for key, by_group in self._by_key.items():
            statuses = [acc.build(fraction) for acc in by_group.values()]
            statuses.sort(key=lambda s: s.name)
            result[key] = statuses
        return result


def build_endpoint_statuses(
    outcomes: Iterable[FetchOutcome],
    timestamp: Optional[datetime] = None
) -> Tuple[Dict[str, List[ScrapeEndpointStatus]], List[ScrapePoolParseError]]:
    """
    Aggregate fetch outcomes into endpoint statuses keyed by scrape pool key.

    Args:
        outcomes: One outcome per polled collector pod
        timestamp: Update time stamped on every status, defaults to now

    Returns:
        Tuple of the status map and the parse errors of skipped targets
    """
    builder = EndpointStatusBuilder(timestamp)
    for outcome in outcomes:
        builder.add(outcome)
    return builder.build(), builder.errors
