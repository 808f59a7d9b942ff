"""Base collector abstract class for collector pod polling."""

from abc import ABC, abstractmethod
from typing import List
import logging
from functools import wraps

from ..config.models import OperatorConfig
from ..utils.metrics import FetchOutcome


class BaseCollector(ABC):
    """Abstract base class for everything that polls collector pods."""

    def __init__(self, config: OperatorConfig, logger: logging.Logger):
        """
        Initialize base collector.

        Args:
            config: Operator configuration
            logger: Logger instance
        """
        self.config = config
        self.logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    async def collect(self) -> List[FetchOutcome]:
        """
        Poll every collector pod once.

        Returns:
            List[FetchOutcome]: One outcome per polled pod, unreachable pods included

        Note:
            Per-pod fetches should use @safe_fetch so a single failing pod
            never aborts the batch.
        """
        pass


def safe_fetch(func):
    """
    Decorator turning a per-pod fetch into a FetchOutcome.

    The wrapped coroutine takes the pod as its first argument after self and
    returns its target records. Any exception is logged with the pod name and
    converted to an unreachable outcome.

    Args:
        func: Fetch method to wrap

    Returns:
        Wrapped coroutine returning FetchOutcome
    """
    @wraps(func)
    async def wrapper(self, pod, *args, **kwargs):
        pod_name = pod.metadata.name
        try:
            targets = await func(self, pod, *args, **kwargs)
            return FetchOutcome(pod_name=pod_name, targets=targets)
        except Exception as e:
            self.logger.error(
                f"Failed to fetch targets: {e!r}",
                extra={"pod": pod_name, "error_type": type(e).__name__}
            )
            return FetchOutcome(pod_name=pod_name)
    return wrapper
