"""Error types raised by the target status pipeline."""

from typing import Iterable, List


class ScrapePoolParseError(ValueError):
    """A scrape pool identifier or resource key could not be parsed."""


class CollectorPortNotFoundError(RuntimeError):
    """No collector container exposes the named metrics port."""


class TargetFetchError(RuntimeError):
    """Targets could not be retrieved from a single collector pod."""


class TargetStatusError(Exception):
    """
    Aggregate of the independent failures of one update cycle.

    Raised only after every resource in the batch was processed, so a
    partial failure never prevents the remaining status writes.
    """

    def __init__(self, errors: Iterable[Exception]):
        self.errors: List[Exception] = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))
