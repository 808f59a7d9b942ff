"""Target health enumeration."""

from enum import Enum


class TargetHealth(Enum):
    """Scrape target health as reported by a collector."""

    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "TargetHealth":
        """
        Map a raw health string onto the enum.

        Args:
            value: Health string from the targets API

        Returns:
            TargetHealth: Matching member, UNKNOWN for anything unrecognised
        """
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN
