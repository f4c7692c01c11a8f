"""
Per-pipeline result accumulator.

Every processed label either passes or raises exactly one flag, and both
count toward `total`. Counters only ever grow.
"""

from dataclasses import dataclass, field
from typing import Any

from .errors import NoPassingLabelsError


@dataclass
class Assessment:
    """
    Aggregate result of running one pipeline against one endpoint.

    Owned by a single pipeline run; never shared.
    """
    total: int = 0
    passed: int = 0
    flags: dict[str, int] = field(default_factory=dict)
    # Why the subscription stopped, None for a query or a clean close
    stopped_by: str | None = None

    def add_passed(self) -> None:
        self.passed += 1
        self.total += 1

    def add_flag(self, description: str) -> None:
        self.flags[description] = self.flags.get(description, 0) + 1
        self.total += 1

    @property
    def flagged(self) -> int:
        return sum(self.flags.values())

    def require_passing(self) -> "Assessment":
        """
        Return self if at least one label passed.

        Raises:
            NoPassingLabelsError: Enumerating every flag and its count
        """
        if self.passed == 0:
            raise NoPassingLabelsError(self.flags)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "flags": dict(self.flags),
            "stopped_by": self.stopped_by,
        }
