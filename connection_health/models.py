"""
Connection Health - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

- ErrorCategory: Closed taxonomy of connectivity failures
- ProbeKind: Long-lived, short-lived or sentinel probe
- ProbeOutcome: Result of one probe operation
- ProbeSpec: Static parameters of one running probe
- CounterSnapshot: Values drained by one counter flush

Outcomes are transient. They are folded into a counter and
never stored anywhere else.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


# =============================================================
# ENUMS
# =============================================================


class ErrorCategory(str, Enum):
    """
    Category of a failed probe outcome.

    Declaration order is the order used in summary lines.
    The value is the label printed in summaries and grepped by
    operator tooling. Do not rename.
    """
    REFUSED = "refused"
    TIMEOUT = "timeout"
    DEADLINE_EXCEEDED = "deadline"
    UNEXPECTED_EOF = "eof"
    CONNECTION_RESET = "reset"
    INVALID_CONNECTION = "invalid"
    SLOW_OPERATION = "slow"
    UNCATEGORIZED = "uncategorized"

    @property
    def label(self) -> str:
        """Label printed in summary lines."""
        return self.value

    def is_transient(self) -> bool:
        """Expected failure mode of a degraded server or network."""
        return self not in (ErrorCategory.SLOW_OPERATION, ErrorCategory.UNCATEGORIZED)

    def is_reported_individually(self) -> bool:
        """Whether each occurrence is also printed on its own line."""
        return self in (ErrorCategory.SLOW_OPERATION, ErrorCategory.UNCATEGORIZED)


class ProbeKind(str, Enum):
    """
    Kind of probe. Also the name of the probe group counter.
    """
    LONG = "long"
    SHORT = "short"
    SENTINEL = "sentinel"


# =============================================================
# DATA CLASSES
# =============================================================


@dataclass(frozen=True)
class ProbeOutcome:
    """
    Outcome of one probe operation.

    duration is in seconds. category is None for successes and
    for failures that still need classification.
    """
    succeeded: bool
    duration: float = 0.0
    category: Optional[ErrorCategory] = None
    description: Optional[str] = None

    @classmethod
    def success(cls, duration: float = 0.0) -> "ProbeOutcome":
        return cls(succeeded=True, duration=duration)

    @classmethod
    def failure(
        cls,
        description: str,
        duration: float = 0.0,
        category: Optional[ErrorCategory] = None,
    ) -> "ProbeOutcome":
        return cls(
            succeeded=False,
            duration=duration,
            category=category,
            description=description,
        )

    @classmethod
    def slow(cls, duration: float, threshold: float) -> "ProbeOutcome":
        """Successful operation that exceeded the slow threshold."""
        return cls(
            succeeded=False,
            duration=duration,
            category=ErrorCategory.SLOW_OPERATION,
            description=(
                f"slow operation {format_millis(duration)} "
                f"(threshold {format_millis(threshold)})"
            ),
        )


@dataclass(frozen=True)
class ProbeSpec:
    """
    Static parameters of a running probe.

    deadline bounds each ping through cancellation. None means
    the ping runs unbounded and slowness is classified after the
    fact. transaction_deadline bounds the scan transaction; it is
    never tied to the slow threshold.
    """
    kind: ProbeKind
    interval: float
    slow_threshold: float
    exercise_transaction: bool = False
    deadline: Optional[float] = None
    transaction_deadline: Optional[float] = None

    @property
    def group(self) -> str:
        """Name of the counter this probe reports into."""
        return self.kind.value


@dataclass
class CounterSnapshot:
    """Values drained from an ErrorCounter by one flush."""
    name: str
    counts: Dict[ErrorCategory, int] = field(default_factory=dict)
    success: int = 0

    @property
    def total_failures(self) -> int:
        return sum(self.counts.values())

    def is_empty(self) -> bool:
        """True when strictly nothing happened, successes included."""
        return self.success == 0 and self.total_failures == 0

    def format(self) -> str:
        """
        Summary text: group name, nonzero categories, then success.

        e.g. "short refused 3 timeout 1 success 20"
        """
        parts = [self.name]
        for category in ErrorCategory:
            count = self.counts.get(category, 0)
            if count:
                parts.append(f"{category.label} {count}")
        parts.append(f"success {self.success}")
        return " ".join(parts)


def format_millis(seconds: float) -> str:
    """Render a duration in whole milliseconds."""
    return f"{seconds * 1000:.0f}ms"
