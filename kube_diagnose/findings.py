from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

NO_ISSUES = "No issues detected"


class Signal(str, Enum):
    """
    What a finding means for status derivation.
    """

    CRITICAL = "critical"  # always forces a Critical pod
    MISMATCH = "mismatch"  # selector / port configuration mismatch
    ISSUE = "issue"
    INFO = "info"  # evidence only, never a probable cause


class Status(str, Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    HEALTHY = "Healthy"
    COMPLETED = "Completed"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


# Lower rank sorts first. Anything missing from a table ranks with Warning.
POD_SEVERITY_RANK = {
    Status.CRITICAL: 0,
    Status.WARNING: 1,
    Status.HEALTHY: 2,
    Status.COMPLETED: 3,
}

SERVICE_SEVERITY_RANK = {
    Status.CRITICAL: 0,
    Status.WARNING: 1,
    Status.HEALTHY: 2,
}

DEFAULT_RANK = 1


def severity_rank(status: Status, table: dict[Status, int]) -> int:
    return table.get(status, DEFAULT_RANK)


@dataclass
class Finding:
    """
    One detector hit: an optional probable cause with its evidence and actions.
    """

    cause: Optional[str]
    evidence: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    signal: Signal = Signal.ISSUE

    def __post_init__(self):
        # Informational findings never carry a cause
        if self.cause is None:
            self.signal = Signal.INFO


@dataclass
class FindingSet:
    """
    Findings of a full rule pass, concatenated in rule order.
    """

    findings: list[Finding] = field(default_factory=list)

    def extend(self, findings: list[Finding]) -> None:
        self.findings.extend(findings)

    @property
    def causes(self) -> list[str]:
        return [f.cause for f in self.findings if f.cause is not None]

    @property
    def evidence(self) -> list[str]:
        return [e for f in self.findings for e in f.evidence]

    @property
    def actions(self) -> list[str]:
        return [a for f in self.findings for a in f.actions]

    def has_signal(self, signal: Signal) -> bool:
        return any(f.signal is signal for f in self.findings)
