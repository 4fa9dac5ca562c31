"""Conformance run result types.

Every check the orchestrator performs is reported as one SubCaseResult,
identified by phase and sub-case name, so a single failing backend
behavior can be located without rerunning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SubCaseStatus(StrEnum):
    """Status for an individual sub-case."""

    PASS = "PASS"
    FAIL = "FAIL"
    SKIPPED = "SKIPPED"


class StorageVerificationError(AssertionError):
    """Raised by VerificationReport.raise_for_failures() when any sub-case failed."""

    def __init__(self, report: VerificationReport) -> None:
        self.report = report
        failures = report.failures
        lines = [f"{len(failures)} conformance sub-case(s) failed for {report.storage_name}:"]
        for case in failures:
            lines.append(f"  {case.qualified_name}: {'; '.join(case.errors)}")
        super().__init__("\n".join(lines))


@dataclass
class SubCaseResult:
    """Result of one sub-case within a phase."""

    phase: str
    name: str
    status: SubCaseStatus
    errors: list[str] = field(default_factory=list)
    skip_reason: str | None = None
    execution_time_ms: int | None = None

    @property
    def qualified_name(self) -> str:
        """Return ``<phase>/<name>``, matching the host runner's sub-test naming."""
        return f"{self.phase}/{self.name}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with deterministic key ordering."""
        return {
            "errors": list(self.errors),
            "execution_time_ms": self.execution_time_ms,
            "name": self.name,
            "phase": self.phase,
            "skip_reason": self.skip_reason,
            "status": self.status.value,
        }


@dataclass
class VerificationReport:
    """Result of running the conformance program against one storage."""

    storage_name: str
    backend: str
    started_at: str
    finished_at: str = ""
    phases: list[str] = field(default_factory=list)
    cases: list[SubCaseResult] = field(default_factory=list)

    @staticmethod
    def now_iso() -> str:
        """Return current UTC time as ISO string."""
        return datetime.now(UTC).isoformat()

    @property
    def failures(self) -> list[SubCaseResult]:
        """Return failed sub-cases in execution order."""
        return [c for c in self.cases if c.status == SubCaseStatus.FAIL]

    @property
    def skipped(self) -> list[SubCaseResult]:
        """Return skipped sub-cases in execution order."""
        return [c for c in self.cases if c.status == SubCaseStatus.SKIPPED]

    @property
    def passed(self) -> bool:
        """Return True when no sub-case failed."""
        return not self.failures

    def phase_cases(self, phase: str) -> list[SubCaseResult]:
        """Return the sub-cases recorded for one phase."""
        return [c for c in self.cases if c.phase == phase]

    def get_case(self, phase: str, name: str) -> SubCaseResult:
        """Return a single sub-case by phase and name.

        Raises:
            KeyError: If no such sub-case ran.
        """
        for case in self.cases:
            if case.phase == phase and case.name == name:
                return case
        raise KeyError(f"{phase}/{name}")

    def raise_for_failures(self) -> None:
        """Raise StorageVerificationError listing every failed sub-case."""
        if self.failures:
            raise StorageVerificationError(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict with deterministic key ordering for JSON serialization."""
        order = {phase: i for i, phase in enumerate(self.phases)}
        cases_sorted = sorted(self.cases, key=lambda c: (order.get(c.phase, len(order)), c.name))
        return {
            "backend": self.backend,
            "cases": [c.to_dict() for c in cases_sorted],
            "finished_at": self.finished_at,
            "phases": list(self.phases),
            "started_at": self.started_at,
            "status": "PASS" if self.passed else "FAIL",
            "storage_name": self.storage_name,
        }
