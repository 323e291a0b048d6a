"""
Results of a smoke suite run.

Provides the textual summary the CLI prints and the JSON results file.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class CaseStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CaseResult:
    """Represents the outcome of a single smoke case"""
    name: str
    status: CaseStatus = CaseStatus.PENDING
    value: Any = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration: float = 0.0
    skipped_because: List[str] = field(default_factory=list)
    description: str = ""

    @property
    def passed(self) -> bool:
        return self.status == CaseStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "duration": round(self.duration, 3),
            "error_type": self.error_type,
            "error_message": self.error_message,
            "skipped_because": list(self.skipped_because),
        }


@dataclass
class SuiteReport:
    """Every case result of one run, in execution order"""
    suite: str
    results: List[CaseResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def _count(self, status: CaseStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return self._count(CaseStatus.PASSED)

    @property
    def failed(self) -> int:
        return self._count(CaseStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(CaseStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        """True when no case failed or was skipped."""
        return self.failed == 0 and self.skipped == 0

    @property
    def duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def result(self, name: str) -> CaseResult:
        for r in self.results:
            if r.name == name:
                return r
        raise KeyError(name)

    def summary_lines(self) -> List[str]:
        """The run summary, one printable line per entry."""
        total = self.total

        def pct(n: int) -> str:
            return f"{100 * n / total if total > 0 else 0:.1f}%"

        lines = [
            "=" * 80,
            f"SMOKE SUITE SUMMARY: {self.suite}",
            "=" * 80,
            f"Total Cases: {total}",
            f"Passed: {self.passed} ({pct(self.passed)})",
            f"Failed: {self.failed} ({pct(self.failed)})",
            f"Skipped: {self.skipped} ({pct(self.skipped)})",
            f"Duration: {self.duration:.1f}s",
            "=" * 80,
        ]

        if self.failed:
            lines.append("Failed Cases:")
            for r in self.results:
                if r.status == CaseStatus.FAILED:
                    lines.append(f"  - {r.name}")
                    lines.append(f"    {r.error_type}: {r.error_message}")

        if self.skipped:
            lines.append("Skipped Cases:")
            for r in self.results:
                if r.status == CaseStatus.SKIPPED:
                    lines.append(f"  - {r.name} (needs {', '.join(r.skipped_because)})")

        lines.append("✓ ALL CASES PASSED!" if self.ok else "✗ SOME CASES DID NOT PASS")
        return lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suite": self.suite,
            "run_time": self.started_at.isoformat(),
            "duration": round(self.duration, 3),
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [r.to_dict() for r in self.results],
        }

    def save_results(self, output_file: Union[str, Path]) -> Path:
        """Save the results to a JSON file"""
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        return output_file
