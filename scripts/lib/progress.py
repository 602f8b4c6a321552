"""Console output shared by the readiness scripts."""
from __future__ import annotations

import sys
from typing import TextIO

from pkg.readiness.poller import (
    FAILURE_TIMED_OUT,
    FAILURE_UNHEALTHY,
    HEALTHY,
    UNHEALTHY,
    PollTarget,
    ProbeStatus,
    ReadinessResult,
)


class ProgressPrinter:
    """Prints ``Checking <name> health.... ✓`` style progress lines."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

    def __call__(self, target: PollTarget, attempt: int, status: ProbeStatus) -> None:
        if attempt == 1:
            self._write(f"Checking {target.name} health")
        if status == HEALTHY:
            self._write(" ✓\n")
        elif status == UNHEALTHY:
            self._write(" ❌ (unhealthy)\n")
        else:
            self._write(".")

    def finish(self, result: ReadinessResult) -> None:
        # Healthy/unhealthy verdicts already ended their line.
        if result.failure == FAILURE_TIMED_OUT:
            self._write(" ⏰ (timeout)\n")


def failure_lines(result: ReadinessResult) -> list[str]:
    """Human readable description of a failed wait, diagnostics included."""
    kind = "unhealthy" if result.failure == FAILURE_UNHEALTHY else "timed out"
    lines = [f"❌ {result.name} failed to start properly ({kind} after {result.attempts} attempt(s))"]
    if result.diagnostics:
        lines.append(f"Checking {result.name} logs:")
        lines.append(result.diagnostics.rstrip())
    if result.diagnostics_error:
        lines.append(f"Could not collect {result.name} diagnostics: {result.diagnostics_error}")
    return lines
