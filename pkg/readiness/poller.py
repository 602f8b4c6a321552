"""Bounded readiness polling for services started by docker compose."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

ProbeStatus = str
FailureKind = str

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
UNKNOWN = "unknown"
PROBE_STATUSES = (HEALTHY, UNHEALTHY, UNKNOWN)

FAILURE_UNHEALTHY = "unhealthy"
FAILURE_TIMED_OUT = "timed_out"

StatusCheck = Callable[[], ProbeStatus]
DiagnosticsFetch = Callable[[], str]
ProgressCallback = Callable[["PollTarget", int, ProbeStatus], None]


@dataclass(frozen=True)
class PollTarget:
    """One watched resource: identity, status check, timing and diagnostics."""

    name: str
    check: StatusCheck
    interval_seconds: float
    max_attempts: int
    on_failure: DiagnosticsFetch

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name cannot be empty")
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError("max_attempts must be an integer")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be greater than zero")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds cannot be negative")


@dataclass(frozen=True)
class ReadinessResult:
    """Verdict of one wait.

    ``failure`` is None when the target became healthy, otherwise one of
    ``FAILURE_UNHEALTHY`` / ``FAILURE_TIMED_OUT``. ``diagnostics_error`` holds
    the reason diagnostics could not be collected, next to the primary verdict.
    """

    name: str
    failure: Optional[FailureKind]
    attempts: int
    diagnostics: Optional[str] = None
    diagnostics_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.failure is None


def _collect_diagnostics(target: PollTarget) -> tuple[str | None, str | None]:
    try:
        return target.on_failure(), None
    except Exception as exc:
        return None, f"{type(exc).__name__}: {exc}"


def _failed(target: PollTarget, kind: FailureKind, attempts: int) -> ReadinessResult:
    diagnostics, diagnostics_error = _collect_diagnostics(target)
    return ReadinessResult(
        name=target.name,
        failure=kind,
        attempts=attempts,
        diagnostics=diagnostics,
        diagnostics_error=diagnostics_error,
    )


def await_ready(
    target: PollTarget,
    *,
    sleep: Callable[[float], None] = time.sleep,
    progress: ProgressCallback | None = None,
) -> ReadinessResult:
    """Poll ``target.check`` until healthy, unhealthy or out of attempts.

    Unhealthy fails fast. Unknown sleeps ``interval_seconds`` and looks again.
    Diagnostics are fetched once, only on the failure path.
    """
    attempt = 1
    while attempt <= target.max_attempts:
        status = target.check()
        if status not in PROBE_STATUSES:
            raise ValueError(f"{target.name}: unexpected probe status {status!r}")
        if progress is not None:
            progress(target, attempt, status)

        if status == HEALTHY:
            return ReadinessResult(name=target.name, failure=None, attempts=attempt)
        if status == UNHEALTHY:
            return _failed(target, FAILURE_UNHEALTHY, attempt)

        sleep(target.interval_seconds)
        attempt += 1

    return _failed(target, FAILURE_TIMED_OUT, target.max_attempts)


def await_in_order(
    targets: Iterable[PollTarget],
    *,
    sleep: Callable[[float], None] = time.sleep,
    progress: ProgressCallback | None = None,
) -> list[ReadinessResult]:
    """Await targets one at a time; stop at the first failure."""
    results = []
    for target in targets:
        result = await_ready(target, sleep=sleep, progress=progress)
        results.append(result)
        if not result.ready:
            break
    return results
