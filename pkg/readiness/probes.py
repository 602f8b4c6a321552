from __future__ import annotations

import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from urllib import error
from urllib import request

from .config import ServiceCheck
from .poller import HEALTHY, UNKNOWN, PollTarget

HttpOpen = Callable[[request.Request, float], object]
DEFAULT_TIMEOUT_SECONDS = 5


@dataclass(frozen=True)
class ProbeResult:
    """Data class for one HTTP probe."""
    url: str
    ok: bool
    status_code: int | None
    response_time_ms: int
    timestamp: str
    error: str | None = None


def _default_opener(req: request.Request, timeout_seconds: float) -> object:
    return request.urlopen(req, timeout=timeout_seconds)


@dataclass
class HttpProbe:
    """Data class for HTTP Probe."""
    opener: HttpOpen | None = None

    def __post_init__(self) -> None:
        if self.opener is None:
            self.opener = _default_opener

    def _build_result(self, url: str, status_code: int | None, expected_status: int, started: float, error: str | None = None) -> ProbeResult:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if error is None and status_code != expected_status:
            error = f"expected status {expected_status}, got {status_code}"
        return ProbeResult(
            url=url,
            ok=error is None,
            status_code=status_code,
            response_time_ms=elapsed_ms,
            timestamp=datetime.now(timezone.utc).isoformat(),
            error=error,
        )

    def perform(self, url: str, *, expected_status: int = 200, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> ProbeResult:
        """Perform probe."""
        started = time.perf_counter()
        req = request.Request(url, method="GET")
        opener = self.opener or _default_opener

        try:
            with opener(req, timeout_seconds) as response:
                status_code = int(getattr(response, "status", 0))
                return self._build_result(url, status_code, expected_status, started)

        except error.HTTPError as exc:
            # urllib raises on non-2xx, the status code is still meaningful.
            return self._build_result(url, int(getattr(exc, "code", 0)), expected_status, started)

        except error.URLError as exc:
            reason = str(exc.reason) if hasattr(exc, "reason") else str(exc)
            return self._build_result(url, None, expected_status, started, reason)
        except (OSError, ValueError) as exc:
            return self._build_result(url, None, expected_status, started, str(exc) or type(exc).__name__)


def port_open(host: str, port: int, timeout_seconds: float = 2.0) -> bool:
    """TCP connect check."""
    try:
        with socket.create_connection((host, port), timeout=timeout_seconds):
            return True
    except OSError:
        return False


def http_target(probe: HttpProbe, service: ServiceCheck, url: str) -> PollTarget:
    """PollTarget for an HTTP endpoint; a failed probe means "not ready yet"."""
    last: list[ProbeResult] = []

    def check() -> str:
        result = probe.perform(url, expected_status=service.expected_status)
        last[:] = [result]
        return HEALTHY if result.ok else UNKNOWN

    def diagnostics() -> str:
        if not last:
            return f"{url}: no probe was performed"
        return f"{url}: {last[0].error or 'no error recorded'}"

    return PollTarget(
        name=service.name,
        check=check,
        interval_seconds=service.interval_seconds,
        max_attempts=service.max_attempts,
        on_failure=diagnostics,
    )
