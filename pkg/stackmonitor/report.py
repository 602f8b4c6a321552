"""One-shot status report for a running Pulsar stack."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from pkg.readiness.config import StackConfig
from pkg.readiness.docker import DockerCli, DockerError
from pkg.readiness.probes import HttpProbe, ProbeResult, port_open

from .logscan import ErrorLine, ErrorLineScanner, distinct_signatures

STATS_TEMPLATE = "table {{.Container}}\t{{.CPUPerc}}\t{{.MemUsage}}\t{{.MemPerc}}\t{{.NetIO}}\t{{.BlockIO}}"
PS_STATE_TEMPLATE = "{{.Name}}\t{{.State}}"
MEMINFO_KEYS = ("MemTotal", "MemFree", "MemAvailable")
UNAVAILABLE = "unavailable"

PortCheck = Callable[[str, int], bool]
DiskUsage = Callable[[str], object]


@dataclass
class MonitorReport:
    """Everything the monitor collected; None marks a section that could not be read."""

    generated_at: str
    compose_ps: str | None = None
    containers_total: int | None = None
    containers_running: int | None = None
    stats: str | None = None
    broker_health: ProbeResult | None = None
    topic_count: int | None = None
    namespaces: list[str] | None = None
    volumes: dict[str, str] | None = None
    recent_errors: dict[str, list[ErrorLine] | None] = field(default_factory=dict)
    broker_meminfo: list[str] | None = None
    broker_memory_percent: float | None = None
    ports: list[tuple[str, int, bool]] = field(default_factory=list)
    disk_free_gb: float | None = None
    recommendations: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _parse_percent(raw: str) -> float | None:
    text = raw.strip().rstrip("%").strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _count_states(output: str) -> tuple[int, int]:
    total = 0
    running = 0
    for line in output.splitlines():
        if not line.strip():
            continue
        total += 1
        _name, _sep, state = line.partition("\t")
        if state.strip().lower() == "running":
            running += 1
    return total, running


def recommendations(report: MonitorReport, config: StackConfig) -> list[str]:
    """Operator hints derived from the collected numbers."""
    hints = []
    if (
        report.containers_total is not None
        and report.containers_running is not None
        and report.containers_running < report.containers_total
    ):
        hints.append("Some containers are not running. Check logs and restart if needed.")

    limit = config.thresholds.memory_percent
    if report.broker_memory_percent is not None and report.broker_memory_percent > limit:
        hints.append(
            f"High memory usage detected ({report.broker_memory_percent:.1f}%). "
            "Consider increasing memory allocation."
        )

    min_disk = config.thresholds.min_free_disk_gb
    if report.disk_free_gb is not None and report.disk_free_gb < min_disk:
        hints.append(
            f"Low disk space ({report.disk_free_gb:.1f}GB remaining). Consider cleanup or expansion."
        )
    return hints


class _Collector:
    def __init__(self, report: MonitorReport) -> None:
        self.report = report

    def attempt(self, section: str, fn: Callable[[], object]) -> object | None:
        try:
            return fn()
        except (DockerError, OSError, ValueError) as exc:
            self.report.errors.append(f"{section}: {exc}")
            return None


def collect_report(
    config: StackConfig,
    cli: DockerCli,
    probe: HttpProbe,
    *,
    scanner: ErrorLineScanner | None = None,
    port_check: PortCheck = port_open,
    disk_usage: DiskUsage = shutil.disk_usage,
    since: str = "1h",
) -> MonitorReport:
    """Collect every report section; a failing section is recorded, not raised."""
    report = MonitorReport(generated_at=datetime.now(timezone.utc).isoformat())
    collect = _Collector(report)
    scanner = scanner or ErrorLineScanner()

    ps = collect.attempt("compose ps", lambda: cli.compose("ps").stdout)
    report.compose_ps = ps if isinstance(ps, str) else None
    states = collect.attempt(
        "container states", lambda: cli.compose("ps", "--all", "--format", PS_STATE_TEMPLATE).stdout
    )
    if isinstance(states, str):
        report.containers_total, report.containers_running = _count_states(states)

    stats = collect.attempt("docker stats", lambda: cli.stats(STATS_TEMPLATE))
    report.stats = stats if isinstance(stats, str) else None

    report.broker_health = probe.perform(config.render(config.broker_health_url))

    broker = config.broker_container
    topics = collect.attempt(
        "topics", lambda: cli.exec(broker, "bin/pulsar-admin", "topics", "list", "public/default")
    )
    if isinstance(topics, str):
        report.topic_count = len([line for line in topics.splitlines() if line.strip()])
    namespaces = collect.attempt("namespaces", lambda: cli.exec(broker, "bin/pulsar-admin", "namespaces", "list"))
    if isinstance(namespaces, str):
        report.namespaces = [line.strip() for line in namespaces.splitlines() if line.strip()]

    volumes = collect.attempt("volumes", lambda: cli.volumes(config.volume_filter))
    if isinstance(volumes, list):
        report.volumes = {}
        for volume in volumes:
            size = collect.attempt(f"volume {volume}", lambda volume=volume: cli.volume_size(volume))
            report.volumes[volume] = size if isinstance(size, str) and size else UNAVAILABLE

    for container in config.log_containers:
        logs = collect.attempt(f"{container} logs", lambda container=container: cli.logs_since(container, since))
        report.recent_errors[container] = scanner.scan(container, logs) if isinstance(logs, str) else None

    meminfo = collect.attempt("broker meminfo", lambda: cli.exec(broker, "cat", "/proc/meminfo"))
    if isinstance(meminfo, str):
        report.broker_meminfo = [
            line.strip() for line in meminfo.splitlines() if line.split(":", 1)[0] in MEMINFO_KEYS
        ]
    memory = collect.attempt("broker memory", lambda: cli.stats("{{.MemPerc}}", broker))
    if isinstance(memory, str):
        report.broker_memory_percent = _parse_percent(memory)

    report.ports = [(label, port, port_check(config.host, port)) for label, port in config.ports]

    usage = collect.attempt("disk usage", lambda: disk_usage(config.base_dir))
    if usage is not None:
        report.disk_free_gb = getattr(usage, "free") / (1024 ** 3)

    report.recommendations = recommendations(report, config)
    return report


def _section(lines: list[str], title: str) -> None:
    if lines:
        lines.append("")
    lines.append(title)
    lines.append("=" * len(title))


def render_report(report: MonitorReport) -> str:
    """Render the report as the sectioned plain text printed by monitor-stack."""
    lines: list[str] = ["=== Apache Pulsar Monitoring ===", f"Date: {report.generated_at}"]

    _section(lines, "1. Service Health Status:")
    lines.append((report.compose_ps or UNAVAILABLE).rstrip())

    _section(lines, "2. Resource Usage:")
    lines.append((report.stats or UNAVAILABLE).rstrip())

    _section(lines, "3. Pulsar Cluster Status:")
    health = report.broker_health
    if health is not None and health.ok:
        lines.append("Broker Status: ✓ Healthy")
    else:
        detail = f" ({health.error})" if health is not None and health.error else ""
        lines.append(f"Broker Status: ❌ Unhealthy{detail}")
    lines.append(f"Active Topics: {report.topic_count if report.topic_count is not None else UNAVAILABLE}")
    lines.append("Namespaces:")
    if report.namespaces is None:
        lines.append(f"  {UNAVAILABLE}")
    else:
        lines.extend(f"  - {name}" for name in report.namespaces)

    _section(lines, "4. Storage Usage:")
    if report.volumes is None:
        lines.append(f"Volumes: {UNAVAILABLE}")
    elif not report.volumes:
        lines.append("Volumes: none")
    else:
        lines.extend(f"  {name}: {size}" for name, size in report.volumes.items())

    _section(lines, "5. Recent Errors:")
    for container, errors in report.recent_errors.items():
        lines.append(f"{container} errors:")
        if errors is None:
            lines.append(f"  {UNAVAILABLE}")
        elif not errors:
            lines.append("  No recent errors")
        else:
            lines.extend(f"  {item.message}" for item in errors)
            distinct = len(distinct_signatures(errors))
            if distinct < len(errors):
                lines.append(f"  ({distinct} distinct)")

    _section(lines, "6. Performance Metrics:")
    if health is not None and health.ok:
        lines.append(f"Admin API Response Time: {health.response_time_ms}ms")
    else:
        lines.append("Admin API Response Time: Failed")
    lines.append("Container Memory Details:")
    if report.broker_meminfo:
        lines.extend(f"  {line}" for line in report.broker_meminfo)
    else:
        lines.append("  Unable to get memory info")

    _section(lines, "7. Network Connectivity:")
    for label, port, is_open in report.ports:
        lines.append(f"{label} {port}: {'✓ Open' if is_open else '❌ Closed'}")

    _section(lines, "8. Recommendations:")
    if report.recommendations:
        lines.extend(f"⚠️  {hint}" for hint in report.recommendations)
    else:
        lines.append("No issues detected.")

    lines.append("")
    lines.append(f"Monitor completed at {report.generated_at}")
    lines.append("For continuous monitoring, run:")
    lines.append("  watch -n 30 scripts/monitor-stack.py")
    return "\n".join(lines) + "\n"
