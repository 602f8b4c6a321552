"""Typed loader for the stack configuration (defaults/stack.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

CHECK_KINDS = {"container", "http"}
DEFAULT_INTERVAL_SECONDS = 5
DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_LOG_TAIL = 20
DEFAULT_SETTLE_SECONDS = 10
DEFAULT_DATA_DIRS = ("data/zookeeper", "data/bookkeeper", "logs")
DEFAULT_PORTS = (("Broker Port", 6650), ("HTTP Port", 8080), ("Manager Port", 9527))
DEFAULT_ENDPOINTS = (
    ("Pulsar Broker", "http://{host}:8080"),
    ("Pulsar Admin REST API", "http://{host}:8080/admin/v2"),
    ("Pulsar Manager", "http://{host}:9527"),
    ("Pulsar Service URL", "pulsar://{host}:6650"),
)
DEFAULT_LOG_CONTAINERS = ("zookeeper", "bookie", "broker")


class ConfigError(RuntimeError):
    """Invalid or unreadable stack configuration."""


def _coerce_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    normalized = value.strip()
    if not normalized:
        raise ConfigError(f"{ctx}: must be non-empty")
    return normalized


def _coerce_optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    return _coerce_str(value, ctx)


def _coerce_positive_int(value: Any, ctx: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < 1:
        raise ConfigError(f"{ctx}: must be >= 1")
    return value


def _coerce_non_negative_number(value: Any, ctx: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx}: expected number")
    if value < 0:
        raise ConfigError(f"{ctx}: must be >= 0")
    return value


def _coerce_status(value: Any, ctx: str) -> int:
    if value is None:
        return 200
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < 100 or value > 599:
        raise ConfigError(f"{ctx}: must be a valid HTTP status code")
    return value


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected mapping")
    return value


def _require_list(value: Any, ctx: str) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigError(f"{ctx}: expected list")
    return value


def _str_tuple(value: Any, ctx: str, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items = _require_list(value, ctx)
    return tuple(_coerce_str(item, f"{ctx}[{idx}]") for idx, item in enumerate(items))


def _pick(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


@dataclass(frozen=True)
class ServiceCheck:
    """Readiness check for one service of the stack."""

    name: str
    kind: str = "container"
    container: str | None = None
    url: str | None = None
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    log_tail: int = DEFAULT_LOG_TAIL
    expected_status: int = 200
    data_dir: str | None = None

    @property
    def container_name(self) -> str:
        return self.container or self.name

    @classmethod
    def from_dict(cls, raw: Any, ctx: str = "service") -> "ServiceCheck":
        if isinstance(raw, str):
            raw = {"name": raw}
        raw = _require_mapping(raw, ctx)
        name = _coerce_str(raw.get("name"), f"{ctx}.name")

        kind = str(raw.get("kind") or "container").strip().lower()
        if kind not in CHECK_KINDS:
            raise ConfigError(f"{ctx}.kind: must be one of {sorted(CHECK_KINDS)}")

        url = _coerce_optional_str(raw.get("url"), f"{ctx}.url")
        if kind == "http" and url is None:
            raise ConfigError(f"{ctx}.url: required for http checks")

        return cls(
            name=name,
            kind=kind,
            container=_coerce_optional_str(raw.get("container"), f"{ctx}.container"),
            url=url,
            interval_seconds=_coerce_non_negative_number(
                _pick(raw, "intervalSeconds", "interval_seconds"),
                f"{ctx}.intervalSeconds",
                DEFAULT_INTERVAL_SECONDS,
            ),
            max_attempts=_coerce_positive_int(
                _pick(raw, "maxAttempts", "max_attempts"),
                f"{ctx}.maxAttempts",
                DEFAULT_MAX_ATTEMPTS,
            ),
            log_tail=_coerce_positive_int(
                _pick(raw, "logTail", "log_tail"),
                f"{ctx}.logTail",
                DEFAULT_LOG_TAIL,
            ),
            expected_status=_coerce_status(
                _pick(raw, "expectedStatus", "expected_status"),
                f"{ctx}.expectedStatus",
            ),
            data_dir=_coerce_optional_str(_pick(raw, "dataDir", "data_dir"), f"{ctx}.dataDir"),
        )


@dataclass(frozen=True)
class MonitorThresholds:
    """Limits behind the monitor recommendations."""

    memory_percent: float = 80.0
    min_free_disk_gb: float = 5.0


@dataclass(frozen=True)
class StackConfig:
    """Data class for the compose stack driven by the scripts."""

    base_dir: str = "."
    compose_file: str = "docker-compose.yml"
    project: str | None = None
    host: str = "localhost"
    data_dirs: tuple[str, ...] = DEFAULT_DATA_DIRS
    wait_for: tuple[ServiceCheck, ...] = (ServiceCheck(name="zookeeper"),)
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    ports: tuple[tuple[str, int], ...] = DEFAULT_PORTS
    endpoints: tuple[tuple[str, str], ...] = DEFAULT_ENDPOINTS
    notes: tuple[str, ...] = ()
    broker_container: str = "broker"
    broker_health_url: str = "http://{host}:8080/admin/v2/brokers/health"
    log_containers: tuple[str, ...] = DEFAULT_LOG_CONTAINERS
    volume_filter: str = "pulsar-service"
    thresholds: MonitorThresholds = field(default_factory=MonitorThresholds)

    def service(self, name: str) -> ServiceCheck | None:
        for check in self.wait_for:
            if check.name == name:
                return check
        return None

    def with_host(self, host: str | None) -> "StackConfig":
        if not host:
            return self
        return replace(self, host=host)

    def render(self, template: str) -> str:
        return template.replace("{host}", self.host)

    def compose_path(self) -> Path:
        return Path(self.base_dir) / self.compose_file

    def data_paths(self) -> list[Path]:
        return [Path(self.base_dir) / item for item in self.data_dirs]


def _resolve_within(raw_path: str, base: Path, ctx: str) -> str:
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    resolved = candidate.resolve()
    try:
        return str(resolved.relative_to(base))
    except ValueError as exc:
        raise ConfigError(f"{ctx}: path must resolve within baseDir") from exc


def _parse_ports(value: Any, ctx: str) -> tuple[tuple[str, int], ...]:
    if value is None:
        return DEFAULT_PORTS
    mapping = _require_mapping(value, ctx)
    ports = []
    for label, port in mapping.items():
        label = _coerce_str(label, f"{ctx} key")
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ConfigError(f"{ctx}.{label}: expected port number")
        ports.append((label, port))
    return tuple(ports)


def _parse_endpoints(value: Any, ctx: str) -> tuple[tuple[str, str], ...]:
    if value is None:
        return DEFAULT_ENDPOINTS
    mapping = _require_mapping(value, ctx)
    return tuple(
        (_coerce_str(label, f"{ctx} key"), _coerce_str(url, f"{ctx}.{label}"))
        for label, url in mapping.items()
    )


def _parse_thresholds(value: Any, ctx: str) -> MonitorThresholds:
    if value is None:
        return MonitorThresholds()
    raw = _require_mapping(value, ctx)
    return MonitorThresholds(
        memory_percent=_coerce_non_negative_number(
            _pick(raw, "memoryPercent", "memory_percent"), f"{ctx}.memoryPercent", 80.0
        ),
        min_free_disk_gb=_coerce_non_negative_number(
            _pick(raw, "minFreeDiskGb", "min_free_disk_gb"), f"{ctx}.minFreeDiskGb", 5.0
        ),
    )


def parse_stack_config(raw: Any, *, base_dir: Path | None = None) -> StackConfig:
    """Validate a decoded YAML document into a StackConfig."""
    if raw is None:
        raw = {}
    raw = _require_mapping(raw, "config")

    base = Path(base_dir or ".").expanduser()
    raw_base = raw.get("baseDir", raw.get("base_dir"))
    if raw_base is not None:
        candidate = Path(_coerce_str(raw_base, "baseDir")).expanduser()
        base = candidate if candidate.is_absolute() else base / candidate
    base = base.resolve()

    wait_for_raw = raw.get("waitFor", raw.get("wait_for"))
    if wait_for_raw is None:
        wait_for: tuple[ServiceCheck, ...] = (ServiceCheck(name="zookeeper"),)
    else:
        items = _require_list(wait_for_raw, "waitFor")
        wait_for = tuple(
            ServiceCheck.from_dict(item, f"waitFor[{idx}]") for idx, item in enumerate(items)
        )
        names = [check.name for check in wait_for]
        if len(set(names)) != len(names):
            raise ConfigError("waitFor: service names must be unique")

    data_dirs = tuple(
        _resolve_within(item, base, f"dataDirs[{idx}]")
        for idx, item in enumerate(_str_tuple(raw.get("dataDirs", raw.get("data_dirs")), "dataDirs", DEFAULT_DATA_DIRS))
    )

    return StackConfig(
        base_dir=str(base),
        compose_file=_resolve_within(
            _coerce_str(raw.get("composeFile", raw.get("compose_file", "docker-compose.yml")), "composeFile"),
            base,
            "composeFile",
        ),
        project=_coerce_optional_str(raw.get("project"), "project"),
        host=_coerce_str(raw.get("host", "localhost"), "host"),
        data_dirs=data_dirs,
        wait_for=wait_for,
        settle_seconds=_coerce_non_negative_number(
            _pick(raw, "settleSeconds", "settle_seconds"), "settleSeconds", DEFAULT_SETTLE_SECONDS
        ),
        ports=_parse_ports(raw.get("ports"), "ports"),
        endpoints=_parse_endpoints(raw.get("endpoints"), "endpoints"),
        notes=_str_tuple(raw.get("notes"), "notes", ()),
        broker_container=_coerce_str(
            raw.get("brokerContainer", raw.get("broker_container", "broker")), "brokerContainer"
        ),
        broker_health_url=_coerce_str(
            raw.get(
                "brokerHealthUrl",
                raw.get("broker_health_url", "http://{host}:8080/admin/v2/brokers/health"),
            ),
            "brokerHealthUrl",
        ),
        log_containers=_str_tuple(
            _pick(raw, "logContainers", "log_containers"), "logContainers", DEFAULT_LOG_CONTAINERS
        ),
        volume_filter=_coerce_str(
            raw.get("volumeFilter", raw.get("volume_filter", "pulsar-service")), "volumeFilter"
        ),
        thresholds=_parse_thresholds(raw.get("thresholds"), "thresholds"),
    )


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def load_stack_config(path: Path, *, base_dir: Path | None = None) -> StackConfig:
    """Load the stack config; relative paths resolve against ``base_dir`` (default: cwd)."""
    return parse_stack_config(_load_yaml(Path(path)), base_dir=base_dir)
