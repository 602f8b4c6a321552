"""Readiness gating for the docker compose Pulsar stack."""

from .config import ConfigError, ServiceCheck, StackConfig, load_stack_config
from .docker import DockerCli, DockerError, container_target
from .poller import (
    FAILURE_TIMED_OUT,
    FAILURE_UNHEALTHY,
    HEALTHY,
    UNHEALTHY,
    UNKNOWN,
    PollTarget,
    ReadinessResult,
    await_in_order,
    await_ready,
)
from .probes import HttpProbe, ProbeResult, http_target, port_open
from .targets import build_target, build_targets
from .workspace import DirectoryReport, prepare_data_dir

__all__ = [
    "ConfigError",
    "DirectoryReport",
    "DockerCli",
    "DockerError",
    "FAILURE_TIMED_OUT",
    "FAILURE_UNHEALTHY",
    "HEALTHY",
    "HttpProbe",
    "PollTarget",
    "ProbeResult",
    "ReadinessResult",
    "ServiceCheck",
    "StackConfig",
    "UNHEALTHY",
    "UNKNOWN",
    "await_in_order",
    "await_ready",
    "build_target",
    "build_targets",
    "container_target",
    "http_target",
    "load_stack_config",
    "port_open",
    "prepare_data_dir",
]
