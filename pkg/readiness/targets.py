from __future__ import annotations

from .config import ServiceCheck, StackConfig
from .docker import DockerCli, container_target
from .poller import PollTarget
from .probes import HttpProbe, http_target


def build_target(service: ServiceCheck, config: StackConfig, cli: DockerCli, probe: HttpProbe) -> PollTarget:
    if service.kind == "http":
        return http_target(probe, service, config.render(service.url or ""))
    return container_target(cli, service)


def build_targets(
    services: list[ServiceCheck] | tuple[ServiceCheck, ...],
    config: StackConfig,
    cli: DockerCli,
    probe: HttpProbe,
) -> list[PollTarget]:
    """PollTargets in the configured order, foundational service first."""
    return [build_target(service, config, cli, probe) for service in services]
