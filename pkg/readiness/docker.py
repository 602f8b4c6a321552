"""Docker and docker compose CLI wrappers.

Status and log queries here back the ``check`` / ``on_failure`` pair of a
``PollTarget`` for a compose-managed container.
"""
from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .config import ServiceCheck
from .poller import HEALTHY, UNHEALTHY, UNKNOWN, PollTarget, ProbeStatus

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

DEFAULT_TIMEOUT_SECONDS = 60
# pull/up can take minutes on a cold image cache
COMPOSE_TIMEOUT_SECONDS = 900


class DockerError(RuntimeError):
    """A docker command failed or docker is not available."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def _run(
    run: Runner,
    args: Sequence[str],
    *,
    check: bool = True,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> subprocess.CompletedProcess[str]:
    try:
        result = run(list(args), capture_output=True, text=True, check=False, timeout=timeout)
    except FileNotFoundError as exc:
        raise DockerError(f"{args[0]} executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise DockerError(f"{' '.join(args)} timed out after {timeout}s") from exc
    except OSError as exc:
        raise DockerError(f"could not run {args[0]}: {exc}") from exc

    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise DockerError(
            f"{' '.join(args)} failed with exit code {result.returncode}: {stderr}",
            returncode=result.returncode,
            stderr=stderr,
        )
    return result


def detect_compose_command(run: Runner = subprocess.run) -> tuple[str, ...]:
    """Prefer the compose v2 plugin, fall back to the legacy binary."""
    for candidate, version_args in (
        (("docker", "compose"), ("docker", "compose", "version")),
        (("docker-compose",), ("docker-compose", "--version")),
    ):
        try:
            result = _run(run, version_args, check=False)
        except DockerError:
            continue
        if result.returncode == 0:
            return candidate
    raise DockerError("Docker Compose is not available")


def _output_lines(text: str | None) -> list[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


@dataclass
class DockerCli:
    """Thin wrapper over the docker CLI with an injectable runner."""

    run: Runner = subprocess.run
    compose_file: str | None = None
    project: str | None = None
    _compose_command: tuple[str, ...] | None = field(default=None, init=False, repr=False)

    def docker_available(self) -> bool:
        try:
            return _run(self.run, ["docker", "info"], check=False).returncode == 0
        except DockerError:
            return False

    def compose_command(self) -> tuple[str, ...]:
        if self._compose_command is None:
            self._compose_command = detect_compose_command(self.run)
        return self._compose_command

    def compose(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a compose subcommand against the configured file/project."""
        command = list(self.compose_command())
        if self.compose_file:
            command += ["-f", self.compose_file]
        if self.project:
            command += ["-p", self.project]
        return _run(self.run, [*command, *args], check=check, timeout=COMPOSE_TIMEOUT_SECONDS)

    def _names_with_health(self, name: str, health: str) -> list[str]:
        result = _run(
            self.run,
            ["docker", "ps", "--filter", f"name={name}", "--filter", f"health={health}", "--format", "{{.Names}}"],
        )
        return _output_lines(result.stdout)

    def container_status(self, name: str) -> ProbeStatus:
        """Map the container's health label to a probe status.

        ``docker ps --filter name=`` is a substring match, so the names are
        compared exactly. A container that does not exist yet is UNKNOWN, and
        so is a failed query: the attempt budget still bounds the wait.
        """
        try:
            if name in self._names_with_health(name, "healthy"):
                return HEALTHY
            if name in self._names_with_health(name, "unhealthy"):
                return UNHEALTHY
        except DockerError:
            return UNKNOWN
        return UNKNOWN

    def container_logs(self, name: str, tail: int) -> str:
        result = _run(self.run, ["docker", "logs", name, "--tail", str(tail)])
        return (result.stdout or "") + (result.stderr or "")

    def logs_since(self, name: str, since: str = "1h") -> str:
        result = _run(self.run, ["docker", "logs", name, f"--since={since}"])
        return (result.stdout or "") + (result.stderr or "")

    def exec(self, name: str, *command: str) -> str:
        return _run(self.run, ["docker", "exec", name, *command]).stdout or ""

    def stats(self, template: str, *containers: str) -> str:
        return _run(self.run, ["docker", "stats", "--no-stream", "--format", template, *containers]).stdout or ""

    def volumes(self, name_filter: str | None = None) -> list[str]:
        result = _run(self.run, ["docker", "volume", "ls", "--format", "{{.Name}}"])
        names = _output_lines(result.stdout)
        if name_filter:
            names = [item for item in names if name_filter in item]
        return names

    def volume_size(self, volume: str) -> str:
        """Human readable size of a named volume, measured from a throwaway container."""
        result = _run(
            self.run,
            ["docker", "run", "--rm", "-v", f"{volume}:/data", "alpine", "du", "-sh", "/data"],
            timeout=COMPOSE_TIMEOUT_SECONDS,
        )
        fields = (result.stdout or "").split()
        return fields[0] if fields else ""


def container_target(cli: DockerCli, service: ServiceCheck) -> PollTarget:
    """Build a PollTarget watching a compose container's health label."""
    container = service.container_name

    return PollTarget(
        name=service.name,
        check=lambda: cli.container_status(container),
        interval_seconds=service.interval_seconds,
        max_attempts=service.max_attempts,
        on_failure=lambda: cli.container_logs(container, service.log_tail),
    )
