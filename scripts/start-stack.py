#!/usr/bin/env python3
"""Start the Pulsar compose stack and gate on service readiness.

Steps: prepare host data directories, check docker / docker compose, tear
down leftovers, pull images, ``up -d``, await the ``waitFor`` services in
order, then print the stack status and service URLs.
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from lib.progress import ProgressPrinter, failure_lines
from pkg.readiness import (
    ConfigError,
    DockerCli,
    DockerError,
    HttpProbe,
    StackConfig,
    await_in_order,
    build_targets,
    load_stack_config,
    prepare_data_dir,
)

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG = ROOT / "defaults" / "stack.yml"
TROUBLESHOOT_LOG_TAIL = 50


def _error(message: str) -> None:
    print(f"start-stack: {message}", file=sys.stderr)


def _warn(message: str) -> None:
    print(f"start-stack: warning: {message}", file=sys.stderr)


def _step(number: int, title: str) -> None:
    print("")
    print(f"{number}. {title}")


def _print_header() -> None:
    print("=== Apache Pulsar Service Startup ===")
    print(f"Current directory: {os.getcwd()}")
    print(f"Date: {datetime.now().isoformat(timespec='seconds')}")
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    print(f"User: {user}")
    if hasattr(os, "getuid"):
        print(f"UID: {os.getuid()}, GID: {os.getgid()}")


def _prepare_directories(config: StackConfig) -> None:
    for path in config.data_paths():
        report = prepare_data_dir(path)
        for warning in report.warnings:
            _warn(warning)
        owner = f" (owner {report.owner[0]}:{report.owner[1]})" if report.owner else ""
        print(f"✓ Directory setup completed: {report.path}{owner}")


def _list_directory(path: Path) -> str:
    try:
        entries = sorted(item.name for item in path.iterdir())
    except OSError as exc:
        return f"Cannot access {path}: {exc}"
    return "\n".join(f"  {name}" for name in entries) or "  (empty)"


def _troubleshoot(config: StackConfig, cli: DockerCli, name: str) -> None:
    print("", file=sys.stderr)
    print("Troubleshooting information:", file=sys.stderr)
    for path in config.data_paths():
        if name in path.name:
            print(f"Host data directory {path}:", file=sys.stderr)
            print(_list_directory(path), file=sys.stderr)

    service = config.service(name)
    if service is None or service.kind != "container":
        return
    container = service.container_name
    if service.data_dir:
        print(f"Container data directory {service.data_dir}:", file=sys.stderr)
        try:
            print(cli.exec(container, "ls", "-la", service.data_dir).rstrip(), file=sys.stderr)
        except DockerError as exc:
            print(f"Cannot access container directory: {exc}", file=sys.stderr)
    print(f"{name} container logs:", file=sys.stderr)
    try:
        print(cli.container_logs(container, TROUBLESHOOT_LOG_TAIL).rstrip(), file=sys.stderr)
    except DockerError as exc:
        print(f"Cannot read container logs: {exc}", file=sys.stderr)


def _print_summary(config: StackConfig, cli: DockerCli) -> None:
    _step(8, "Service Status:")
    try:
        print(cli.compose("ps").stdout.rstrip())
    except DockerError as exc:
        _warn(f"could not read stack status: {exc}")

    _step(9, "Service URLs:")
    width = max((len(label) for label, _url in config.endpoints), default=0) + 1
    for label, url in config.endpoints:
        print(f"{label + ':':<{width}}  {config.render(url)}")
    if config.notes:
        print("")
        for note in config.notes:
            print(note)

    command = " ".join(cli.compose_command())
    print("")
    print("🎉 Apache Pulsar services started successfully!")
    print("")
    print(f"To stop the services, run:\n  {command} down")
    print("To view logs for a specific service, run:\n  docker logs <service-name> -f")
    print(f"To check service status:\n  {command} ps")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="start-stack.py")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG))
    parser.add_argument("--project-dir", default=None, help="directory relative paths resolve against")
    parser.add_argument("--host", default=None, help="host printed in the service URLs")
    parser.add_argument("--skip-pull", action="store_true")
    parser.add_argument("--skip-dirs", action="store_true", help="do not touch host data directories")
    return parser


def main(
    argv: list[str],
    *,
    cli: DockerCli | None = None,
    probe: HttpProbe | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Main."""
    args = build_parser().parse_args(argv)

    try:
        base_dir = Path(args.project_dir) if args.project_dir else None
        config = load_stack_config(Path(args.config), base_dir=base_dir).with_host(args.host)
    except ConfigError as exc:
        _error(f"config error: {exc}")
        return 2

    cli = cli or DockerCli(compose_file=str(config.compose_path()), project=config.project)
    probe = probe or HttpProbe()

    _print_header()

    _step(1, "Creating required data directories with proper permissions...")
    if args.skip_dirs:
        print("Skipped.")
    else:
        try:
            _prepare_directories(config)
        except OSError as exc:
            _error(f"could not create data directory: {exc}")
            return 1

    _step(2, "Checking Docker and Docker Compose...")
    if not cli.docker_available():
        _error("Docker is not running or not installed. Make sure Docker is running and try again.")
        return 1
    print("✓ Docker is running")
    try:
        cli.compose_command()
    except DockerError as exc:
        _error(str(exc))
        return 1
    print("✓ Docker Compose is available")

    try:
        _step(3, "Cleaning up any existing containers...")
        cli.compose("down", "--remove-orphans", check=False)

        _step(4, "Pulling latest images...")
        if args.skip_pull:
            print("Skipped.")
        else:
            cli.compose("pull")

        _step(5, "Starting Apache Pulsar services...")
        print("This may take a few minutes for the first startup...")
        cli.compose("up", "-d")
    except DockerError as exc:
        _error(str(exc))
        return 1

    _step(6, "Waiting for services to be healthy...")
    printer = ProgressPrinter()
    results = await_in_order(build_targets(config.wait_for, config, cli, probe), sleep=sleep, progress=printer)
    for result in results:
        printer.finish(result)
        if result.ready:
            print(f"{result.name} is healthy")
            continue
        for line in failure_lines(result):
            print(line, file=sys.stderr)
        _troubleshoot(config, cli, result.name)
        return 1

    _step(7, f"Letting dependent services settle for {config.settle_seconds:g}s...")
    sleep(config.settle_seconds)

    _print_summary(config, cli)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
