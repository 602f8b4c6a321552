#!/usr/bin/env python3
"""Block until compose services report healthy.

Services are awaited one at a time in the order given (or the order of
``waitFor`` in the stack config). The first service that turns unhealthy or
runs out of attempts stops the run; its recent log lines are printed.

Exit codes: 0 all ready, 1 a service failed, 2 configuration error.
"""

from __future__ import annotations

import argparse
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable

from lib.progress import ProgressPrinter, failure_lines
from pkg.readiness import (
    ConfigError,
    DockerCli,
    HttpProbe,
    ServiceCheck,
    StackConfig,
    await_ready,
    build_target,
    load_stack_config,
)

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG = ROOT / "defaults" / "stack.yml"


def _error(message: str) -> None:
    print(f"await-ready: {message}", file=sys.stderr)


def _select_services(config: StackConfig, names: list[str], containers: list[str]) -> list[ServiceCheck]:
    if not names and not containers:
        return list(config.wait_for)

    selected = []
    for name in names:
        service = config.service(name)
        if service is None:
            raise ConfigError(f"unknown service: {name}")
        selected.append(service)
    for container in containers:
        selected.append(ServiceCheck(name=container, container=container))
    return selected


def _apply_overrides(service: ServiceCheck, args: argparse.Namespace) -> ServiceCheck:
    overrides = {}
    if args.max_attempts is not None:
        overrides["max_attempts"] = args.max_attempts
    if args.interval is not None:
        overrides["interval_seconds"] = args.interval
    if args.log_tail is not None:
        overrides["log_tail"] = args.log_tail
    return replace(service, **overrides) if overrides else service


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return value


def _non_negative_float(raw: str) -> float:
    value = float(raw)
    if value < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="await-ready.py")
    parser.add_argument("services", nargs="*", help="configured service names (default: waitFor)")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG))
    parser.add_argument("--project-dir", default=None, help="directory relative paths resolve against")
    parser.add_argument("--container", action="append", default=[], help="ad-hoc container to await")
    parser.add_argument("--host", default=None)
    parser.add_argument("--max-attempts", type=_positive_int, default=None)
    parser.add_argument("--interval", type=_non_negative_float, default=None)
    parser.add_argument("--log-tail", type=_positive_int, default=None)
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
        services = [_apply_overrides(item, args) for item in _select_services(config, args.services, args.container)]
    except ConfigError as exc:
        _error(f"config error: {exc}")
        return 2

    cli = cli or DockerCli(compose_file=str(config.compose_path()), project=config.project)
    probe = probe or HttpProbe()
    printer = ProgressPrinter()

    for service in services:
        result = await_ready(build_target(service, config, cli, probe), sleep=sleep, progress=printer)
        printer.finish(result)
        if not result.ready:
            for line in failure_lines(result):
                print(line, file=sys.stderr)
            return 1
        print(f"{service.name} is healthy")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
