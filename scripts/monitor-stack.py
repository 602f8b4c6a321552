#!/usr/bin/env python3
"""Print a one-shot status report for the running Pulsar stack.

For continuous monitoring: ``watch -n 30 scripts/monitor-stack.py``.
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

from pkg.readiness import ConfigError, DockerCli, HttpProbe, load_stack_config
from pkg.stackmonitor import ErrorLineScanner, collect_report, render_report

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG = ROOT / "defaults" / "stack.yml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="monitor-stack.py")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG))
    parser.add_argument("--project-dir", default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--since", default="1h", help="log window scanned for errors")
    parser.add_argument("--error-pattern", action="append", default=None, help="regex, repeatable")
    parser.add_argument("--error-lines", type=int, default=5)
    return parser


def main(argv: list[str], *, cli: DockerCli | None = None, probe: HttpProbe | None = None, **collect_kwargs) -> int:
    """Main."""
    args = build_parser().parse_args(argv)

    try:
        base_dir = Path(args.project_dir) if args.project_dir else None
        config = load_stack_config(Path(args.config), base_dir=base_dir).with_host(args.host)
    except ConfigError as exc:
        print(f"monitor-stack: config error: {exc}", file=sys.stderr)
        return 2

    try:
        scanner = ErrorLineScanner(patterns=args.error_pattern or ("error",), limit=args.error_lines)
    except (ValueError, re.error) as exc:
        print(f"monitor-stack: invalid error scan options: {exc}", file=sys.stderr)
        return 2

    cli = cli or DockerCli(compose_file=str(config.compose_path()), project=config.project)
    report = collect_report(
        config,
        cli,
        probe or HttpProbe(),
        scanner=scanner,
        since=args.since,
        **collect_kwargs,
    )
    sys.stdout.write(render_report(report))
    for problem in report.errors:
        print(f"monitor-stack: {problem}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
