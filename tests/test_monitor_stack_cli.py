"""Tests for scripts/monitor-stack.py."""
from __future__ import annotations

from collections import namedtuple
from urllib import error

from conftest import FakeDocker, monitor_stack
from pkg.readiness import DockerCli, HttpProbe

main = monitor_stack.main
Usage = namedtuple("Usage", "total used free")


def _write_config(tmp_path):
    p = tmp_path / "stack.yml"
    p.write_text("logContainers: [broker]\nports:\n  HTTP Port: 8080\n")
    return str(p)


def _route(args):
    if args[:2] == ["docker", "logs"]:
        return 0, "INFO up\nERROR first\nException in thread main\n", ""
    return 0, "", ""


def _refused(_req, _timeout):
    raise error.URLError("Connection refused")


def test_prints_report_and_exits_zero(tmp_path, capsys):
    code = main(
        ["--config", _write_config(tmp_path), "--project-dir", str(tmp_path)],
        cli=DockerCli(run=FakeDocker(_route)),
        probe=HttpProbe(opener=_refused),
        port_check=lambda _host, _port: False,
        disk_usage=lambda _path: Usage(1, 0, 100 * 1024 ** 3),
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "=== Apache Pulsar Monitoring ===" in out
    assert "broker errors:\n  ERROR first" in out
    assert "HTTP Port 8080: ❌ Closed" in out
    assert "Broker Status: ❌ Unhealthy" in out
    assert "Monitor completed at " in out
    assert "watch -n 30 scripts/monitor-stack.py" in out


def test_custom_error_patterns(tmp_path, capsys):
    code = main(
        [
            "--config", _write_config(tmp_path),
            "--project-dir", str(tmp_path),
            "--error-pattern", "exception",
            "--error-lines", "1",
        ],
        cli=DockerCli(run=FakeDocker(_route)),
        probe=HttpProbe(opener=_refused),
        port_check=lambda _host, _port: True,
        disk_usage=lambda _path: Usage(1, 0, 100 * 1024 ** 3),
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "  Exception in thread main" in out
    assert "  ERROR first" not in out


def test_collection_problems_go_to_stderr(tmp_path, capsys):
    code = main(
        ["--config", _write_config(tmp_path), "--project-dir", str(tmp_path)],
        cli=DockerCli(run=FakeDocker(lambda _args: (1, "", "daemon down"))),
        probe=HttpProbe(opener=_refused),
        port_check=lambda _host, _port: False,
        disk_usage=lambda _path: Usage(1, 0, 100 * 1024 ** 3),
    )
    assert code == 0
    assert "monitor-stack: broker logs:" in capsys.readouterr().err


def test_invalid_pattern_is_usage_error(tmp_path, capsys):
    code = main(
        ["--config", _write_config(tmp_path), "--error-pattern", "("],
        cli=DockerCli(run=FakeDocker()),
    )
    assert code == 2
    assert "invalid error scan options" in capsys.readouterr().err
