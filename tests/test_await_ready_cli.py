"""Tests for scripts/await-ready.py."""
from __future__ import annotations

from pathlib import Path

from conftest import FakeDocker, await_ready_script
from pkg.readiness import DockerCli

main = await_ready_script.main


def _write_config(tmp_path: Path) -> str:
    p = tmp_path / "stack.yml"
    p.write_text(
        """
waitFor:
  - name: zookeeper
    maxAttempts: 3
    intervalSeconds: 5
  - name: broker
    maxAttempts: 2
    intervalSeconds: 5
"""
    )
    return str(p)


def _route(statuses: dict[str, list[str]], logs: str = "ERROR something broke\n"):
    """statuses maps container -> sequence of health states, last one repeats."""

    def route(args):
        if args[:2] == ["docker", "ps"]:
            name = next(a.split("=", 1)[1] for a in args if a.startswith("name="))
            health = next(a.split("=", 1)[1] for a in args if a.startswith("health="))
            sequence = statuses.get(name, ["starting"])
            current = sequence[0]
            if health == "unhealthy" and len(sequence) > 1:
                sequence.pop(0)
            if health == "healthy" and current == "healthy":
                return 0, f"{name}\n", ""
            if health == "unhealthy" and current == "unhealthy":
                return 0, f"{name}\n", ""
            return 0, "", ""
        if args[:2] == ["docker", "logs"]:
            return 0, logs, ""
        return 0, "", ""

    return route


class _Sleeps(list):
    def __call__(self, seconds):
        self.append(seconds)


def test_all_services_ready(tmp_path, capsys):
    sleeps = _Sleeps()
    route = _route({"zookeeper": ["starting", "healthy"], "broker": ["healthy"]})
    code = main(
        ["--config", _write_config(tmp_path), "--project-dir", str(tmp_path)],
        cli=DockerCli(run=FakeDocker(route)),
        sleep=sleeps,
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Checking zookeeper health. ✓" in out
    assert "zookeeper is healthy" in out
    assert "broker is healthy" in out
    assert sleeps == [5]


def test_unhealthy_service_stops_and_prints_logs(tmp_path, capsys):
    fake = FakeDocker(_route({"zookeeper": ["unhealthy"], "broker": ["healthy"]}))
    code = main(
        ["--config", _write_config(tmp_path), "--project-dir", str(tmp_path)],
        cli=DockerCli(run=fake),
        sleep=_Sleeps(),
    )
    assert code == 1
    captured = capsys.readouterr()
    assert "❌ (unhealthy)" in captured.out
    assert "zookeeper failed to start properly (unhealthy after 1 attempt(s))" in captured.err
    assert "ERROR something broke" in captured.err
    assert not [call for call in fake.calls if "name=broker" in call]


def test_timeout_reports_timed_out(tmp_path, capsys):
    sleeps = _Sleeps()
    code = main(
        ["broker", "--config", _write_config(tmp_path), "--project-dir", str(tmp_path)],
        cli=DockerCli(run=FakeDocker(_route({}))),
        sleep=sleeps,
    )
    assert code == 1
    captured = capsys.readouterr()
    assert "⏰ (timeout)" in captured.out
    assert "broker failed to start properly (timed out after 2 attempt(s))" in captured.err
    assert sleeps == [5, 5]


def test_overrides_apply_to_ad_hoc_container(tmp_path, capsys):
    sleeps = _Sleeps()
    fake = FakeDocker(_route({}))
    code = main(
        [
            "--config", _write_config(tmp_path),
            "--project-dir", str(tmp_path),
            "--container", "pulsar-manager",
            "--max-attempts", "4",
            "--interval", "0",
            "--log-tail", "7",
        ],
        cli=DockerCli(run=fake),
        sleep=sleeps,
    )
    assert code == 1
    assert sleeps == [0, 0, 0, 0]
    assert fake.commands("docker", "logs") == [["docker", "logs", "pulsar-manager", "--tail", "7"]]


def test_unknown_service_is_config_error(tmp_path, capsys):
    code = main(
        ["bookie", "--config", _write_config(tmp_path)],
        cli=DockerCli(run=FakeDocker()),
        sleep=_Sleeps(),
    )
    assert code == 2
    assert "unknown service: bookie" in capsys.readouterr().err


def test_missing_config_is_config_error(tmp_path, capsys):
    code = main(["--config", str(tmp_path / "missing.yml")], cli=DockerCli(run=FakeDocker()))
    assert code == 2
    assert "missing config file" in capsys.readouterr().err
