from __future__ import annotations

import io
import socket
from urllib import error

from pkg.readiness import (
    FAILURE_TIMED_OUT,
    HttpProbe,
    ServiceCheck,
    await_ready,
    http_target,
    port_open,
)


class _ContextResponse:
    def __init__(self, status: int):
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        return None


def _raise(exc):
    def opener(_req, _timeout):
        raise exc

    return opener


def test_probe_ok_on_expected_status():
    probe = HttpProbe(opener=lambda _req, _timeout: _ContextResponse(200))
    result = probe.perform("http://broker:8080/admin/v2/brokers/health")
    assert result.ok
    assert result.status_code == 200
    assert result.error is None
    assert result.response_time_ms >= 0


def test_probe_status_mismatch():
    probe = HttpProbe(opener=lambda _req, _timeout: _ContextResponse(204))
    result = probe.perform("http://broker:8080", expected_status=200)
    assert not result.ok
    assert result.error == "expected status 200, got 204"


def test_probe_http_error_keeps_status_code():
    http_error = error.HTTPError(
        url="http://broker:8080", code=503, msg="unavailable", hdrs=None, fp=io.BytesIO(b"")
    )
    result = HttpProbe(opener=_raise(http_error)).perform("http://broker:8080")
    assert not result.ok
    assert result.status_code == 503


def test_probe_connection_refused():
    result = HttpProbe(opener=_raise(error.URLError("Connection refused"))).perform("http://broker:8080")
    assert not result.ok
    assert result.status_code is None
    assert "Connection refused" in (result.error or "")


def test_probe_socket_timeout():
    result = HttpProbe(opener=_raise(socket.timeout("timed out"))).perform("http://broker:8080")
    assert not result.ok
    assert "timed out" in (result.error or "")


def test_http_target_not_answering_is_unknown_until_timeout():
    service = ServiceCheck(name="broker-admin", kind="http", url="x", max_attempts=3, interval_seconds=0)
    probe = HttpProbe(opener=_raise(error.URLError("Connection refused")))
    result = await_ready(http_target(probe, service, "http://broker:8080/health"), sleep=lambda _s: None)
    assert result.failure == FAILURE_TIMED_OUT
    assert result.attempts == 3
    assert result.diagnostics == "http://broker:8080/health: Connection refused"


def test_http_target_becomes_ready():
    responses = [error.URLError("refused"), None]

    def opener(_req, _timeout):
        item = responses.pop(0)
        if item is not None:
            raise item
        return _ContextResponse(200)

    service = ServiceCheck(name="broker-admin", kind="http", url="x", max_attempts=3, interval_seconds=0)
    result = await_ready(http_target(HttpProbe(opener=opener), service, "http://b"), sleep=lambda _s: None)
    assert result.ready
    assert result.attempts == 2


def test_port_open_against_local_listener():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]
        assert port_open("127.0.0.1", port)


def test_port_closed():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    # socket closed: nothing listens on the port any more
    assert not port_open("127.0.0.1", port, timeout_seconds=0.5)
