"""Shared fixtures and fakes for ycmd-ide tests."""

import itertools
import tempfile

import pytest

from ycmd_ide.client import YcmdClient
from ycmd_ide.config import Settings, ToolPaths
from ycmd_ide.hmac_auth import HMAC_HEADER, Authenticator
from ycmd_ide.secret import Secret
from ycmd_ide.supervisor import ServerState

FIXED_KEY = bytes(range(16))


class FakeResponse:
    """Just enough of requests.Response for the transport."""

    def __init__(self, status_code=200, body=b"", headers=None, chunk_error=None):
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self.chunk_error = chunk_error
        self.iterated = False
        self.closed = False

    def iter_content(self, chunk_size=1):
        self.iterated = True
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]
        if self.chunk_error is not None:
            raise self.chunk_error

    def close(self):
        self.closed = True


class FakeHttp:
    """Stands in for requests.Session; replies from a route table."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.error = None
        self.closed = False

    def reply(self, method, path, status_code=200, body=b"", headers=None):
        self.routes[(method, path)] = (status_code, body, headers)

    def reply_signed(self, method, path, body, key=FIXED_KEY, status_code=200):
        digest = Authenticator(key).compute_response(body)
        self.reply(method, path, status_code, body, {HMAC_HEADER: digest})

    def request(self, method, url, params=None, data=None, headers=None, timeout=None, stream=False):
        self.calls.append({
            "method": method,
            "url": url,
            "params": params,
            "data": data,
            "headers": headers or {},
            "timeout": timeout,
            "stream": stream,
        })
        if self.error is not None:
            raise self.error
        path = url.split("://", 1)[1].split("/", 1)[1]
        status_code, body, headers = self.routes.get((method, "/" + path), (404, b"", None))
        return FakeResponse(status_code, body, headers)

    def close(self):
        self.closed = True


class FakeProcess:
    def __init__(self, table, command, returncode=None):
        self.table = table
        self.command = command
        self.pid = next(table.pids)
        self.returncode = returncode
        self.killed = False

    def poll(self):
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9
        self.table.update()

    def wait(self, timeout=None):
        return self.returncode


class ProcessTable:
    """Popen replacement that remembers every child it spawned."""

    def __init__(self):
        self.pids = itertools.count(1000)
        self.processes = []
        self.spawn_kwargs = []
        self.exit_immediately = None
        self.spawn_error = None
        self.max_alive = 0

    def __call__(self, command, **kwargs):
        if self.spawn_error is not None:
            raise self.spawn_error
        process = FakeProcess(self, command, returncode=self.exit_immediately)
        self.processes.append(process)
        self.spawn_kwargs.append(kwargs)
        self.update()
        return process

    def update(self):
        self.max_alive = max(self.max_alive, len(self.alive))

    @property
    def alive(self):
        return [p for p in self.processes if p.returncode is None]


@pytest.fixture
def fixed_secret():
    return Secret(FIXED_KEY)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    return Settings(
        python_path="/usr/bin/python3",
        ycmd_path="/opt/ycmd/ycmd",
        startup_delay=5.0,
        health_attempts=3,
        health_interval=1.0,
        read_timeout=1.0,
        init_restart_attempts=2,
        tools=ToolPaths(gocode="/usr/bin/gocode", python="/usr/bin/python3"),
    )


@pytest.fixture
def process_table():
    return ProcessTable()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def connected_client(settings, fixed_secret, fake_http):
    """A client whose session is already connected to a FakeHttp."""
    client = YcmdClient(settings, secret=fixed_secret, popen=ProcessTable(), sleep=lambda s: None)
    session = client.supervisor.session
    session.http = fake_http
    session.port = 4321
    session.running = True
    session.connected = True
    session.state = ServerState.HEALTHY
    fake_http.reply_signed("GET", "/ready", b"true")
    yield client
    session.http = None
    client.destroy()
