"""Shared pytest fixtures for cf-tunnel-setup tests."""

import uuid
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import Mock

import pytest

from cf_tunnel.cloudflared import CreatedTunnel
from cf_tunnel.common.process import CommandResult, CommandRunner
from cf_tunnel.runtime import RuntimeLayout, layout_for
from cf_tunnel.settings import TunnelSettings

TUNNEL_ID = "6ff42ae2-765d-4adf-8112-31c55c1551ef"


class ScriptedRunner(CommandRunner):
    """CommandRunner that answers from a script instead of spawning processes.

    Responses are matched on the longest registered argv prefix; unmatched
    commands succeed with empty output.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[list[str]] = []
        self._responses: dict[tuple[str, ...], list[CommandResult]] = {}

    def respond(self, prefix: Sequence[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        """Queue a response for commands starting with prefix; the last one repeats."""
        result = CommandResult(args=tuple(prefix), returncode=returncode, stdout=stdout, stderr=stderr)
        self._responses.setdefault(tuple(prefix), []).append(result)

    def run(self, args, *, capture=True, interactive=False):
        argv = [str(arg) for arg in args]
        self.calls.append(argv)
        matches = [p for p in self._responses if tuple(argv[: len(p)]) == p]
        if not matches:
            return CommandResult(args=tuple(argv), returncode=0)
        queue = self._responses[max(matches, key=len)]
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        return result.model_copy(update={"args": tuple(argv)})

    def commands_starting_with(self, *prefix: str) -> list[list[str]]:
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]


class FakeTunnelCLI:
    """In-memory TunnelCLI that writes the files cloudflared would write."""

    def __init__(self, layout: RuntimeLayout, tunnel_id: str = TUNNEL_ID) -> None:
        self.layout = layout
        self.tunnel_id = tunnel_id
        self.login_ok = True
        self.write_cert = True
        self.credentials_name: str | None = f"{tunnel_id}.json"
        self.reported_credentials: str | None = None
        self.route_results: dict[str, list[bool]] = {}
        self.calls: list[tuple] = []

    def login(self) -> bool:
        self.calls.append(("login",))
        if self.login_ok and self.write_cert:
            self.layout.host_artifact_dir.mkdir(parents=True, exist_ok=True)
            self.layout.cert_file.write_text("cert")
        return self.login_ok

    def create_tunnel(self, name: str) -> CreatedTunnel:
        self.calls.append(("create", name))
        if self.credentials_name:
            self.layout.host_artifact(self.credentials_name).write_text('{"TunnelID": "x"}')
        return CreatedTunnel(id=self.tunnel_id, credentials_file=self.reported_credentials)

    def route_dns(self, tunnel_ref: str, fqdn: str) -> bool:
        self.calls.append(("route_dns", tunnel_ref, fqdn))
        results = self.route_results.get(fqdn, [True])
        return results.pop(0) if len(results) > 1 else results[0]

    def route_calls(self, fqdn: str | None = None) -> list[tuple]:
        return [c for c in self.calls if c[0] == "route_dns" and (fqdn is None or c[2] == fqdn)]


@pytest.fixture
def tunnel_id() -> uuid.UUID:
    return uuid.UUID(TUNNEL_ID)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "cloudflared"


@pytest.fixture
def make_settings(config_dir):
    """Factory for TunnelSettings rooted in a temporary config directory."""

    def factory(**overrides) -> TunnelSettings:
        values = {
            "tunnel_name": "home",
            "domain": "example.com",
            "subdomains": "web:3000,api",
            "config_dir": config_dir,
        }
        values.update(overrides)
        return TunnelSettings(**values)

    return factory


@pytest.fixture
def docker_layout(make_settings) -> RuntimeLayout:
    # Ownership changes need root; tests run unprivileged
    return layout_for(make_settings()).model_copy(update={"owner": None, "group": None})


@pytest.fixture
def make_fake_cli(docker_layout):
    """Factory for FakeTunnelCLI instances, bound to the docker layout by default."""

    def factory(tunnel_id: str = TUNNEL_ID, layout: RuntimeLayout | None = None) -> FakeTunnelCLI:
        return FakeTunnelCLI(layout or docker_layout, tunnel_id=tunnel_id)

    return factory


@pytest.fixture
def fake_cli(make_fake_cli) -> FakeTunnelCLI:
    return make_fake_cli()


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def no_sleep(monkeypatch):
    """Replace time.sleep in retrying/waiting modules with a recording mock."""
    sleep = Mock()
    monkeypatch.setattr("cf_tunnel.dns.time.sleep", sleep)
    monkeypatch.setattr("cf_tunnel.deploy.time.sleep", sleep)
    return sleep


@pytest.fixture
def mock_logger(monkeypatch):
    """Mock the hosts module logger to capture warnings.

    Returns:
        Mock: Mocked logger
    """
    mock_log = Mock()
    monkeypatch.setattr("cf_tunnel.hosts.logger", mock_log)
    return mock_log
