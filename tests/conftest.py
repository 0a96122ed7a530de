"""Shared pytest fixtures and test helpers for pocctl tests."""

from __future__ import annotations

import logging
import textwrap
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from pocctl.config.settings import PocSettings
from pocctl.services.context import RunContext
from pocctl.services.telemetry import _current_span, disable_telemetry

TARGET = "http://target.test"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Run every test in an empty directory with no pocctl env overrides.

    Also resets process-wide state the CLI touches (telemetry flag, logging).
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("POCCTL_CONFIG", raising=False)
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    disable_telemetry()
    _current_span.set(None)
    root.handlers = original_handlers
    root.setLevel(original_level)


# ---------------------------------------------------------------------------
# Fake target
# ---------------------------------------------------------------------------


Route = Callable[[httpx.Request], httpx.Response]


@dataclass
class FakeTarget:
    """In-memory HTTP target backed by ``httpx.MockTransport``.

    Routes are keyed by raw path including the query string
    (``"/check?x=42"``).  Unknown paths answer 404.  Every request is kept
    in ``requests`` in arrival order.
    """

    routes: dict[str, Route] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def on(self, path: str, body: bytes | str = b"", status: int = 200, **kwargs: object) -> None:
        content = body.encode() if isinstance(body, str) else body

        def respond(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, content=content, **kwargs)  # type: ignore[arg-type]

        self.routes[path] = respond

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        route = self.routes.get(request.url.raw_path.decode())
        if route is None:
            return httpx.Response(404, content=b"not found")
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def paths(self) -> list[str]:
        return [r.url.raw_path.decode() for r in self.requests]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport)


@pytest.fixture
def fake_target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
def run_context(fake_target: FakeTarget) -> Generator[Callable[..., RunContext]]:
    """Factory for a RunContext against the fake target."""
    clients: list[httpx.Client] = []

    def make(variables: dict[str, object] | None = None) -> RunContext:
        client = fake_target.client()
        clients.append(client)
        return RunContext(target=TARGET, variables=variables or {}, client=client)

    yield make
    for client in clients:
        client.close()


@pytest.fixture
def settings() -> PocSettings:
    """Default settings with the fake target as the run target."""
    return PocSettings.from_cli(runner={"target": TARGET})


@pytest.fixture
def write_poc(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a dedented YAML PoC into the test directory and return its path."""

    def write(text: str, name: str = "poc.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
        return path

    return write


@pytest.fixture
def use_fake_target(fake_target: FakeTarget, monkeypatch: pytest.MonkeyPatch) -> FakeTarget:
    """Route every client the CLI builds through the fake target."""
    from pocctl.infrastructure.http import build_client as real_build_client

    def build_client(config, *, transport=None):  # type: ignore[no-untyped-def]
        return real_build_client(config, transport=fake_target.transport)

    monkeypatch.setattr("pocctl.services.base.build_client", build_client)
    return fake_target
