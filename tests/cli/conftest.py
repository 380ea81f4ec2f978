"""Shared fixtures for CLI tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from goffkv_consul.cli import app
from goffkv_consul.client import ConsulClient

if TYPE_CHECKING:
    from click.testing import Result


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_consul(consul, monkeypatch):
    """Route every client the CLI opens to the fake agent."""
    for name in ("CONSUL_HTTP_ADDR", "CONSUL_HTTP_TOKEN", "CONSUL_HTTP_SSL", "GOFFKV_PREFIX"):
        monkeypatch.delenv(name, raising=False)

    def make_client(**kwargs):
        return ConsulClient(http_client=consul.http_client(), **kwargs)

    monkeypatch.setattr("goffkv_consul.cli._client.ConsulClient", make_client)
    return consul


@pytest.fixture
def seeded(cli_consul):
    """Fake agent holding /app, /app/db and /app/cache."""
    cli_consul.put("app", b"root")
    cli_consul.put("app/db", b"postgres://")
    cli_consul.put("app/cache", b"redis://")
    return cli_consul


def invoke(runner: CliRunner, args: list[str]) -> "Result":
    """Invoke the CLI, letting unexpected exceptions propagate."""
    return runner.invoke(app, args, catch_exceptions=False)
