"""Shared test fixtures for goffkv-consul tests."""

from __future__ import annotations

import pytest

from goffkv_consul import ConsulClient, ConsulConfig
from tests.fake_consul import FakeConsul


@pytest.fixture
def consul():
    """In-process fake Consul agent."""
    return FakeConsul()


@pytest.fixture
def config():
    """Driver config with short waits so blocking paths stay fast."""
    return ConsulConfig(watch_wait="1s", session_ttl_s=10.0)


@pytest.fixture
def kv(consul, config):
    """Client mounted at the root."""
    client = ConsulClient(prefix="/", config=config, http_client=consul.http_client())
    yield client
    client.close()


@pytest.fixture
def mounted_kv(consul, config):
    """Client mounted under /app/v1."""
    client = ConsulClient(prefix="/app/v1", config=config, http_client=consul.http_client())
    yield client
    client.close()
