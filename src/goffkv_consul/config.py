"""Configuration for the Consul driver."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class ConsulConfig:
    """Connection and session settings for a Consul agent."""

    address: str = "127.0.0.1:8500"
    scheme: str = "http"
    token: str | None = None
    datacenter: str | None = None
    request_timeout_s: float = 10.0
    consistent: bool = True
    session_ttl_s: float = 10.0
    session_lock_delay: str = "1ms"
    session_retry_interval_s: float = 1.0
    watch_wait: str = "5m"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.address}"

    @property
    def session_ttl(self) -> str:
        """TTL in Consul's duration syntax."""
        return f"{self.session_ttl_s:g}s"

    @classmethod
    def from_env(cls, **overrides: object) -> ConsulConfig:
        """Build config from the standard ``CONSUL_HTTP_*`` environment variables."""
        config = cls()
        address = os.getenv("CONSUL_HTTP_ADDR")
        if address:
            if "://" in address:
                scheme, _, address = address.partition("://")
                config.scheme = scheme
            config.address = address
        if os.getenv("CONSUL_HTTP_SSL", "").lower() in _TRUTHY:
            config.scheme = "https"
        config.token = os.getenv("CONSUL_HTTP_TOKEN") or None
        config.datacenter = os.getenv("GOFFKV_CONSUL_DATACENTER") or None
        for name, value in overrides.items():
            if not hasattr(config, name):
                raise TypeError(f"Unknown config option: {name}")
            if value is not None:
                setattr(config, name, value)
        return config
