"""URL-scheme registry for goffkv drivers."""

from __future__ import annotations

from collections.abc import Callable
from urllib.parse import urlparse

from goffkv_consul.config import ConsulConfig
from goffkv_consul.errors import UnknownSchemeError
from goffkv_consul.types import KVClient

__all__ = [
    "ClientFactory",
    "register_client",
    "registered_schemes",
    "open_client",
]

ClientFactory = Callable[[str, str], KVClient]
"""Factory called with ``(address, prefix)``."""

DEFAULT_CONSUL_PORT = 8500

_registry: dict[str, ClientFactory] = {}


def register_client(scheme: str, factory: ClientFactory) -> None:
    """Register ``factory`` for URLs like ``<scheme>://host:port/prefix``."""
    _registry[scheme.lower()] = factory


def registered_schemes() -> list[str]:
    return sorted(_registry)


def open_client(url: str) -> KVClient:
    """Open a client from a URL such as ``consul://localhost:8500/myapp``."""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    factory = _registry.get(scheme)
    if factory is None:
        raise UnknownSchemeError(scheme)
    return factory(parsed.netloc, parsed.path or "/")


def _consul_factory(https: bool) -> ClientFactory:
    def factory(address: str, prefix: str) -> KVClient:
        from goffkv_consul.client import ConsulClient

        config = ConsulConfig.from_env()
        if address:
            if ":" not in address:
                address = f"{address}:{DEFAULT_CONSUL_PORT}"
            config.address = address
        if https:
            config.scheme = "https"
        return ConsulClient(prefix=prefix, config=config)

    return factory


register_client("consul", _consul_factory(https=False))
register_client("consuls", _consul_factory(https=True))
