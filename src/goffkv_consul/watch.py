"""Deferred wait-for-change handles built on Consul blocking queries."""

from __future__ import annotations

import logging

from goffkv_consul.errors import TransportError
from goffkv_consul.transport import ConsulTransport
from goffkv_consul.types import Version, Watch

__all__ = ["WatchFactory"]

logger = logging.getLogger(__name__)


class WatchFactory:
    def __init__(self, transport: ConsulTransport) -> None:
        self._transport = transport

    def key_watch(self, path: str, version: Version) -> Watch:
        """Watch that returns once ``path`` changes past ``version``."""
        return self._make(path, version, recurse=False)

    def children_watch(self, path: str, version: Version) -> Watch:
        """Watch on every key starting with ``path``.

        ``version`` should be the largest modify index observed among the
        key and its children.
        """
        return self._make(path, version, recurse=True)

    def _make(self, path: str, version: Version, *, recurse: bool) -> Watch:
        transport = self._transport

        def watch() -> None:
            while True:
                try:
                    index = transport.kv_block(path, version, recurse=recurse)
                except TransportError as e:
                    logger.debug("Watch on %s ended: %s", path, e)
                    return
                # An unchanged index means the blocking wait timed out.
                if index != version:
                    return

        return watch
