"""Consul-backed goffkv client."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any

import httpx

from goffkv_consul.batch import BatchBuilder
from goffkv_consul.config import ConsulConfig
from goffkv_consul.errors import (
    ClientClosedError,
    EntryExistsError,
    NoEntryError,
    UnexpectedTxnError,
)
from goffkv_consul.executor import BatchExecutor
from goffkv_consul.keys import PathCodec, disassemble_key, disassemble_path
from goffkv_consul.lease import LeaseManager
from goffkv_consul.results import ResultMapper
from goffkv_consul.transport import ConsulTransport
from goffkv_consul.types import Txn, TxnOpResult, Version, Watch
from goffkv_consul.watch import WatchFactory

__all__ = ["ConsulClient"]

logger = logging.getLogger(__name__)


class ConsulClient:
    """goffkv client storing keys under ``prefix`` in Consul's KV store.

    Every mutation is a single Consul transaction. Leased keys are bound to
    one session per client, which :meth:`close` destroys.

    Example::

        with ConsulClient("127.0.0.1:8500", "/myapp") as kv:
            kv.create("/config", b"{}")
            ver, value, _ = kv.get("/config")
    """

    def __init__(
        self,
        address: str | None = None,
        prefix: str = "/",
        *,
        config: ConsulConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        prefix_segments = disassemble_path(prefix)
        if config is None:
            config = ConsulConfig()
        if address is not None:
            config = replace(config, address=address)
        self._config = config
        self._codec = PathCodec(prefix_segments)
        self._transport = ConsulTransport(config, client=http_client)
        self._leases = LeaseManager(self._transport, config)
        self._builder = BatchBuilder(self._codec, self._leases.get_or_create_session)
        self._executor = BatchExecutor(self._transport)
        self._watches = WatchFactory(self._transport)
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def config(self) -> ConsulConfig:
        return self._config

    @property
    def prefix(self) -> str:
        return "/" + "/".join(self._codec.prefix_segments)

    def __enter__(self) -> ConsulClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ConsulClient(address={self._config.address!r}, prefix={self.prefix!r})"

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientClosedError()

    # --- Mutations ---

    def create(self, key: str, value: bytes, lease: bool = False) -> Version:
        """Create ``key``; its parent must exist. Returns the new version."""
        self._ensure_open()
        segments = disassemble_key(key)
        batch = self._builder.create(segments, value, lease)
        outcome = self._executor.execute(batch)
        if outcome.committed:
            return ResultMapper.last_version(outcome)

        exists_slot = len(batch) - 2
        if outcome.failed_index < exists_slot:
            raise NoEntryError(key)
        if outcome.failed_index == exists_slot:
            raise EntryExistsError(key)
        raise UnexpectedTxnError(outcome.failed_index, outcome.diagnostic)

    def set(self, key: str, value: bytes) -> Version:
        """Write ``key`` unconditionally, creating it if needed."""
        self._ensure_open()
        segments = disassemble_key(key)
        outcome = self._executor.execute(self._builder.set(segments, value))
        if outcome.committed:
            return ResultMapper.last_version(outcome)
        raise NoEntryError(key)

    def cas(self, key: str, value: bytes, ver: Version) -> Version:
        """Write ``key`` only if it is at version ``ver``.

        Returns 0 when the swap loses (stale version, or ``ver == 0`` and the
        key already exists).
        """
        self._ensure_open()
        if ver == 0:
            try:
                return self.create(key, value)
            except EntryExistsError:
                return 0

        segments = disassemble_key(key)
        outcome = self._executor.execute(self._builder.cas(segments, value, ver))
        if outcome.committed:
            return ResultMapper.last_version(outcome)
        if outcome.failed_index == 0:
            raise NoEntryError(key)
        return 0

    def erase(self, key: str, ver: Version = 0) -> None:
        """Delete ``key`` and everything below it.

        Only a missing key is an error; a lost version race is ignored.
        """
        self._ensure_open()
        segments = disassemble_key(key)
        outcome = self._executor.execute(self._builder.erase(segments, ver))
        if not outcome.committed:
            if outcome.failed_index == 0:
                raise NoEntryError(key)
            logger.debug("erase of %s ignored failure: %s", key, outcome.diagnostic)

    # --- Reads ---

    def exists(self, key: str, watch: bool = False) -> tuple[Version, Watch | None]:
        """Return ``(version, watch)``; version is 0 when the key is absent."""
        self._ensure_open()
        path = self._codec.assemble(disassemble_key(key))
        kv = self._transport.kv_get(path)
        if kv is None:
            return 0, None
        result_watch = self._watches.key_watch(path, kv.modify_index) if watch else None
        return kv.modify_index, result_watch

    def get(self, key: str, watch: bool = False) -> tuple[Version, bytes, Watch | None]:
        self._ensure_open()
        path = self._codec.assemble(disassemble_key(key))
        kv = self._transport.kv_get(path)
        if kv is None:
            raise NoEntryError(key)
        result_watch = self._watches.key_watch(path, kv.modify_index) if watch else None
        return kv.modify_index, kv.value or b"", result_watch

    def children(self, key: str, watch: bool = False) -> tuple[list[str], Watch | None]:
        """Direct children of ``key`` as sorted absolute keys."""
        self._ensure_open()
        segments = disassemble_key(key)
        path = self._codec.assemble(segments)
        outcome = self._executor.execute(self._builder.children(segments))
        if not outcome.committed:
            raise NoEntryError(key)

        # All results but the last come from the subtree read; the last is the key.
        prefix_length = len(path) + 1
        children = []
        for entry in outcome.results[:-1]:
            child = self._codec.detach_child(entry.key, prefix_length)
            if child:
                children.append(child)
        children.sort()

        result_watch = None
        if watch:
            ver = max(entry.modify_index for entry in outcome.results)
            result_watch = self._watches.children_watch(path, ver)
        return children, result_watch

    # --- Transactions ---

    def commit(self, txn: Txn) -> list[TxnOpResult]:
        """Apply all checks and ops of ``txn`` atomically.

        Raises :class:`TxnFailedError` naming the failing item, counted over
        checks followed by ops.
        """
        self._ensure_open()
        batch = self._builder.txn(txn)
        if not batch.ops:
            return []
        outcome = self._executor.execute(batch)
        if outcome.committed:
            return ResultMapper.op_results(batch, outcome)
        raise ResultMapper.txn_error(batch, outcome)

    # --- Lifecycle ---

    def close(self) -> None:
        """Stop session renewal, destroy the session and close the connection."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._leases.close()
        finally:
            self._transport.close()
