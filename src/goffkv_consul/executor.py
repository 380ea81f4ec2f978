"""Atomic execution of a primitive batch against Consul."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from goffkv_consul.batch import Batch
from goffkv_consul.errors import TransportError
from goffkv_consul.transport import ConsulTransport, KVPair, TxnErrorEntry

__all__ = ["BatchOutcome", "BatchExecutor"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one ``/v1/txn`` round trip.

    On commit ``results`` holds one entry per result-producing slot, in slot
    order. On rollback ``errors`` is non-empty and ``failed_index`` /
    ``diagnostic`` describe the first failing slot.
    """

    committed: bool
    results: list[KVPair] = field(default_factory=list)
    errors: list[TxnErrorEntry] = field(default_factory=list)

    @property
    def failed_index(self) -> int:
        return self.errors[0].op_index

    @property
    def diagnostic(self) -> str:
        return self.errors[0].what


class BatchExecutor:
    """Submits a batch in one consistent transaction. Never retries."""

    def __init__(self, transport: ConsulTransport) -> None:
        self._transport = transport

    def execute(self, batch: Batch) -> BatchOutcome:
        committed, resp = self._transport.txn(batch.payload())
        if committed:
            return BatchOutcome(True, results=[r.kv for r in resp.results or []])

        errors = list(resp.errors or [])
        if not errors:
            raise TransportError("txn", "transaction rolled back without reporting errors")
        logger.debug(
            "txn rolled back at op %d of %d: %s", errors[0].op_index, len(batch), errors[0].what
        )
        return BatchOutcome(False, errors=errors)
