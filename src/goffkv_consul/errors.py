"""Structured error types for goffkv-consul."""

from __future__ import annotations


class GoffkvError(Exception):
    """Base error for all goffkv-consul errors."""


class MalformedKeyError(GoffkvError):
    """Raised when a key or mount prefix fails segment validation."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed key {key!r}: {reason}")


class NoEntryError(GoffkvError):
    """Raised when a required key or its parent does not exist."""

    def __init__(self, key: str | None = None) -> None:
        self.key = key
        if key is None:
            super().__init__("Entry does not exist")
        else:
            super().__init__(f"Entry does not exist: {key!r}")


class EntryExistsError(GoffkvError):
    """Raised when create targets a key that already exists."""

    def __init__(self, key: str | None = None) -> None:
        self.key = key
        if key is None:
            super().__init__("Entry already exists")
        else:
            super().__init__(f"Entry already exists: {key!r}")


class TxnFailedError(GoffkvError):
    """Raised when a transaction aborts.

    ``index`` is zero-based across the transaction's checks followed by its
    operations, and names the item that caused the abort.
    """

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(f"Transaction failed at operation {index}")


class UnexpectedTxnError(GoffkvError):
    """Raised when Consul rejects a primitive operation the caller cannot act on."""

    def __init__(self, op_index: int, what: str) -> None:
        self.op_index = op_index
        self.what = what
        super().__init__(f"Unexpected txn failure: {what!r} at operation {op_index}")


class TransportError(GoffkvError):
    """Raised when the round trip to Consul itself fails."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Consul transport error during {operation}: {detail}")


class ClientClosedError(GoffkvError):
    """Raised when a closed client is used."""

    def __init__(self) -> None:
        super().__init__("Client is closed")


class UnknownSchemeError(GoffkvError):
    """Raised when no driver is registered for a URL scheme."""

    def __init__(self, scheme: str) -> None:
        self.scheme = scheme
        super().__init__(f"No client registered for scheme {scheme!r}")


class BatchInvariantError(RuntimeError):
    """A failing primitive slot does not belong to any user-level item.

    This signals a defect in batch construction and is deliberately not a
    ``GoffkvError``: callers handling store errors must not swallow it.
    """

    def __init__(self, op_index: int, n_ops: int) -> None:
        self.op_index = op_index
        self.n_ops = n_ops
        super().__init__(f"Txn failed on non-existing operation {op_index} (batch of {n_ops})")
