"""Abstract goffkv data model: versions, transactions, watches, client contract."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

__all__ = [
    "Version",
    "Watch",
    "TxnOpKind",
    "TxnCheck",
    "TxnOp",
    "Txn",
    "TxnOpResult",
    "KVClient",
]

Version = int
"""Consul modify index. ``0`` means "no version"."""

Watch = Callable[[], None]


class TxnOpKind(str, Enum):
    CREATE = "create"
    SET = "set"
    ERASE = "erase"


@dataclass(frozen=True)
class TxnCheck:
    """Require ``key`` to currently have version ``ver`` (``0``: just exist)."""

    key: str
    ver: Version = 0


@dataclass(frozen=True)
class TxnOp:
    kind: TxnOpKind
    key: str
    value: bytes = b""
    lease: bool = False

    @classmethod
    def create(cls, key: str, value: bytes, lease: bool = False) -> TxnOp:
        return cls(TxnOpKind.CREATE, key, value, lease)

    @classmethod
    def set(cls, key: str, value: bytes) -> TxnOp:
        return cls(TxnOpKind.SET, key, value)

    @classmethod
    def erase(cls, key: str) -> TxnOp:
        return cls(TxnOpKind.ERASE, key)


@dataclass
class Txn:
    """Checks and operations committed atomically.

    Item indices used in errors count the checks first, then the operations.
    """

    checks: list[TxnCheck] = field(default_factory=list)
    ops: list[TxnOp] = field(default_factory=list)

    def check(self, key: str, ver: Version = 0) -> Txn:
        self.checks.append(TxnCheck(key, ver))
        return self

    def create(self, key: str, value: bytes, lease: bool = False) -> Txn:
        self.ops.append(TxnOp.create(key, value, lease))
        return self

    def set(self, key: str, value: bytes) -> Txn:
        self.ops.append(TxnOp.set(key, value))
        return self

    def erase(self, key: str) -> Txn:
        self.ops.append(TxnOp.erase(key))
        return self


@dataclass(frozen=True)
class TxnOpResult:
    kind: TxnOpKind
    version: Version


@runtime_checkable
class KVClient(Protocol):
    """Backend-agnostic goffkv client contract."""

    def create(self, key: str, value: bytes, lease: bool = False) -> Version: ...

    def set(self, key: str, value: bytes) -> Version: ...

    def cas(self, key: str, value: bytes, ver: Version) -> Version: ...

    def erase(self, key: str, ver: Version = 0) -> None: ...

    def exists(self, key: str, watch: bool = False) -> tuple[Version, Watch | None]: ...

    def get(self, key: str, watch: bool = False) -> tuple[Version, bytes, Watch | None]: ...

    def children(self, key: str, watch: bool = False) -> tuple[list[str], Watch | None]: ...

    def commit(self, txn: Txn) -> list[TxnOpResult]: ...

    def close(self) -> None: ...
