"""Translation of goffkv operations into ordered Consul txn primitives.

Every abstract request becomes a :class:`Batch`: a flat list of primitive
KV operations, a parallel list tagging what each slot contributes to the
user-visible result, and a ``boundaries`` table holding, for each user-level
item, the index of the last primitive slot it consumed. The table is what
maps a failing slot reported by Consul back to the item that caused it.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from goffkv_consul.keys import PathCodec, disassemble_key
from goffkv_consul.types import Txn, TxnOpKind, Version

__all__ = [
    "Verb",
    "ResultKind",
    "PrimitiveOp",
    "Batch",
    "BatchBuilder",
]


class Verb(str, Enum):
    GET = "get"
    GET_TREE = "get-tree"
    SET = "set"
    CAS = "cas"
    LOCK = "lock"
    CHECK_INDEX = "check-index"
    CHECK_NOT_EXISTS = "check-not-exists"
    DELETE = "delete"
    DELETE_CAS = "delete-cas"
    DELETE_TREE = "delete-tree"


# Verbs for which Consul appends entries to the txn "Results" array.
_RESULT_VERBS = frozenset(
    {Verb.GET, Verb.GET_TREE, Verb.SET, Verb.CAS, Verb.LOCK, Verb.CHECK_INDEX}
)


class ResultKind(Enum):
    AUX = "aux"
    CREATE = "create"
    SET = "set"


@dataclass(frozen=True)
class PrimitiveOp:
    verb: Verb
    key: str
    value: bytes | None = None
    index: Version = 0
    session: str | None = None

    @property
    def produces_result(self) -> bool:
        return self.verb in _RESULT_VERBS

    def to_payload(self) -> dict[str, Any]:
        kv: dict[str, Any] = {"Verb": self.verb.value, "Key": self.key}
        if self.value is not None:
            kv["Value"] = base64.b64encode(self.value).decode("ascii")
        if self.index:
            kv["Index"] = self.index
        if self.session is not None:
            kv["Session"] = self.session
        return {"KV": kv}


@dataclass
class Batch:
    ops: list[PrimitiveOp] = field(default_factory=list)
    result_kinds: list[ResultKind] = field(default_factory=list)
    boundaries: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ops)

    def append(self, op: PrimitiveOp, kind: ResultKind = ResultKind.AUX) -> int:
        self.ops.append(op)
        self.result_kinds.append(kind)
        return len(self.ops) - 1

    def close_item(self) -> None:
        """Mark the end of the current user-level item."""
        self.boundaries.append(len(self.ops) - 1)

    def user_index(self, op_index: int) -> int | None:
        """Map a primitive slot to the user-level item that owns it."""
        for i, last in enumerate(self.boundaries):
            if last >= op_index:
                return i
        return None

    def payload(self) -> list[dict[str, Any]]:
        return [op.to_payload() for op in self.ops]


class BatchBuilder:
    """Builds :class:`Batch` objects for single operations and transactions.

    ``session_provider`` is called only for leased creates and must return
    the id of the client's ephemeral session.
    """

    def __init__(self, codec: PathCodec, session_provider: Callable[[], str]) -> None:
        self._codec = codec
        self._session_provider = session_provider

    # --- Expansion of single items into an existing batch ---

    def _add_parent_check(self, batch: Batch, segments: Sequence[str]) -> None:
        parent = self._codec.parent(segments)
        if parent is not None:
            batch.append(PrimitiveOp(Verb.GET, parent))

    def _add_create(
        self, batch: Batch, segments: Sequence[str], value: bytes, lease: bool
    ) -> None:
        path = self._codec.assemble(segments)
        self._add_parent_check(batch, segments)
        batch.append(PrimitiveOp(Verb.CHECK_NOT_EXISTS, path))
        if lease:
            session = self._session_provider()
            batch.append(
                PrimitiveOp(Verb.LOCK, path, value=value, session=session), ResultKind.CREATE
            )
        else:
            batch.append(PrimitiveOp(Verb.SET, path, value=value), ResultKind.CREATE)

    def _add_set(self, batch: Batch, segments: Sequence[str], value: bytes) -> None:
        self._add_parent_check(batch, segments)
        batch.append(
            PrimitiveOp(Verb.SET, self._codec.assemble(segments), value=value), ResultKind.SET
        )

    def _add_erase(self, batch: Batch, segments: Sequence[str], ver: Version) -> None:
        path = self._codec.assemble(segments)
        batch.append(PrimitiveOp(Verb.GET, path))
        if ver == 0:
            batch.append(PrimitiveOp(Verb.DELETE, path))
        else:
            batch.append(PrimitiveOp(Verb.DELETE_CAS, path, index=ver))
        batch.append(PrimitiveOp(Verb.DELETE_TREE, path + "/"))

    def _add_check(self, batch: Batch, segments: Sequence[str], ver: Version) -> None:
        path = self._codec.assemble(segments)
        if ver == 0:
            batch.append(PrimitiveOp(Verb.GET, path))
        else:
            batch.append(PrimitiveOp(Verb.CHECK_INDEX, path, index=ver))

    # --- Public builders ---

    def create(self, segments: Sequence[str], value: bytes, lease: bool = False) -> Batch:
        """Create: [get parent] + check-not-exists + set/lock.

        The check-not-exists slot is always second to last.
        """
        batch = Batch()
        self._add_create(batch, segments, value, lease)
        batch.close_item()
        return batch

    def set(self, segments: Sequence[str], value: bytes) -> Batch:
        batch = Batch()
        self._add_set(batch, segments, value)
        batch.close_item()
        return batch

    def cas(self, segments: Sequence[str], value: bytes, ver: Version) -> Batch:
        """Compare-and-swap against a real version; ``ver == 0`` is a create."""
        if ver == 0:
            raise ValueError("cas against version 0 must be built as a create")
        path = self._codec.assemble(segments)
        batch = Batch()
        batch.append(PrimitiveOp(Verb.GET, path))
        batch.append(PrimitiveOp(Verb.CAS, path, value=value, index=ver), ResultKind.SET)
        batch.close_item()
        return batch

    def erase(self, segments: Sequence[str], ver: Version = 0) -> Batch:
        batch = Batch()
        self._add_erase(batch, segments, ver)
        batch.close_item()
        return batch

    def children(self, segments: Sequence[str]) -> Batch:
        """Subtree read followed by a get of the key itself (existence check)."""
        path = self._codec.assemble(segments)
        batch = Batch()
        batch.append(PrimitiveOp(Verb.GET_TREE, path + "/"))
        batch.append(PrimitiveOp(Verb.GET, path))
        batch.close_item()
        return batch

    def txn(self, txn: Txn) -> Batch:
        """Checks first, then ops, in caller order; one boundary per item."""
        # Validate every key up front so a malformed key never costs a session.
        checks = [(disassemble_key(c.key), c.ver) for c in txn.checks]
        ops = [(disassemble_key(op.key), op) for op in txn.ops]

        batch = Batch()
        for segments, ver in checks:
            self._add_check(batch, segments, ver)
            batch.close_item()

        for segments, op in ops:
            kind = TxnOpKind(op.kind)
            if kind is TxnOpKind.CREATE:
                self._add_create(batch, segments, op.value, op.lease)
            elif kind is TxnOpKind.SET:
                self._add_set(batch, segments, op.value)
            else:
                self._add_erase(batch, segments, 0)
            batch.close_item()
        return batch
