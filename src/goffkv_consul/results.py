"""Mapping of batch outcomes back to goffkv results and errors."""

from __future__ import annotations

from goffkv_consul.batch import Batch, ResultKind
from goffkv_consul.errors import BatchInvariantError, TransportError, TxnFailedError
from goffkv_consul.executor import BatchOutcome
from goffkv_consul.types import TxnOpKind, TxnOpResult, Version

__all__ = ["ResultMapper"]

_KIND_BY_RESULT = {
    ResultKind.CREATE: TxnOpKind.CREATE,
    ResultKind.SET: TxnOpKind.SET,
}


class ResultMapper:
    """Stateless helpers turning a :class:`BatchOutcome` into user-level values."""

    @staticmethod
    def op_results(batch: Batch, outcome: BatchOutcome) -> list[TxnOpResult]:
        """Versions of every create/set slot, in operation order.

        Consul only returns results for some verbs, so results are consumed
        one per result-producing slot while walking the batch.
        """
        answer: list[TxnOpResult] = []
        results = iter(outcome.results)
        for slot, (op, kind) in enumerate(zip(batch.ops, batch.result_kinds)):
            if not op.produces_result:
                continue
            entry = next(results, None)
            if entry is None:
                raise TransportError("txn", f"no result returned for operation {slot}")
            if kind is not ResultKind.AUX:
                answer.append(TxnOpResult(_KIND_BY_RESULT[kind], entry.modify_index))
        return answer

    @staticmethod
    def last_version(outcome: BatchOutcome) -> Version:
        """Modify index of the final result (single create/set/cas batches)."""
        return outcome.results[-1].modify_index

    @staticmethod
    def user_index(batch: Batch, outcome: BatchOutcome) -> int:
        """User-level item that caused a rollback; a defect if none owns the slot."""
        op_index = outcome.failed_index
        index = batch.user_index(op_index)
        if index is None:
            raise BatchInvariantError(op_index, len(batch))
        return index

    @classmethod
    def txn_error(cls, batch: Batch, outcome: BatchOutcome) -> TxnFailedError:
        return TxnFailedError(cls.user_index(batch, outcome))
