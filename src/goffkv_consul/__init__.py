"""goffkv-consul: versioned key-value operations on Consul."""

__version__ = "0.1.0"

from goffkv_consul.client import ConsulClient
from goffkv_consul.config import ConsulConfig
from goffkv_consul.errors import (
    BatchInvariantError,
    ClientClosedError,
    EntryExistsError,
    GoffkvError,
    MalformedKeyError,
    NoEntryError,
    TransportError,
    TxnFailedError,
    UnexpectedTxnError,
    UnknownSchemeError,
)
from goffkv_consul.keys import disassemble_key, disassemble_path
from goffkv_consul.registry import open_client, register_client, registered_schemes
from goffkv_consul.types import (
    KVClient,
    Txn,
    TxnCheck,
    TxnOp,
    TxnOpKind,
    TxnOpResult,
    Version,
    Watch,
)

__all__ = [
    "__version__",
    "ConsulClient",
    "ConsulConfig",
    "KVClient",
    "Txn",
    "TxnCheck",
    "TxnOp",
    "TxnOpKind",
    "TxnOpResult",
    "Version",
    "Watch",
    "disassemble_key",
    "disassemble_path",
    "open_client",
    "register_client",
    "registered_schemes",
    "GoffkvError",
    "MalformedKeyError",
    "NoEntryError",
    "EntryExistsError",
    "TxnFailedError",
    "UnexpectedTxnError",
    "TransportError",
    "ClientClosedError",
    "UnknownSchemeError",
    "BatchInvariantError",
]
