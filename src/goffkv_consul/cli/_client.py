"""CLI helpers for client construction and error reporting."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from goffkv_consul.cli import _exitcodes as ec
from goffkv_consul.cli._output import print_error
from goffkv_consul.client import ConsulClient
from goffkv_consul.config import ConsulConfig
from goffkv_consul.errors import (
    EntryExistsError,
    GoffkvError,
    MalformedKeyError,
    NoEntryError,
    TransportError,
    TxnFailedError,
)

_EXIT_CODES: list[tuple[type[GoffkvError], int]] = [
    (MalformedKeyError, ec.USAGE_ERROR),
    (NoEntryError, ec.NO_ENTRY),
    (EntryExistsError, ec.ENTRY_EXISTS),
    (TxnFailedError, ec.TXN_FAILED),
    (TransportError, ec.CONNECTION_ERROR),
]


def _config_from_state() -> ConsulConfig:
    """Build driver config from environment defaults and global CLI options."""
    from goffkv_consul.cli import state

    return ConsulConfig.from_env(address=state.address, token=state.token)


@contextmanager
def open_client() -> Iterator[ConsulClient]:
    """Open a client for one command; store errors become exit codes."""
    from goffkv_consul.cli import state

    try:
        client = ConsulClient(prefix=state.prefix, config=_config_from_state())
    except GoffkvError as e:
        print_error(str(e))
        raise typer.Exit(exit_code_for(e))

    try:
        yield client
    except GoffkvError as e:
        print_error(str(e))
        raise typer.Exit(exit_code_for(e))
    finally:
        client.close()


def exit_code_for(err: GoffkvError) -> int:
    for err_type, code in _EXIT_CODES:
        if isinstance(err, err_type):
            return code
    return ec.GENERAL_ERROR
