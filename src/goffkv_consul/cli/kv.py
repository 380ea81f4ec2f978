"""goffkv read/write commands."""

from __future__ import annotations

import typer

from goffkv_consul.cli import _exitcodes as ec
from goffkv_consul.cli._client import open_client
from goffkv_consul.cli._output import decode_value, print_error, print_object


def _json_mode() -> bool:
    from goffkv_consul.cli import state

    return state.json_output


def get_cmd(key: str = typer.Argument(..., help="Key, e.g. /app/config")) -> None:
    """Print the version and value of a key."""
    with open_client() as kv:
        ver, value, _ = kv.get(key)
    print_object({"key": key, "version": ver, "value": decode_value(value)}, json_mode=_json_mode())


def exists_cmd(key: str = typer.Argument(..., help="Key to check")) -> None:
    """Print the version of a key; exits non-zero when it is absent."""
    with open_client() as kv:
        ver, _ = kv.exists(key)
    print_object({"key": key, "exists": ver != 0, "version": ver}, json_mode=_json_mode())
    if ver == 0:
        raise typer.Exit(ec.NO_ENTRY)


def children_cmd(key: str = typer.Argument(..., help="Parent key")) -> None:
    """List the direct children of a key."""
    with open_client() as kv:
        children, _ = kv.children(key)
    print_object(children, json_mode=_json_mode())


def create_cmd(
    key: str = typer.Argument(..., help="Key to create"),
    value: str = typer.Argument("", help="Value (UTF-8)"),
    lease: bool = typer.Option(
        False, "--lease", help="Bind the key to this process's session (deleted on exit)"
    ),
) -> None:
    """Create a key whose parent exists."""
    with open_client() as kv:
        ver = kv.create(key, value.encode("utf-8"), lease=lease)
    print_object({"key": key, "version": ver}, json_mode=_json_mode())


def set_cmd(
    key: str = typer.Argument(..., help="Key to write"),
    value: str = typer.Argument(..., help="Value (UTF-8)"),
) -> None:
    """Write a key unconditionally."""
    with open_client() as kv:
        ver = kv.set(key, value.encode("utf-8"))
    print_object({"key": key, "version": ver}, json_mode=_json_mode())


def cas_cmd(
    key: str = typer.Argument(..., help="Key to write"),
    value: str = typer.Argument(..., help="Value (UTF-8)"),
    version: int = typer.Option(..., "--version", "-v", help="Expected version (0: must not exist)"),
) -> None:
    """Compare-and-swap a key against an expected version."""
    with open_client() as kv:
        ver = kv.cas(key, value.encode("utf-8"), version)
    print_object({"key": key, "version": ver}, json_mode=_json_mode())
    if ver == 0:
        print_error(f"Version of {key} is not {version}; nothing written")
        raise typer.Exit(ec.CAS_CONFLICT)


def erase_cmd(
    key: str = typer.Argument(..., help="Key to erase (with its subtree)"),
    version: int = typer.Option(0, "--version", "-v", help="Expected version (0: any)"),
) -> None:
    """Erase a key and everything below it."""
    with open_client() as kv:
        kv.erase(key, version)
    print_object({"key": key, "erased": True}, json_mode=_json_mode())


def watch_cmd(
    key: str = typer.Argument(..., help="Key to watch"),
    children: bool = typer.Option(False, "--children", help="Watch the key's children instead"),
) -> None:
    """Block until a key (or its children) changes."""
    with open_client() as kv:
        if children:
            _, watch = kv.children(key, watch=True)
        else:
            _, _, watch = kv.get(key, watch=True)
        watch()
    print_object({"key": key, "changed": True}, json_mode=_json_mode())
