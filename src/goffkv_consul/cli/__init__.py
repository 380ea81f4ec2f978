"""goffkv CLI: operator console for goffkv keys stored in Consul."""

from __future__ import annotations

import logging
from typing import Optional

import typer

from goffkv_consul.cli import kv
from goffkv_consul.errors import MalformedKeyError
from goffkv_consul.keys import disassemble_path

app = typer.Typer(
    name="goffkv",
    help="goffkv CLI: inspect and edit versioned keys stored in Consul.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    address: str | None = None
    prefix: str = "/"
    token: str | None = None
    json_output: bool = False


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        try:
            from importlib.metadata import version

            v = version("goffkv-consul")
        except Exception:
            v = "unknown"
        print(f"goffkv {v}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    address: Optional[str] = typer.Option(
        None,
        "--address",
        "-a",
        help="Consul agent host:port (default: $CONSUL_HTTP_ADDR or 127.0.0.1:8500)",
    ),
    prefix: str = typer.Option(
        "/",
        "--prefix",
        "-p",
        envvar="GOFFKV_PREFIX",
        help="Mount prefix all keys live under",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="ACL token (default: $CONSUL_HTTP_TOKEN)",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output"),
    verbose: bool = typer.Option(False, "--verbose", help="Log driver activity to stderr"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all goffkv commands."""
    try:
        disassemble_path(prefix)
    except MalformedKeyError as e:
        raise typer.BadParameter(str(e), param_hint="--prefix")

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    state.address = address
    state.prefix = prefix
    state.token = token
    state.json_output = json_output
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


app.command(name="get")(kv.get_cmd)
app.command(name="exists")(kv.exists_cmd)
app.command(name="children")(kv.children_cmd)
app.command(name="create")(kv.create_cmd)
app.command(name="set")(kv.set_cmd)
app.command(name="cas")(kv.cas_cmd)
app.command(name="erase")(kv.erase_cmd)
app.command(name="watch")(kv.watch_cmd)


def main() -> None:
    """Entry point for the goffkv CLI."""
    app()
