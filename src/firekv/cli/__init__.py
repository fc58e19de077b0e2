from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from firekv.app.core.logging import setup_logging
from firekv.store.client import FireStore, Operator
from firekv.store.settings import FirestoreSettings

T = TypeVar("T")

app = typer.Typer(no_args_is_help=True, add_completion=False, help="Key-value storage on Firestore.")


def _settings(root_path: Optional[str]) -> FirestoreSettings:
    overrides = {"root_path": root_path} if root_path else {}
    return FirestoreSettings(**overrides)


def _run(root_path: Optional[str], op: Callable[[FireStore], Awaitable[T]]) -> T:
    async def _main() -> T:
        async with FireStore(_settings(root_path)) as store:
            return await op(store)

    return asyncio.run(_main())


def _echo_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _parse_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"Expected JSON, got {raw!r}") from exc


RootOpt = typer.Option(None, "--root", help="Root collection (defaults to FIRESTORE_ROOT_PATH or 'myStore')")


@app.callback()
def main() -> None:
    setup_logging()


@app.command("get")
def get_cmd(key: str, root: Optional[str] = RootOpt):
    """Print the value stored under KEY (null when absent)."""
    _echo_json(_run(root, lambda s: s.get_value(key)))


@app.command("set")
def set_cmd(
    key: str,
    value: str = typer.Argument(..., help="JSON value to store"),
    root: Optional[str] = RootOpt,
):
    """Store a JSON VALUE under KEY."""
    parsed = _parse_json(value)
    _echo_json(_run(root, lambda s: s.set_value(key, parsed)))


@app.command("delete")
def delete_cmd(key: str, root: Optional[str] = RootOpt):
    """Delete KEY."""
    _run(root, lambda s: s.delete(key))
    typer.echo(f"Deleted {key}")


@app.command("list")
def list_cmd(root: Optional[str] = RootOpt):
    """Print every stored document keyed by id."""
    _echo_json(_run(root, lambda s: s.list()))


@app.command("keys")
def keys_cmd(root: Optional[str] = RootOpt):
    """Print stored keys, one per line."""
    for k in _run(root, lambda s: s.list_keys()):
        typer.echo(k)


@app.command("query")
def query_cmd(
    field: str,
    operator: Operator,
    value: str,
    root: Optional[str] = RootOpt,
):
    """Filter documents by FIELD OPERATOR VALUE (e.g. timestamp LESS_THAN 2024-01-01)."""
    _echo_json(_run(root, lambda s: s.query_by_timestamp(field, operator, value)))


@app.command("cleanup")
def cleanup_cmd(root: Optional[str] = RootOpt):
    """Delete documents older than seven days and print their ids."""
    _echo_json(_run(root, lambda s: s.cleanup()))


@app.command("hash")
def hash_cmd(value: str = typer.Argument(..., help="JSON value"), root: Optional[str] = RootOpt):
    """Store a JSON VALUE under its content hash and print the hash."""
    parsed = _parse_json(value)
    typer.echo(_run(root, lambda s: s.get_data_hash(parsed)))


@app.command("serve")
def serve_cmd(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    root: Optional[str] = RootOpt,
):
    """Run the relay server in front of the configured collection."""
    import uvicorn

    from firekv.relay.server import create_relay_app

    store = FireStore(_settings(root))
    uvicorn.run(create_relay_app(store, close_store=True), host=host, port=port, log_config=None)


__all__ = ["app"]
