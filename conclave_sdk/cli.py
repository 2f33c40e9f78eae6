"""
conclave_sdk.cli
================

`conclave-sdk`: command-line access to the task lifecycle.

Examples
--------
    $ conclave-sdk version
    $ conclave-sdk grains 1.5
    $ conclave-sdk --ledger http://127.0.0.1:9545 status 0x1234...abcd
    $ conclave-sdk compute "add(uint256,uint256)" \
        --arg 24:uint256 --arg 67:uint256 \
        --sender 0x... --target 0x... --gas-limit 100000 --gas-price 1 --wait

Without --wait, `compute` writes the task key to --key-out and `result`
picks it up later:

    $ conclave-sdk compute "add(uint256,uint256)" ... --key-out task.key.json
    $ conclave-sdk result 0x1234...abcd --key-file task.key.json

Configuration
-------------
Flags override CONCLAVE_* environment variables (see `ClientConfig.from_env`).
Gas prices given on the command line are in tokens and converted to grains.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import typer

from .abi import normalize_type
from .client import ConclaveClient
from .config import ClientConfig
from .crypto.session import EphemeralKeyPair
from .events import TaskEvent
from .types import TaskResult
from .utils.bytes import from_hex, to_hex
from .utils.units import to_grains
from .version import __version__ as SDK_VERSION

app = typer.Typer(
    name="conclave-sdk",
    help="Conclave SDK CLI: submit confidential tasks and inspect their results.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main", "run", "parse_arg"]


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def parse_arg(raw: str) -> Tuple[Any, str]:
    """
    "VALUE:TYPE" -> (value, type) with the value cast for the type:
    ints accept decimal or 0x-hex, bool accepts true/false/1/0, bytes types
    take 0x-hex, address and string are passed through.
    """
    value, sep, abi_type = raw.rpartition(":")
    if not sep:
        raise typer.BadParameter(f"expected VALUE:TYPE, got {raw!r}")
    abi_type = normalize_type(abi_type)
    if "int" in abi_type:
        return int(value, 0), abi_type
    if abi_type == "bool":
        if value.lower() not in ("true", "false", "1", "0"):
            raise typer.BadParameter(f"not a bool: {value!r}")
        return value.lower() in ("true", "1"), abi_type
    if abi_type.startswith("bytes"):
        return from_hex(value), abi_type
    return value, abi_type


@app.callback()
def _root(
    ctx: typer.Context,
    ledger: Optional[str] = typer.Option(None, "--ledger", help="Ledger JSON-RPC URL."),
    worker: Optional[str] = typer.Option(None, "--worker", help="Worker Service URL."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
) -> None:
    """Resolve the effective configuration for this process."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = ClientConfig.with_overrides(
        ClientConfig.from_env(),
        ledger_url=ledger,
        worker_url=worker,
        request_timeout=timeout,
    )


@app.command("version")
def version() -> None:
    """Print the SDK CLI version."""
    typer.echo(f"conclave-sdk {SDK_VERSION}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    _print_json(ctx.obj.to_dict())


@app.command("grains")
def grains(amount: str = typer.Argument(..., help="Token amount, e.g. 1 or 0.5")) -> None:
    """Convert a token amount to grains."""
    typer.echo(str(to_grains(amount)))


@app.command("status")
def status(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task id (0x...)"),
) -> None:
    """Read the on-chain task record."""

    async def _run() -> Any:
        async with ConclaveClient(ctx.obj) as client:
            record = await client.get_task_record_status(task_id)
            return {**record.to_rpc_dict(), "ethStatusName": record.eth_status.name}

    _print_json(asyncio.run(_run()))


def _summarize(result: TaskResult) -> dict:
    out = {
        "taskId": result.task_id,
        "ethStatus": result.eth_status.name if result.eth_status is not None else None,
        "engStatus": result.eng_status.value,
    }
    if result.succeeded:
        out["output"] = to_hex(result.decrypted_output or b"")
    else:
        out["error"] = result.error_message
    return out


def _write_key_file(path: Path, keys: dict) -> None:
    """Key material for one task as JSON, readable by the owner only on POSIX."""
    path.write_text(json.dumps(keys, indent=2), encoding="utf-8")
    if os.name == "posix":
        os.chmod(path, 0o600)


def _read_key_file(path: Path, task_id: str) -> dict:
    keys = json.loads(path.read_text(encoding="utf-8"))
    for field in ("taskId", "userPrivateKey", "workerEncryptionKey"):
        if not isinstance(keys.get(field), str):
            raise typer.BadParameter(f"{path}: missing {field}")
    if from_hex(keys["taskId"]) != from_hex(task_id):
        raise typer.BadParameter(f"{path} holds the key for task {keys['taskId']}")
    return keys


@app.command("compute")
def compute(
    ctx: typer.Context,
    fn_signature: str = typer.Argument(..., help='Function signature, e.g. "add(uint256,uint256)"'),
    arg: List[str] = typer.Option([], "--arg", help="Argument as VALUE:TYPE (repeatable)."),
    sender: str = typer.Option(..., "--sender", help="Submitting account address."),
    target: Optional[str] = typer.Option(None, "--target", help="Secret contract address."),
    gas_limit: Optional[int] = typer.Option(None, "--gas-limit"),
    gas_price: Optional[str] = typer.Option(None, "--gas-price", help="Gas price in tokens."),
    wait: bool = typer.Option(False, "--wait", help="Wait for, fetch and decrypt the result."),
    key_out: Optional[Path] = typer.Option(
        None, "--key-out", help="Without --wait: file that receives the task key for `result`."
    ),
) -> None:
    """Submit a task; with --wait, follow it to a decrypted result."""
    if not wait and key_out is None:
        raise typer.BadParameter("give --wait, or --key-out to keep the task key for `result`")
    args = [parse_arg(a) for a in arg]
    price = to_grains(gas_price) if gas_price is not None else None

    def _progress(event: TaskEvent, payload: Any) -> None:
        if event is TaskEvent.SUBMITTED:
            typer.echo(f"submitted {payload.task_id}", err=True)
        elif event is TaskEvent.RECORD:
            typer.echo(f"record {payload.eth_status.name}", err=True)

    async def _run() -> Any:
        async with ConclaveClient(ctx.obj) as client:
            if wait:
                return _summarize(
                    await client.run_task(
                        fn_signature, args, gas_limit, price, sender, target, on_event=_progress
                    )
                )
            descriptor = await client.compute_task(
                fn_signature, args, gas_limit, price, sender, target, on_event=_progress
            )
            _write_key_file(key_out, client.export_task_keys(descriptor))
            return {**descriptor.to_rpc_dict(), "keyFile": str(key_out)}

    _print_json(asyncio.run(_run()))


@app.command("result")
def fetch_result(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., help="Task id (0x...)"),
    key_file: Path = typer.Option(..., "--key-file", help="Key file written by `compute --key-out`."),
    wait: bool = typer.Option(False, "--wait", help="Poll until the record is terminal first."),
) -> None:
    """Fetch, verify and decrypt the result of a task submitted earlier."""
    keys = _read_key_file(key_file, task_id)

    async def _run() -> Any:
        async with ConclaveClient(ctx.obj) as client:
            if wait:
                record = await client.wait_task_record(task_id)
            else:
                record = await client.get_task_record_status(task_id)
            fetched = await client.get_task_result(task_id, record)
            with EphemeralKeyPair(from_hex(keys["userPrivateKey"])) as key_pair:
                opened = await client.decrypt_task_result(
                    fetched,
                    key_pair=key_pair,
                    worker_pub_key=from_hex(keys["workerEncryptionKey"]),
                )
            return _summarize(opened)

    _print_json(asyncio.run(_run()))


# --- Entrypoints --------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the CLI. Returns an integer exit code.
    """
    try:
        app(prog_name="conclave-sdk", standalone_mode=False, args=argv)
        return 0
    except typer.Exit as e:  # normal exit
        return int(e.exit_code)
    except Exception as e:
        typer.echo(f"error: {e}", err=True)
        return 1


def run(argv: Optional[list[str]] = None) -> int:
    """Alias for :func:`main`."""
    return main(argv)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
