from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from solana_verify.cli.context import CLIContext, pubkey_arg


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    exe_parser = subparsers.add_parser(
        "get-executable-hash",
        help="Get the hash of a program binary from an executable file",
    )
    exe_parser.add_argument("filepath", type=Path, help="Path to the executable")
    exe_parser.set_defaults(handler=run_executable_hash)

    program_parser = subparsers.add_parser(
        "get-program-hash",
        help="Get the hash of a program binary from the deployed on-chain program",
    )
    program_parser.add_argument("-u", "--url", help="RPC endpoint (default: settings rpc_url)")
    program_parser.add_argument("program_id", type=pubkey_arg, help="Program ID")
    program_parser.set_defaults(handler=run_program_hash)

    buffer_parser = subparsers.add_parser(
        "get-buffer-hash",
        help="Get the hash of a program binary from the deployed buffer address",
    )
    buffer_parser.add_argument("-u", "--url", help="RPC endpoint (default: settings rpc_url)")
    buffer_parser.add_argument(
        "buffer_address",
        type=pubkey_arg,
        help="Address of the buffer account containing the deployed program data",
    )
    buffer_parser.set_defaults(handler=run_buffer_hash)


def run_executable_hash(args: argparse.Namespace, ctx: CLIContext) -> int:
    ctx.console.print(str(ctx.orchestrator().executable_hash(args.filepath)))
    return 0


def run_program_hash(args: argparse.Namespace, ctx: CLIContext) -> int:
    async def _run() -> str:
        async with ctx.rpc_factory(ctx.rpc_url(args)) as rpc:
            return str(await ctx.orchestrator(rpc=rpc).program_hash(args.program_id))

    ctx.console.print(asyncio.run(_run()))
    return 0


def run_buffer_hash(args: argparse.Namespace, ctx: CLIContext) -> int:
    async def _run() -> str:
        async with ctx.rpc_factory(ctx.rpc_url(args)) as rpc:
            return str(await ctx.orchestrator(rpc=rpc).buffer_hash(args.buffer_address))

    ctx.console.print(asyncio.run(_run()))
    return 0
