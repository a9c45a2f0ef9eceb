from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from solana_verify.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "build",
        help="Deterministically build the program in a Docker container",
    )
    parser.add_argument(
        "-d",
        "--build-dir",
        type=Path,
        help="Path to mount to the docker image (default: current directory)",
    )
    parser.add_argument("-b", "--base-image", help="Docker image to build in")
    parser.add_argument("--bpf", action="store_true", help="Build with cargo build-bpf")
    parser.add_argument("cargo_args", nargs="*", help="Extra cargo arguments, after --")
    parser.set_defaults(handler=run_build)


def run_build(args: argparse.Namespace, ctx: CLIContext) -> int:
    build_dir = args.build_dir or Path.cwd()
    orchestrator = ctx.orchestrator(builder=ctx.builder_factory())
    asyncio.run(
        orchestrator.build(
            build_dir,
            base_image=args.base_image,
            bpf_flag=args.bpf,
            cargo_args=args.cargo_args,
        )
    )
    return 0
