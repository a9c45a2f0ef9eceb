from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from solana_verify.cli.context import CLIContext, pubkey_arg
from solana_verify.models.job import VerificationRequest


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    image_parser = subparsers.add_parser(
        "verify-from-image",
        help="Verify a cached build from a docker image",
    )
    image_parser.add_argument("-e", "--executable-path-in-image", required=True)
    image_parser.add_argument("-i", "--image", required=True)
    image_parser.add_argument("-u", "--url", help="RPC endpoint (default: settings rpc_url)")
    image_parser.add_argument("-p", "--program-id", type=pubkey_arg, required=True)
    image_parser.set_defaults(handler=run_verify_from_image)

    repo_parser = subparsers.add_parser(
        "verify-from-repo",
        help="Build a repository and verify it against an on-chain program",
    )
    repo_parser.add_argument("repo_url")
    repo_parser.add_argument("-p", "--program-id", type=pubkey_arg, required=True)
    repo_parser.add_argument(
        "-s",
        "--mount-path",
        "--solana-program-path",
        dest="mount_path",
        default="",
        help="Path of the program inside the repository",
    )
    repo_parser.add_argument("--commit-hash", help="Commit to check out before building")
    repo_parser.add_argument("--library-name", help="Library crate to verify")
    repo_parser.add_argument("-b", "--base-image", help="Docker image to build in")
    repo_parser.add_argument("--bpf", action="store_true", help="Build with cargo build-bpf")
    repo_parser.add_argument(
        "-u",
        "--url",
        "--connection-url",
        dest="url",
        help="RPC endpoint (default: settings rpc_url)",
    )
    repo_parser.add_argument(
        "--remote",
        action="store_true",
        help="Submit the build to the remote verification service instead",
    )
    repo_parser.add_argument("--remote-url", help="Verification service URL")
    repo_parser.add_argument("--workdir", type=Path, help="Directory for the temporary clone")
    repo_parser.add_argument("cargo_args", nargs="*", help="Extra cargo arguments, after --")
    repo_parser.set_defaults(handler=run_verify_from_repo)


def run_verify_from_image(args: argparse.Namespace, ctx: CLIContext) -> int:
    async def _run() -> None:
        async with ctx.rpc_factory(ctx.rpc_url(args)) as rpc:
            orchestrator = ctx.orchestrator(rpc=rpc, builder=ctx.builder_factory())
            await orchestrator.verify_from_image(
                args.image, args.executable_path_in_image, args.program_id
            )

    asyncio.run(_run())
    return 0


def run_verify_from_repo(args: argparse.Namespace, ctx: CLIContext) -> int:
    if args.remote:
        return asyncio.run(_verify_remote(args, ctx))

    async def _run() -> None:
        async with ctx.rpc_factory(ctx.rpc_url(args)) as rpc:
            orchestrator = ctx.orchestrator(rpc=rpc, builder=ctx.builder_factory())
            await orchestrator.verify_from_repo(
                args.repo_url,
                args.program_id,
                mount_path=args.mount_path,
                commit_hash=args.commit_hash,
                lib_name=args.library_name,
                base_image=args.base_image,
                bpf_flag=args.bpf,
                cargo_args=args.cargo_args,
                workdir=args.workdir,
            )

    asyncio.run(_run())
    return 0


async def _verify_remote(args: argparse.Namespace, ctx: CLIContext) -> int:
    request = VerificationRequest(
        repository=args.repo_url,
        commit_hash=args.commit_hash,
        program_id=str(args.program_id),
        lib_name=args.library_name,
        bpf_flag=args.bpf,
        relative_mount_path=args.mount_path,
        base_image=args.base_image,
        cargo_args=tuple(args.cargo_args),
    )
    async with ctx.service_factory(args.remote_url or ctx.settings.remote_url) as client:
        report = await ctx.orchestrator().verify_remote(request, client)
    return report.exit_code
