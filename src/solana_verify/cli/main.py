from __future__ import annotations

import argparse
import logging

from rich.console import Console
from rich.markup import escape

from solana_verify.cli.commands import build_cmd, hash_cmd, verify_cmd
from solana_verify.cli.context import CLIContext
from solana_verify.config import Settings
from solana_verify.errors import VerifyError
from solana_verify.progress import ERROR

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-verify",
        description="Verify that on-chain programs match a deterministic source build",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    build_cmd.register(subparsers)
    verify_cmd.register(subparsers)
    hash_cmd.register(subparsers)

    return parser


def configure_logging(level_name: str, verbose: int = 0) -> None:
    level = getattr(logging, level_name.upper(), logging.WARNING)
    if verbose:
        level = min(level, logging.INFO if verbose == 1 else logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None, ctx: CLIContext | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if ctx is None:
        ctx = CLIContext.from_settings(Settings(), Console())
    configure_logging(ctx.settings.log_level, args.verbose)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args, ctx)
    except VerifyError as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        ctx.console.print(f"{ERROR} {escape(str(exc))}")
        return 1


def run() -> None:
    raise SystemExit(main())
