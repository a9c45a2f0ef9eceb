from __future__ import annotations

import argparse
from collections.abc import Callable
from dataclasses import dataclass

from rich.console import Console
from solders.pubkey import Pubkey

from solana_verify.config import Settings
from solana_verify.docker_build import DockerBuilder
from solana_verify.orchestrator import VerificationOrchestrator
from solana_verify.remote_client import VerifyServiceClient
from solana_verify.rpc import SolanaRpcClient
from solana_verify.workspace import GitRunner, run_git


@dataclass(slots=True)
class CLIContext:
    settings: Settings
    console: Console
    rpc_factory: Callable[[str], SolanaRpcClient]
    builder_factory: Callable[[], DockerBuilder]
    service_factory: Callable[[str], VerifyServiceClient]
    git: GitRunner = run_git

    @classmethod
    def from_settings(cls, settings: Settings, console: Console) -> CLIContext:
        return cls(
            settings=settings,
            console=console,
            rpc_factory=lambda url: SolanaRpcClient(url, timeout=settings.request_timeout_seconds),
            builder_factory=DockerBuilder,
            service_factory=lambda url: VerifyServiceClient(
                url,
                timeout=settings.submit_timeout_seconds,
                poll_timeout=settings.request_timeout_seconds,
            ),
        )

    def orchestrator(
        self,
        rpc: SolanaRpcClient | None = None,
        builder: DockerBuilder | None = None,
    ) -> VerificationOrchestrator:
        return VerificationOrchestrator(
            self.console,
            rpc=rpc,
            builder=builder,
            settings=self.settings,
            git=self.git,
        )

    def rpc_url(self, args: argparse.Namespace) -> str:
        return getattr(args, "url", None) or self.settings.rpc_url


def pubkey_arg(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid public key: {value!r}") from exc
