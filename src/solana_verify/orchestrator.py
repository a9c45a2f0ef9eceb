"""Composes submission, polling, builds and digests into verification runs.

Two independent pipelines share the hash normalizer:

* the *remote* pipeline submits a job to the verification service, polls
  it while a progress reporter animates, and trusts the service's own
  hash comparison;
* the *local* pipelines build (or extract) the executable themselves, hash
  it and the on-chain program data, and compare the two digests directly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from solders.pubkey import Pubkey

from solana_verify.config import Settings
from solana_verify.docker_build import BuildPolicy, BuildResult, DockerBuilder, locate_executable
from solana_verify.errors import RepositoryError, VerificationMismatch
from solana_verify.hashing import BinaryDigest, digest_bytes, digest_file
from solana_verify.models.enums import ConflictKind, JobStatus
from solana_verify.models.job import ConflictOutcome, PollResult, VerificationRequest
from solana_verify.models.result import LocalReport, RemoteReport
from solana_verify.poller import JobPoller, PollPolicy
from solana_verify.progress import DONE, ERROR, WAITING, ProgressReporter
from solana_verify.remote_client import VerifyServiceClient
from solana_verify.rpc import SolanaRpcClient
from solana_verify.workspace import GitRunner, cloned_repository, run_git

logger = logging.getLogger(__name__)


class VerificationOrchestrator:
    """Runs the remote and local verification pipelines and prints their reports.

    Parameters
    ----------
    console:
        Where all user-facing output goes.
    rpc:
        Source of on-chain bytes.  Required by every pipeline that reads the
        chain.
    builder:
        Docker build collaborator.  Required by ``build`` and the
        ``verify_from_*`` pipelines.
    settings:
        Poll, progress and build limits.  Defaults to environment settings.
    sleep:
        Rest coroutine handed to the poller.
    git:
        Runner used to clone repositories.
    """

    def __init__(
        self,
        console: Console,
        rpc: SolanaRpcClient | None = None,
        builder: DockerBuilder | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        git: GitRunner = run_git,
    ) -> None:
        self._console = console
        self._rpc = rpc
        self._builder = builder
        self._settings = settings or Settings()
        self._sleep = sleep
        self._git = git

    # ------------------------------------------------------------------
    # Digests
    # ------------------------------------------------------------------

    def executable_hash(self, path: Path | str) -> BinaryDigest:
        return digest_file(path)

    async def program_hash(self, program_id: Pubkey) -> BinaryDigest:
        return digest_bytes(await self._require_rpc().fetch_program_data(program_id))

    async def buffer_hash(self, buffer_address: Pubkey) -> BinaryDigest:
        return digest_bytes(await self._require_rpc().fetch_buffer_data(buffer_address))

    # ------------------------------------------------------------------
    # Local pipelines
    # ------------------------------------------------------------------

    async def build(
        self,
        mount_path: Path | str,
        base_image: str | None = None,
        bpf_flag: bool = False,
        cargo_args: Sequence[str] = (),
    ) -> BuildResult:
        """Run the deterministic build, streaming the tool output verbatim."""
        self._console.print(f"Mounting path: {escape(str(mount_path))}")
        return await self._require_builder().build(
            mount_path,
            base_image=base_image or self._settings.base_image,
            bpf_flag=bpf_flag,
            cargo_args=cargo_args,
            policy=BuildPolicy(
                memory_limit_mb=self._settings.build_memory_limit_mb,
                timeout_seconds=self._settings.build_timeout_seconds,
            ),
            log_sink=self._stream,
        )

    async def verify_executable(
        self, executable_hash: BinaryDigest, program_id: Pubkey
    ) -> LocalReport:
        """Compare *executable_hash* with the deployed program's digest.

        Raises
        ------
        VerificationMismatch
            If the digests differ.  Both digests are printed first.
        """
        report = LocalReport(
            program_id=str(program_id),
            executable_hash=executable_hash,
            program_hash=await self.program_hash(program_id),
        )
        self._console.print(f"Executable hash: {report.executable_hash}")
        self._console.print(f"On-chain program hash: {report.program_hash}")

        if not report.matched:
            self._console.print(f"Executable hash mismatch {ERROR}")
            raise VerificationMismatch(str(report.executable_hash), str(report.program_hash))

        self._console.print(f"Executable matches on-chain program data {DONE}")
        return report

    async def verify_from_image(
        self, image: str, executable_path: str, program_id: Pubkey
    ) -> LocalReport:
        """Verify an executable cached under ``/build`` in a Docker image."""
        self._console.print(
            f"Verifying image: {escape(image)} against program ID {program_id}"
        )
        self._console.print(f"Executable path in container: {escape(executable_path)}")
        data = await self._require_builder().extract_file(image, executable_path)
        return await self.verify_executable(digest_bytes(data), program_id)

    async def verify_from_repo(
        self,
        repo_url: str,
        program_id: Pubkey,
        mount_path: str = "",
        commit_hash: str | None = None,
        lib_name: str | None = None,
        base_image: str | None = None,
        bpf_flag: bool = False,
        cargo_args: Sequence[str] = (),
        workdir: Path | None = None,
    ) -> LocalReport:
        """Clone, build and compare against the chain in a scoped workspace.

        The clone is removed whether the run matches, mismatches or fails.
        """
        with cloned_repository(repo_url, commit_hash, parent=workdir, git=self._git) as checkout:
            build_path = (checkout / mount_path).resolve()
            if not build_path.is_relative_to(checkout.resolve()):
                raise RepositoryError(f"Mount path {mount_path!r} escapes the repository")
            self._console.print(f"Build path: {escape(str(build_path))}")

            await self.build(build_path, base_image, bpf_flag, cargo_args)
            executable = locate_executable(build_path, lib_name)
            logger.info("Built executable %s", executable)
            return await self.verify_executable(self.executable_hash(executable), program_id)

    # ------------------------------------------------------------------
    # Remote pipeline
    # ------------------------------------------------------------------

    async def verify_remote(
        self,
        request: VerificationRequest,
        client: VerifyServiceClient,
        policy: PollPolicy | None = None,
    ) -> RemoteReport:
        """Submit *request* and follow the job to a terminal status.

        A ``409`` conflict is reported straight from the submission answer
        and the job is never polled.
        """
        submission = await client.submit(request)
        if isinstance(submission, ConflictOutcome):
            return self._report_conflict(request.program_id, submission)

        self._console.print(f"Verification request sent. {DONE}")
        self._console.print(f"Verification in progress... {WAITING}")

        poller = JobPoller(client, policy or self._poll_policy(), sleep=self._sleep)
        reporter = ProgressReporter(
            self._console, tick_seconds=self._settings.progress_tick_seconds
        )
        reporter.start()
        try:
            result = await poller.wait(submission, reporter)
        finally:
            # The reporter's summary line must be out before the report.
            await reporter.close()

        return self._report_job(request.program_id, result)

    def _report_job(self, program_id: str, result: PollResult) -> RemoteReport:
        outcome = result.outcome
        if result.status is JobStatus.COMPLETED and outcome is not None:
            self._console.print(f"Program {program_id} has been successfully verified. {DONE}")
            self._console.print("\nThe provided GitHub build matches the on-chain hash:")
            self._console.print(f"On Chain Hash: {escape(outcome.on_chain_hash)}")
            self._console.print(f"Executable Hash: {escape(outcome.executable_hash)}")
            self._console.print(f"Repo URL: {escape(outcome.repo_url)}")
            return RemoteReport(program_id, True, status=result.status, outcome=outcome)

        self._console.print(f"Program {program_id} has not been verified. {ERROR}")
        if result.status is JobStatus.FAILED and outcome is not None:
            self._console.print(f"Error message: {escape(outcome.message)}")
        return RemoteReport(program_id, False, status=result.status, outcome=outcome)

    def _report_conflict(self, program_id: str, conflict: ConflictOutcome) -> RemoteReport:
        if conflict.kind is ConflictKind.ALREADY_VERIFIED:
            self._console.print(f"Program {program_id} has already been verified. {DONE}")
            self._console.print(f"On Chain Hash: {escape(conflict.on_chain_hash)}")
            self._console.print(f"Executable Hash: {escape(conflict.executable_hash)}")
            return RemoteReport(program_id, True, conflict=conflict)

        if conflict.kind is ConflictKind.NOT_VERIFIED:
            self._console.print("This request has already been processed.")
            self._console.print(f"Program {program_id} has not been verified. {ERROR}")
        elif conflict.kind is ConflictKind.SERVICE_ERROR:
            self._console.print(f"Error message: {escape(conflict.message)}")
        else:
            self._console.print("This request has already been processed.")
        return RemoteReport(program_id, False, conflict=conflict)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _poll_policy(self) -> PollPolicy:
        return PollPolicy(
            interval_seconds=self._settings.poll_interval_seconds,
            max_attempts=self._settings.max_poll_attempts,
            max_seconds=self._settings.max_poll_seconds,
        )

    def _stream(self, text: str) -> None:
        self._console.out(text, end="", highlight=False)

    def _require_rpc(self) -> SolanaRpcClient:
        if self._rpc is None:
            raise RuntimeError("This operation needs an RPC client")
        return self._rpc

    def _require_builder(self) -> DockerBuilder:
        if self._builder is None:
            raise RuntimeError("This operation needs a Docker builder")
        return self._builder
