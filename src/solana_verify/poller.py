"""Polls a verification job until the service reports a terminal status."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from solana_verify.errors import PollDeadlineExceeded
from solana_verify.models.enums import JobStatus
from solana_verify.models.job import JobHandle, PollResult
from solana_verify.progress import ProgressReporter
from solana_verify.remote_client import VerifyServiceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollPolicy:
    """Rest interval and optional limits for the status loop.

    With neither limit set the loop polls until the job is terminal.
    """

    interval_seconds: float = 5.0
    max_attempts: int | None = None
    max_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative.")
        if self.max_attempts is not None and self.max_attempts <= 0:
            raise ValueError("max_attempts must be a positive integer.")
        if self.max_seconds is not None and self.max_seconds <= 0:
            raise ValueError("max_seconds must be positive.")

    def exhausted(self, attempts: int, elapsed: float) -> bool:
        if self.max_attempts is not None and attempts >= self.max_attempts:
            return True
        return self.max_seconds is not None and elapsed >= self.max_seconds


class JobPoller:
    """Drives one job handle through ``InProgress`` to a terminal status.

    Parameters
    ----------
    client:
        Service client whose :meth:`~VerifyServiceClient.poll` is called.
    policy:
        Rest interval and limits.  Defaults to an unbounded policy.
    sleep:
        Coroutine used to rest between polls.
    clock:
        Monotonic clock used for ``policy.max_seconds``.
    """

    def __init__(
        self,
        client: VerifyServiceClient,
        policy: PollPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._policy = policy or PollPolicy()
        self._sleep = sleep
        self._clock = clock

    async def wait(
        self,
        handle: JobHandle,
        reporter: ProgressReporter | None = None,
    ) -> PollResult:
        """Poll *handle* until it is terminal and signal *reporter* once.

        Raises
        ------
        PollError
            Propagated from the client; the reporter is left unsignalled.
        PollDeadlineExceeded
            The policy's limits were reached while the job was in progress.
        """
        started = self._clock()
        attempts = 0

        # A freshly submitted job is implicitly in progress: poll straight away.
        while True:
            result = await self._client.poll(handle)
            attempts += 1

            if result.status is JobStatus.IN_PROGRESS:
                elapsed = self._clock() - started
                if self._policy.exhausted(attempts, elapsed):
                    raise PollDeadlineExceeded(
                        f"Job {handle.request_id} still in progress after "
                        f"{attempts} polls ({elapsed:.0f}s)"
                    )
                await self._sleep(self._policy.interval_seconds)
                continue

            logger.info(
                "Job %s reached %s after %d polls",
                handle.request_id,
                result.status.value,
                attempts,
            )
            if reporter is not None:
                reporter.signal(result.status is JobStatus.COMPLETED)
            return result
