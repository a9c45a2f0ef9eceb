"""Tests for the job status poller."""

from __future__ import annotations

import asyncio

import pytest

from solana_verify.errors import PollDeadlineExceeded, PollError
from solana_verify.models import JobHandle, JobOutcome, JobStatus, PollResult
from solana_verify.poller import JobPoller, PollPolicy

HANDLE = JobHandle(request_id="req-1")


class ScriptedClient:
    """Answers ``InProgress`` *pending* times, then *final* forever."""

    def __init__(self, pending: int, final: PollResult | Exception) -> None:
        self.pending = pending
        self.final = final
        self.polls = 0

    async def poll(self, handle: JobHandle) -> PollResult:
        self.polls += 1
        if self.polls <= self.pending:
            return PollResult(status=JobStatus.IN_PROGRESS)
        if isinstance(self.final, Exception):
            raise self.final
        return self.final


class RecordingReporter:
    def __init__(self) -> None:
        self.signals: list[bool] = []

    def signal(self, success: bool) -> None:
        self.signals.append(success)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _wait(client, policy=None, reporter=None, sleep=None, clock=None):
    kwargs = {"sleep": sleep or RecordingSleep()}
    if clock is not None:
        kwargs["clock"] = clock
    poller = JobPoller(client, policy, **kwargs)
    return asyncio.run(poller.wait(HANDLE, reporter))


# ======================================================================
# PollPolicy
# ======================================================================


class TestPollPolicy:
    def test_default_is_unbounded(self):
        policy = PollPolicy()
        assert policy.exhausted(10_000, 1e9) is False

    def test_max_attempts(self):
        policy = PollPolicy(max_attempts=3)
        assert policy.exhausted(2, 0) is False
        assert policy.exhausted(3, 0) is True

    def test_max_seconds(self):
        policy = PollPolicy(max_seconds=60)
        assert policy.exhausted(1, 59.9) is False
        assert policy.exhausted(1, 60) is True

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"interval_seconds": -1}, "interval_seconds"),
            ({"max_attempts": 0}, "max_attempts"),
            ({"max_seconds": 0}, "max_seconds"),
        ],
    )
    def test_invalid_values(self, kwargs, field):
        with pytest.raises(ValueError, match=field):
            PollPolicy(**kwargs)


# ======================================================================
# JobPoller
# ======================================================================


class TestJobPoller:
    @pytest.mark.parametrize(
        "final, success",
        [
            (PollResult(status=JobStatus.COMPLETED, outcome=JobOutcome(on_chain_hash="aa")), True),
            (PollResult(status=JobStatus.FAILED, outcome=JobOutcome(message="boom")), False),
            (PollResult(status=JobStatus.UNKNOWN), False),
        ],
    )
    def test_reaches_terminal_after_in_progress(self, final, success):
        client = ScriptedClient(pending=3, final=final)
        reporter = RecordingReporter()
        sleep = RecordingSleep()

        result = _wait(client, PollPolicy(interval_seconds=5), reporter, sleep)

        assert result == final
        assert client.polls == 4
        assert sleep.calls == [5, 5, 5]
        assert reporter.signals == [success]

    def test_polls_immediately_without_sleeping(self):
        client = ScriptedClient(pending=0, final=PollResult(status=JobStatus.COMPLETED))
        sleep = RecordingSleep()
        _wait(client, sleep=sleep)
        assert client.polls == 1
        assert sleep.calls == []

    def test_works_without_reporter(self):
        client = ScriptedClient(pending=1, final=PollResult(status=JobStatus.UNKNOWN))
        assert _wait(client).status is JobStatus.UNKNOWN

    def test_poll_error_propagates_without_signal(self):
        client = ScriptedClient(pending=2, final=PollError("connection reset"))
        reporter = RecordingReporter()
        with pytest.raises(PollError, match="connection reset"):
            _wait(client, reporter=reporter)
        assert client.polls == 3
        assert reporter.signals == []

    def test_max_attempts_bounds_loop(self):
        client = ScriptedClient(pending=100, final=PollResult(status=JobStatus.COMPLETED))
        with pytest.raises(PollDeadlineExceeded, match="req-1"):
            _wait(client, PollPolicy(interval_seconds=0, max_attempts=4))
        assert client.polls == 4

    def test_max_seconds_bounds_loop(self):
        ticks = iter(range(0, 1000, 10))
        client = ScriptedClient(pending=100, final=PollResult(status=JobStatus.COMPLETED))
        with pytest.raises(PollDeadlineExceeded):
            _wait(client, PollPolicy(interval_seconds=0, max_seconds=25), clock=lambda: next(ticks))
        assert client.polls == 3

    def test_deadline_is_a_poll_error(self):
        assert issubclass(PollDeadlineExceeded, PollError)
