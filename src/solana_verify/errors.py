"""Exception hierarchy for solana-verify.

Every fatal condition raised by the verification core derives from
:class:`VerifyError` so that the CLI can report it uniformly.  A ``409``
conflict from the verification service is *not* an error and has no class
here; see :class:`~solana_verify.models.job.ConflictOutcome`.
"""

from __future__ import annotations


class VerifyError(Exception):
    """Base error for all user-facing verification failures."""


class SubmitError(VerifyError):
    """The verification service rejected a job or could not be reached."""

    def __init__(self, body: str, status_code: int | None = None) -> None:
        self.body = body
        self.status_code = status_code
        if status_code is None:
            message = f"Failed to submit verification job: {body}"
        else:
            message = f"Failed to submit verification job (HTTP {status_code}): {body}"
        super().__init__(message)


class PollError(VerifyError):
    """A job status query failed."""


class PollDeadlineExceeded(PollError):
    """The poll policy ran out of attempts or time before a terminal status."""


class VerificationMismatch(VerifyError):
    """The executable digest differs from the on-chain digest."""

    def __init__(self, executable_hash: str, program_hash: str) -> None:
        self.executable_hash = executable_hash
        self.program_hash = program_hash
        super().__init__(
            f"Executable hash mismatch: executable {executable_hash} "
            f"!= on-chain {program_hash}"
        )


class BuildFailure(VerifyError):
    """The deterministic build did not produce an executable."""

    def __init__(self, message: str, output: str = "") -> None:
        # Tool output is kept verbatim; it has usually been streamed already.
        self.output = output
        super().__init__(message)


class RpcFailure(VerifyError):
    """On-chain account data could not be fetched."""


class RepositoryError(VerifyError):
    """Cloning or checking out the source repository failed."""


class InputError(VerifyError):
    """A path or value supplied on the command line cannot be used."""
