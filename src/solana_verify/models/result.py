"""RemoteReport and LocalReport: final outcomes of the two pipelines."""

from __future__ import annotations

from dataclasses import dataclass

from solana_verify.hashing import BinaryDigest
from solana_verify.models.enums import JobStatus
from solana_verify.models.job import ConflictOutcome, JobOutcome


@dataclass(frozen=True)
class RemoteReport:
    """What the remote pipeline observed for one program.

    Exactly one of ``conflict`` (the submission short-circuited) and
    ``status`` (the job was polled to a terminal state) is set.
    """

    program_id: str
    verified: bool
    status: JobStatus | None = None
    outcome: JobOutcome | None = None
    conflict: ConflictOutcome | None = None

    @property
    def polled(self) -> bool:
        return self.status is not None

    @property
    def exit_code(self) -> int:
        """Process exit status for this report.

        Every report is a completed run, verified or not: the service made
        its decision and it has been printed.  Only a raised
        :class:`~solana_verify.errors.VerifyError` makes the run fail.
        """
        return 0


@dataclass(frozen=True)
class LocalReport:
    """Digest comparison performed without trusting a third party."""

    program_id: str
    executable_hash: BinaryDigest
    program_hash: BinaryDigest

    @property
    def matched(self) -> bool:
        return self.executable_hash == self.program_hash
