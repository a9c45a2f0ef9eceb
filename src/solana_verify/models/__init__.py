"""Core domain models for solana-verify."""

from solana_verify.models.enums import ConflictKind, JobStatus
from solana_verify.models.job import (
    ConflictOutcome,
    JobHandle,
    JobOutcome,
    JobStatusResponse,
    PollResult,
    VerificationRequest,
    VerifyResponse,
)
from solana_verify.models.result import LocalReport, RemoteReport

__all__ = [
    "ConflictKind",
    "ConflictOutcome",
    "JobHandle",
    "JobOutcome",
    "JobStatus",
    "JobStatusResponse",
    "LocalReport",
    "PollResult",
    "RemoteReport",
    "VerificationRequest",
    "VerifyResponse",
]
