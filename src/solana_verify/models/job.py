"""VerificationRequest, JobHandle, JobOutcome and ConflictOutcome models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from solders.pubkey import Pubkey

from solana_verify.models.enums import ConflictKind, JobStatus


class VerificationRequest(BaseModel):
    """A build-verification request submitted to the remote service."""

    model_config = ConfigDict(frozen=True)

    repository: str = Field(description="URL of the source repository.")
    commit_hash: str | None = Field(
        default=None,
        description="Commit to build. The service uses the default branch head if omitted.",
    )
    program_id: str = Field(description="Base58 address of the deployed program.")
    lib_name: str | None = Field(
        default=None,
        description="Name of the library crate when the workspace builds several programs.",
    )
    bpf_flag: bool = Field(
        default=False,
        description="Build with cargo build-bpf instead of cargo build-sbf.",
    )
    relative_mount_path: str | None = Field(
        default=None,
        description="Path of the program inside the repository. Empty means the repository root.",
    )
    base_image: str | None = Field(
        default=None,
        description="Docker image the build runs in.",
    )
    cargo_args: tuple[str, ...] = Field(
        default=(),
        description="Extra arguments appended to the cargo build command.",
    )

    @field_validator("program_id")
    @classmethod
    def _check_program_id(cls, value: str) -> str:
        try:
            Pubkey.from_string(value)
        except ValueError as exc:
            raise ValueError(f"invalid program id {value!r}") from exc
        return value

    @field_validator("relative_mount_path")
    @classmethod
    def _empty_mount_path_is_unset(cls, value: str | None) -> str | None:
        return value or None

    def to_payload(self) -> dict[str, Any]:
        """Body of ``POST /verify``."""
        return {
            "repository": self.repository,
            "commit_hash": self.commit_hash,
            "program_id": self.program_id,
            "lib_name": self.lib_name,
            "bpf_flag": self.bpf_flag,
            "mount_path": self.relative_mount_path,
            "base_image": self.base_image,
            "cargo_args": list(self.cargo_args),
        }


class JobHandle(BaseModel):
    """Identifier of a job accepted by the verification service."""

    model_config = ConfigDict(frozen=True)

    request_id: str


class VerifyResponse(BaseModel):
    """Success body of ``POST /verify``."""

    request_id: str


class JobStatusResponse(BaseModel):
    """Body of ``GET /job/{request_id}``.

    Outcome fields are only populated once the job is terminal.
    """

    status: JobStatus
    message: str = ""
    on_chain_hash: str = ""
    executable_hash: str = ""
    repo_url: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _decode_status(cls, value: Any) -> JobStatus:
        return JobStatus(value) if isinstance(value, str) else JobStatus.UNKNOWN

    @field_validator("message", "on_chain_hash", "executable_hash", "repo_url", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class JobOutcome(BaseModel):
    """Result carried by a terminal job.

    For ``Completed`` the hashes and repository URL come from the service,
    which performed the comparison itself.  For ``Failed`` only ``message``
    is meaningful.
    """

    model_config = ConfigDict(frozen=True)

    on_chain_hash: str = ""
    executable_hash: str = ""
    repo_url: str = ""
    message: str = ""


class PollResult(BaseModel):
    """A single status observation."""

    model_config = ConfigDict(frozen=True)

    status: JobStatus
    outcome: JobOutcome | None = None

    @classmethod
    def from_response(cls, response: JobStatusResponse) -> PollResult:
        if response.status is JobStatus.COMPLETED:
            outcome = JobOutcome(
                on_chain_hash=response.on_chain_hash,
                executable_hash=response.executable_hash,
                repo_url=response.repo_url,
            )
        elif response.status is JobStatus.FAILED:
            outcome = JobOutcome(message=response.message)
        else:
            outcome = None
        return cls(status=response.status, outcome=outcome)


class ConflictOutcome(BaseModel):
    """Decoded ``409`` payload: the request was already submitted or processed."""

    model_config = ConfigDict(frozen=True)

    kind: ConflictKind
    on_chain_hash: str = ""
    executable_hash: str = ""
    message: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> ConflictOutcome:
        """Interpret a conflict body.

        ``{"is_verified": bool, ...}`` takes precedence over
        ``{"status": "error", "error": ...}``; anything else is reported as
        already processed.
        """
        if not isinstance(payload, dict):
            return cls(kind=ConflictKind.ALREADY_PROCESSED)

        is_verified = payload.get("is_verified")
        if isinstance(is_verified, bool):
            if not is_verified:
                return cls(kind=ConflictKind.NOT_VERIFIED)
            return cls(
                kind=ConflictKind.ALREADY_VERIFIED,
                on_chain_hash=_text(payload.get("on_chain_hash")),
                executable_hash=_text(payload.get("executable_hash")),
            )

        if payload.get("status") == "error":
            return cls(
                kind=ConflictKind.SERVICE_ERROR,
                message=_text(payload.get("error")),
            )

        return cls(kind=ConflictKind.ALREADY_PROCESSED)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
