"""JobStatus and ConflictKind enums."""

from enum import StrEnum


class JobStatus(StrEnum):
    """Lifecycle states of a remote verification job.

    ``COMPLETED``, ``FAILED`` and ``UNKNOWN`` are terminal.  Any status the
    service reports that is not recognised decodes to ``UNKNOWN``.
    """

    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value: object) -> "JobStatus":
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.IN_PROGRESS


class ConflictKind(StrEnum):
    """Interpretations of a ``409`` response to a verification submission."""

    ALREADY_VERIFIED = "already_verified"
    NOT_VERIFIED = "not_verified"
    SERVICE_ERROR = "service_error"
    ALREADY_PROCESSED = "already_processed"
