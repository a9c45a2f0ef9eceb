"""Resource limits for build containers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class BuildPolicy:
    """Immutable resource limits applied to a build container.

    Builds need network access to fetch crates, so unlike a sandbox policy
    the network is left to Docker's default.
    """

    memory_limit_mb: int = 8192
    cpu_period: int = 100000
    cpu_quota: int | None = None  # unlimited
    pids_limit: int = 4096
    timeout_seconds: int = 3600
    no_new_privileges: bool = True

    def __post_init__(self) -> None:
        """Validate limits."""
        if self.memory_limit_mb <= 0:
            raise ValueError("memory_limit_mb must be a positive integer.")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be a positive integer.")
        if self.pids_limit <= 0:
            raise ValueError("pids_limit must be a positive integer.")
        if self.cpu_period <= 0:
            raise ValueError("cpu_period must be a positive integer.")
        if self.cpu_quota is not None and self.cpu_quota <= 0:
            raise ValueError("cpu_quota must be a positive integer.")

    def to_container_config(self) -> dict:
        """Convert to keyword arguments for ``containers.create``."""
        config: dict = {
            "mem_limit": f"{self.memory_limit_mb}m",
            "memswap_limit": f"{self.memory_limit_mb}m",  # No swap
            "pids_limit": self.pids_limit,
            "security_opt": ["no-new-privileges"] if self.no_new_privileges else [],
        }
        if self.cpu_quota is not None:
            config["cpu_period"] = self.cpu_period
            config["cpu_quota"] = self.cpu_quota
        return config
