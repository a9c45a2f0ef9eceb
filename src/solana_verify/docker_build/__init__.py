"""Build collaborator: runs cargo inside Docker and extracts executables."""

from solana_verify.docker_build.builder import (
    DEFAULT_BASE_IMAGE,
    BuildResult,
    DockerBuilder,
    build_command,
    locate_executable,
)
from solana_verify.docker_build.policy import BuildPolicy

__all__ = [
    "DEFAULT_BASE_IMAGE",
    "BuildPolicy",
    "BuildResult",
    "DockerBuilder",
    "build_command",
    "locate_executable",
]
