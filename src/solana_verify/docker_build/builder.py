"""Deterministic program builds inside Docker containers."""

from __future__ import annotations

import asyncio
import io
import logging
import os
import tarfile
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import docker
import docker.errors
import requests.exceptions

from solana_verify.docker_build.policy import BuildPolicy
from solana_verify.errors import BuildFailure, InputError

logger = logging.getLogger(__name__)

DEFAULT_BASE_IMAGE = "ellipsislabs/solana:latest"

# Where the program directory is mounted inside the build container.
BUILD_MOUNT = "/build"

RECLAIM_TIMEOUT_SECONDS = 300


def build_command(bpf_flag: bool = False, cargo_args: Sequence[str] = ()) -> list[str]:
    """Cargo invocation run inside the build container."""
    subcommand = "build-bpf" if bpf_flag else "build-sbf"
    return ["cargo", subcommand, "--", "--locked", "--frozen", *cargo_args]


def locate_executable(mount_path: Path | str, lib_name: str | None = None) -> Path:
    """Find the program produced by a build of *mount_path*.

    Cargo writes deployable programs to ``target/deploy/<crate>.so`` with
    dashes in the crate name replaced by underscores.
    """
    deploy_dir = Path(mount_path) / "target" / "deploy"
    if lib_name:
        candidate = deploy_dir / f"{lib_name.replace('-', '_')}.so"
        if not candidate.is_file():
            raise BuildFailure(f"Executable {candidate} not found")
        return candidate

    candidates = sorted(deploy_dir.glob("*.so"))
    if not candidates:
        raise BuildFailure(f"No executable found in {deploy_dir}")
    if len(candidates) > 1:
        names = ", ".join(p.stem for p in candidates)
        raise BuildFailure(
            f"Multiple executables found in {deploy_dir} ({names}); pass a library name"
        )
    return candidates[0]


def _extract_tar(data: bytes) -> dict[str, bytes]:
    """Extract an in-memory tar archive into a dict of path -> content.

    Members with absolute paths or ``..`` components are skipped.
    """
    result: dict[str, bytes] = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            if member.name.startswith("/") or ".." in member.name.split("/"):
                logger.warning("Skipping tar member with suspicious path: %s", member.name)
                continue
            extracted = tar.extractfile(member)
            if extracted is not None:
                result[member.name] = extracted.read()
    return result


@dataclass(frozen=True)
class BuildResult:
    """Outcome of a successful containerised build."""

    image: str
    exit_code: int
    output: str
    execution_time_seconds: float = 0.0


class DockerBuilder:
    """Runs builds and copies artifacts out of images.

    Each operation creates a fresh container and removes it on every exit
    path.  Blocking Docker SDK calls are dispatched via
    ``asyncio.to_thread``.
    """

    def __init__(self, docker_client: docker.DockerClient | None = None) -> None:
        if docker_client is None:
            try:
                docker_client = docker.from_env()
            except docker.errors.DockerException as exc:
                raise BuildFailure(f"Docker is not available: {exc}") from exc
        self._client = docker_client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def build(
        self,
        mount_path: Path | str,
        base_image: str | None = None,
        bpf_flag: bool = False,
        cargo_args: Sequence[str] = (),
        policy: BuildPolicy | None = None,
        log_sink: Callable[[str], None] | None = None,
    ) -> BuildResult:
        """Build the program at *mount_path* in a container from *base_image*.

        Container output is streamed to *log_sink* as it arrives.

        Raises
        ------
        BuildFailure
            If the build exits non-zero, times out, or Docker fails.  The
            container output is attached verbatim.
        """
        policy = policy or BuildPolicy()
        image = base_image or DEFAULT_BASE_IMAGE
        path = Path(mount_path).resolve()
        if not path.is_dir():
            raise BuildFailure(f"Build path {path} is not a directory")

        command = build_command(bpf_flag, cargo_args)
        logger.info("Mounting path %s into %s (image=%s)", path, BUILD_MOUNT, image)

        container = None
        logs: asyncio.Task[str] | None = None
        try:
            container = await self._create(
                image=image,
                command=command,
                working_dir=BUILD_MOUNT,
                volumes={str(path): {"bind": BUILD_MOUNT, "mode": "rw"}},
                detach=True,
                tty=False,
                **policy.to_container_config(),
            )

            start_time = time.monotonic()
            await asyncio.to_thread(container.start)
            logs = asyncio.create_task(
                asyncio.to_thread(_follow_logs, container, log_sink)
            )

            try:
                exit_info = await asyncio.to_thread(
                    container.wait,
                    timeout=policy.timeout_seconds,
                )
            except (
                requests.exceptions.ReadTimeout,
                requests.exceptions.ConnectionError,
            ) as exc:
                logger.warning("Build container %s timed out: %s", container.short_id, exc)
                try:
                    await asyncio.to_thread(container.kill)
                except docker.errors.APIError:
                    # Already exited.
                    pass
                output = await logs
                raise BuildFailure(
                    f"Build timed out after {policy.timeout_seconds}s", output
                ) from exc

            output = await logs
            exit_code = int(exit_info.get("StatusCode", -1))
            elapsed = time.monotonic() - start_time
            if exit_code != 0:
                raise BuildFailure(f"Build failed with exit code {exit_code}", output)

            logger.info("Build finished in %.1fs (container=%s)", elapsed, container.short_id)
            return BuildResult(
                image=image,
                exit_code=exit_code,
                output=output,
                execution_time_seconds=round(elapsed, 3),
            )

        except docker.errors.DockerException as exc:
            logger.exception("Docker error while building in %s", image)
            raise BuildFailure(f"Docker error while building in {image}: {exc}") from exc
        finally:
            if logs is not None:
                _discard(logs)
            if container is not None:
                await self._remove(container)
            if logs is not None:
                await self._reclaim(image, path)

    async def extract_file(self, image: str, path_in_image: str) -> bytes:
        """Copy ``/build/<path_in_image>`` out of *image* without running it."""
        relative = PurePosixPath(path_in_image)
        if relative.is_absolute() or ".." in relative.parts:
            raise InputError(f"Path must be relative to {BUILD_MOUNT}: {path_in_image!r}")
        source = f"{BUILD_MOUNT}/{relative}"

        container = None
        try:
            container = await self._create(image=image)
            try:
                archive_stream, _stat = await asyncio.to_thread(container.get_archive, source)
            except docker.errors.NotFound as exc:
                raise BuildFailure(f"{source} not found in image {image}") from exc
            archive = await asyncio.to_thread(b"".join, archive_stream)
        except docker.errors.DockerException as exc:
            logger.exception("Docker error while reading %s from %s", source, image)
            raise BuildFailure(f"Docker error while reading {source} from {image}: {exc}") from exc
        finally:
            if container is not None:
                await self._remove(container)

        files = _extract_tar(archive)
        if len(files) != 1:
            raise BuildFailure(f"{source} in image {image} is not a single file")
        return next(iter(files.values()))

    # ------------------------------------------------------------------
    # Container helpers
    # ------------------------------------------------------------------

    async def _create(self, image: str, **kwargs):
        try:
            container = await asyncio.to_thread(self._client.containers.create, image, **kwargs)
        except docker.errors.ImageNotFound:
            logger.info("Pulling image %s", image)
            await asyncio.to_thread(self._client.images.pull, image)
            container = await asyncio.to_thread(self._client.containers.create, image, **kwargs)
        logger.info("Container created: id=%s image=%s", container.short_id, image)
        return container

    async def _reclaim(self, image: str, path: Path) -> None:
        """Hand files the build wrote under *path* back to the host user.

        The build runs as the image's default user, usually root, so the
        artifacts it leaves in the bind mount cannot be deleted afterwards by
        an unprivileged caller.
        """
        owner = _host_owner()
        if owner is None:
            return
        helper = None
        try:
            helper = await self._create(
                image=image,
                command=["chown", "-R", owner, BUILD_MOUNT],
                volumes={str(path): {"bind": BUILD_MOUNT, "mode": "rw"}},
                detach=True,
            )
            await asyncio.to_thread(helper.start)
            await asyncio.to_thread(helper.wait, timeout=RECLAIM_TIMEOUT_SECONDS)
        except (
            docker.errors.DockerException,
            requests.exceptions.ReadTimeout,
            requests.exceptions.ConnectionError,
        ) as exc:
            logger.error("Failed to reclaim ownership of %s: %s", path, exc)
        finally:
            if helper is not None:
                await self._remove(helper)

    async def _remove(self, container) -> None:
        try:
            await asyncio.to_thread(container.remove, force=True)
            logger.info("Container removed: id=%s", container.short_id)
        except docker.errors.APIError as exc:
            # Do not mask the original exception, if any.
            logger.error("Failed to remove container %s: %s", container.short_id, exc)


def _host_owner() -> str | None:
    """``uid:gid`` of this process, or None when no ownership fix is needed."""
    if not hasattr(os, "getuid") or os.getuid() == 0:
        return None
    return f"{os.getuid()}:{os.getgid()}"


def _discard(task: asyncio.Task[str]) -> None:
    if not task.done():
        task.cancel()
    elif not task.cancelled() and task.exception() is not None:
        logger.debug("Log stream ended with %r", task.exception())


def _follow_logs(container, sink: Callable[[str], None] | None) -> str:
    chunks: list[str] = []
    for chunk in container.logs(stream=True, follow=True):
        text = chunk.decode("utf-8", errors="replace")
        chunks.append(text)
        if sink is not None:
            sink(text)
    return "".join(chunks)
