"""Scoped checkout of a source repository for local verification."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from solana_verify.errors import RepositoryError

logger = logging.getLogger(__name__)

GitRunner = Callable[[list[str], Path], subprocess.CompletedProcess[bytes]]


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(args: list[str], cwd: Path) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        env=_git_env(),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=False,
    )


def repository_name(repo_url: str) -> str:
    """Directory name git would pick for *repo_url*."""
    name = repo_url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name or name in {".", ".."}:
        raise RepositoryError(f"Cannot derive a directory name from {repo_url!r}")
    return name


@contextmanager
def cloned_repository(
    repo_url: str,
    commit_hash: str | None = None,
    parent: Path | None = None,
    git: GitRunner = run_git,
) -> Iterator[Path]:
    """Clone *repo_url* into a fresh temporary directory and yield the checkout.

    The temporary directory is randomly named, optionally created under
    *parent*, and removed when the block exits however it exits.
    """
    with tempfile.TemporaryDirectory(prefix="solana-verify-", dir=parent) as tmp:
        workdir = Path(tmp)
        checkout = workdir / repository_name(repo_url)
        logger.info("Cloning %s into %s", repo_url, checkout)
        _check(git(["clone", repo_url, str(checkout)], workdir), "clone", repo_url)
        if commit_hash:
            _check(
                git(["checkout", "--quiet", commit_hash], checkout),
                f"checkout {commit_hash}",
                repo_url,
            )
        try:
            yield checkout
        finally:
            logger.info("Removing workspace %s", workdir)


def _check(proc: subprocess.CompletedProcess[bytes], action: str, repo_url: str) -> None:
    if proc.returncode != 0:
        stderr = (proc.stderr or b"").decode("utf-8", errors="replace").strip()
        raise RepositoryError(f"git {action} failed for {repo_url}: {stderr}")
