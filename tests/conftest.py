"""Shared fakes for the verification service, RPC node, Docker and git."""

from __future__ import annotations

import io
import subprocess
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from rich.console import Console

from solana_verify.config import Settings
from solana_verify.docker_build import DEFAULT_BASE_IMAGE, BuildResult
from solana_verify.errors import BuildFailure
from solana_verify.remote_client import VerifyServiceClient

PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
REPO_URL = "https://github.com/example/hello-world"


# ======================================================================
# Remote verification service
# ======================================================================


class FakeVerifyService:
    """In-process stand-in for the verification service.

    ``statuses`` is consumed one entry per ``GET /job/{id}``; the last entry
    repeats.  A dict entry is returned as JSON, an int entry as an empty
    response with that HTTP status.
    """

    def __init__(
        self,
        statuses: list[dict[str, Any] | int] | None = None,
        submit_status: int = 200,
        submit_body: dict[str, Any] | str | None = None,
    ) -> None:
        self.statuses = list(statuses or [{"status": "Completed"}])
        self.submit_status = submit_status
        self.submit_body = submit_body if submit_body is not None else {"request_id": "req-1"}
        self.submitted: list[dict[str, Any]] = []
        self.polls: list[str] = []
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/verify")
        async def verify(request: Request) -> Response:
            self.submitted.append(await request.json())
            if isinstance(self.submit_body, str):
                return PlainTextResponse(self.submit_body, status_code=self.submit_status)
            return JSONResponse(self.submit_body, status_code=self.submit_status)

        @app.get("/job/{request_id}")
        async def job(request_id: str) -> Response:
            self.polls.append(request_id)
            entry = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if isinstance(entry, int):
                return PlainTextResponse("boom", status_code=entry)
            return JSONResponse(entry)

        return app

    def client(self) -> VerifyServiceClient:
        return VerifyServiceClient(
            "http://verify.test",
            timeout=5.0,
            transport=httpx.ASGITransport(app=self.app),
        )


# ======================================================================
# RPC node
# ======================================================================


class FakeRpc:
    """Returns fixed on-chain bytes, already stripped of account headers."""

    def __init__(self, program_data: bytes = b"", buffer_data: bytes = b"") -> None:
        self.program_data = program_data
        self.buffer_data = buffer_data
        self.calls: list[tuple[str, str]] = []

    async def fetch_program_data(self, program_id) -> bytes:
        self.calls.append(("program", str(program_id)))
        return self.program_data

    async def fetch_buffer_data(self, buffer_address) -> bytes:
        self.calls.append(("buffer", str(buffer_address)))
        return self.buffer_data

    async def __aenter__(self) -> FakeRpc:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


# ======================================================================
# Docker builder
# ======================================================================


class FakeBuilder:
    """Writes ``artifact`` to ``target/deploy/<lib>.so`` instead of running cargo."""

    def __init__(
        self,
        artifact: bytes = b"\x7fELF",
        lib: str = "hello_world",
        fail: bool = False,
        image_files: dict[tuple[str, str], bytes] | None = None,
    ) -> None:
        self.artifact = artifact
        self.lib = lib
        self.fail = fail
        self.image_files = image_files or {}
        self.builds: list[dict[str, Any]] = []

    async def build(
        self,
        mount_path,
        base_image=None,
        bpf_flag=False,
        cargo_args=(),
        policy=None,
        log_sink=None,
    ) -> BuildResult:
        self.builds.append(
            {
                "mount_path": Path(mount_path),
                "base_image": base_image,
                "bpf_flag": bpf_flag,
                "cargo_args": tuple(cargo_args),
            }
        )
        if log_sink is not None:
            log_sink("   Compiling hello-world v0.1.0\n")
        if self.fail:
            raise BuildFailure("Build failed with exit code 101", "error[E0425]: cannot find value")
        deploy = Path(mount_path) / "target" / "deploy"
        deploy.mkdir(parents=True, exist_ok=True)
        (deploy / f"{self.lib}.so").write_bytes(self.artifact)
        return BuildResult(image=base_image or DEFAULT_BASE_IMAGE, exit_code=0, output="")

    async def extract_file(self, image: str, path_in_image: str) -> bytes:
        return self.image_files[(image, path_in_image)]


# ======================================================================
# git
# ======================================================================


class FakeGit:
    """Records git invocations and materialises an empty checkout on clone."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.calls: list[tuple[list[str], Path]] = []
        self.checkouts: list[Path] = []

    def __call__(self, args: list[str], cwd: Path) -> subprocess.CompletedProcess[bytes]:
        self.calls.append((args, cwd))
        if args[0] == self.fail_on:
            return subprocess.CompletedProcess(["git", *args], 128, b"", b"fatal: not found")
        if args[0] == "clone":
            dest = Path(args[2])
            (dest / "program").mkdir(parents=True)
            (dest / "Cargo.toml").write_text("[workspace]\n")
            self.checkouts.append(dest)
        return subprocess.CompletedProcess(["git", *args], 0, b"", b"")


# ======================================================================
# Fixtures
# ======================================================================


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None, force_terminal=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(poll_interval_seconds=0, progress_tick_seconds=0.01)


def output(console: Console) -> str:
    return console.file.getvalue()  # type: ignore[attr-defined]
