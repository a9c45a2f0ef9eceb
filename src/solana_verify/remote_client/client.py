"""Async HTTP client for the remote verification service.

Provides :class:`VerifyServiceClient`, which owns the request/response
protocol: submitting a build-verification job and querying its status.
"""

from __future__ import annotations

import logging
from types import TracebackType

import httpx
from pydantic import ValidationError

from solana_verify.errors import PollError, SubmitError
from solana_verify.models.job import (
    ConflictOutcome,
    JobHandle,
    JobStatusResponse,
    PollResult,
    VerificationRequest,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

REMOTE_SERVER_URL = "https://verify.osec.io"


class VerifyServiceClient:
    """Async HTTP client for the verification service.

    Parameters
    ----------
    base_url:
        Root URL of the service.
    timeout:
        Seconds to wait on a submission.  Submission blocks until the
        service has queued the build, so this defaults to several hours.
    poll_timeout:
        Seconds to wait on a single status query.
    transport:
        Optional ``httpx`` transport, used to talk to an in-process service.
    """

    def __init__(
        self,
        base_url: str = REMOTE_SERVER_URL,
        timeout: float = 18_000.0,
        poll_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._poll_timeout = poll_timeout
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, request: VerificationRequest) -> JobHandle | ConflictOutcome:
        """Send *request* to ``POST /verify``.

        Returns
        -------
        JobHandle
            The service accepted the job and will build it asynchronously.
        ConflictOutcome
            The service answered ``409``: an equivalent request was already
            processed.  This is not an error and no job should be polled.

        Raises
        ------
        SubmitError
            The service rejected the request, answered with an unusable
            body, or could not be reached.
        """
        try:
            resp = await self._client.post("/verify", json=request.to_payload())
        except httpx.HTTPError as exc:
            raise SubmitError(str(exc) or type(exc).__name__) from exc

        if resp.is_success:
            try:
                body = VerifyResponse.model_validate_json(resp.content)
            except ValidationError as exc:
                raise SubmitError(resp.text, status_code=resp.status_code) from exc
            logger.info(
                "Verification job accepted: request_id=%s program=%s",
                body.request_id,
                request.program_id,
            )
            return JobHandle(request_id=body.request_id)

        if resp.status_code == httpx.codes.CONFLICT:
            try:
                payload = resp.json()
            except ValueError:
                payload = None
            conflict = ConflictOutcome.from_payload(payload)
            logger.info(
                "Verification request conflicts with an earlier one: kind=%s",
                conflict.kind.value,
            )
            return conflict

        logger.error(
            "Encountered an error while sending the job to remote: status=%d",
            resp.status_code,
        )
        raise SubmitError(resp.text, status_code=resp.status_code)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def poll(self, handle: JobHandle) -> PollResult:
        """Query ``GET /job/{request_id}`` once.

        Raises
        ------
        PollError
            On any transport failure or non-2xx answer.  Nothing is retried.
        """
        try:
            resp = await self._client.get(
                f"/job/{handle.request_id}", timeout=self._poll_timeout
            )
        except httpx.HTTPError as exc:
            raise PollError(
                f"Encountered an error while checking job status: {exc}"
            ) from exc

        if not resp.is_success:
            raise PollError(
                "Encountered an error while checking job status "
                f"(HTTP {resp.status_code}): {resp.text}"
            )

        try:
            body = JobStatusResponse.model_validate_json(resp.content)
        except ValidationError as exc:
            raise PollError(f"Malformed job status response: {resp.text}") from exc

        logger.debug("Job %s status: %s", handle.request_id, body.status.value)
        return PollResult.from_response(body)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> VerifyServiceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
