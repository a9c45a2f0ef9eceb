"""JSON-RPC client for fetching deployed program bytes."""

from __future__ import annotations

import base64
import binascii
import itertools
import logging
from types import TracebackType
from typing import Any

import httpx
from solders.pubkey import Pubkey

from solana_verify.errors import RpcFailure

logger = logging.getLogger(__name__)

BPF_LOADER_UPGRADEABLE_ID = Pubkey.from_string("BPFLoaderUpgradeab1e11111111111111111111111")

# UpgradeableLoaderState headers preceding the executable bytes.
# ProgramData: enum tag (4) + slot (8) + Option<Pubkey> upgrade authority (1 + 32).
PROGRAMDATA_METADATA_SIZE = 45
# Buffer: enum tag (4) + Option<Pubkey> authority (1 + 32).
BUFFER_METADATA_SIZE = 37


def program_data_address(program_id: Pubkey) -> Pubkey:
    """Address of the account holding *program_id*'s executable."""
    address, _bump = Pubkey.find_program_address([bytes(program_id)], BPF_LOADER_UPGRADEABLE_ID)
    return address


class SolanaRpcClient:
    """Async client for a Solana JSON-RPC node.

    Parameters
    ----------
    url:
        RPC endpoint, e.g. ``https://api.mainnet-beta.solana.com``.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional ``httpx`` transport override.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    async def get_account_data(self, address: Pubkey) -> bytes:
        """Return the raw data of the account at *address*.

        Raises
        ------
        RpcFailure
            If the node cannot be reached, answers with an error, or the
            account does not exist.
        """
        result = await self._call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": "confirmed"}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            raise RpcFailure(f"Account {address} not found")

        try:
            encoded, encoding = value["data"]
        except (KeyError, TypeError, ValueError) as exc:
            raise RpcFailure(f"Unexpected account data for {address}: {value!r}") from exc
        if encoding != "base64":
            raise RpcFailure(f"Unexpected account data encoding {encoding!r} for {address}")

        try:
            return base64.b64decode(encoded, validate=True)
        except binascii.Error as exc:
            raise RpcFailure(f"Account data for {address} is not valid base64") from exc

    async def fetch_program_data(self, program_id: Pubkey) -> bytes:
        """Executable bytes of a deployed upgradeable program."""
        address = program_data_address(program_id)
        logger.info("Fetching program data for %s from %s", program_id, address)
        data = await self.get_account_data(address)
        return _strip_header(data, PROGRAMDATA_METADATA_SIZE, address)

    async def fetch_buffer_data(self, buffer_address: Pubkey) -> bytes:
        """Executable bytes staged in a deploy buffer account."""
        logger.info("Fetching buffer data from %s", buffer_address)
        data = await self.get_account_data(buffer_address)
        return _strip_header(data, BUFFER_METADATA_SIZE, buffer_address)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._client.post(self._url, json=payload)
            resp.raise_for_status()
            body = resp.json()
            if not isinstance(body, dict):
                raise ValueError(body)
        except httpx.HTTPError as exc:
            raise RpcFailure(f"RPC request {method} to {self._url} failed: {exc}") from exc
        except ValueError as exc:
            raise RpcFailure(f"RPC response to {method} is not a JSON object") from exc

        if "error" in body:
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RpcFailure(f"RPC {method} failed: {message}")
        return body.get("result")

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SolanaRpcClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def _strip_header(data: bytes, offset: int, address: Pubkey) -> bytes:
    if len(data) < offset:
        raise RpcFailure(
            f"Account {address} holds {len(data)} bytes, fewer than its {offset}-byte header"
        )
    return data[offset:]
