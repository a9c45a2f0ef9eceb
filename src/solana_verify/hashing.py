"""Digests over normalized program binaries.

Program-data accounts are allocated larger than the executable they hold and
the remainder is zero-filled.  Stripping the trailing zero run before hashing
makes a binary's digest independent of the size of the account storing it.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from solana_verify.errors import InputError


@dataclass(frozen=True)
class BinaryDigest:
    """Lowercase hex SHA-256 of a normalized binary."""

    hex: str

    def __str__(self) -> str:
        return self.hex


def normalize(data: bytes) -> bytes:
    """Drop the contiguous run of ``0x00`` bytes at the end of *data*.

    Leading and interior zero bytes are preserved.  A buffer made only of
    zeros normalizes to ``b""``.
    """
    return bytes(data).rstrip(b"\x00")


def digest_bytes(data: bytes) -> BinaryDigest:
    return BinaryDigest(hashlib.sha256(normalize(data)).hexdigest())


def digest_file(path: Path | str) -> BinaryDigest:
    """Digest a local executable with the same normalization as on-chain data."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise InputError(f"Cannot read executable {path}: {exc.strerror or exc}") from exc
    return digest_bytes(data)
