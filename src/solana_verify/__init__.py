"""Verify that deployed Solana programs match a deterministic source build."""

__version__ = "0.1.0"
