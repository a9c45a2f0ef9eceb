"""HTTP client for the remote verification service."""

from solana_verify.remote_client.client import REMOTE_SERVER_URL, VerifyServiceClient

__all__ = ["REMOTE_SERVER_URL", "VerifyServiceClient"]
