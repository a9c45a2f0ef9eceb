"""Pydantic settings for the verification CLI."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration loaded from environment variables.

    Command-line flags take precedence over these values for a single
    invocation.
    """

    model_config = {"env_prefix": "SOLANA_VERIFY_"}

    remote_url: str = "https://verify.osec.io"
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    base_image: str = "ellipsislabs/solana:latest"
    submit_timeout_seconds: float = 18_000.0  # 5 hours, builds are slow
    request_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 5.0
    max_poll_attempts: int | None = None
    max_poll_seconds: float | None = None
    progress_tick_seconds: float = 0.1
    build_timeout_seconds: int = 3600
    build_memory_limit_mb: int = 8192
    log_level: str = "WARNING"
