"""Read-only access to on-chain program bytes."""

from solana_verify.rpc.client import (
    BPF_LOADER_UPGRADEABLE_ID,
    BUFFER_METADATA_SIZE,
    PROGRAMDATA_METADATA_SIZE,
    SolanaRpcClient,
    program_data_address,
)

__all__ = [
    "BPF_LOADER_UPGRADEABLE_ID",
    "BUFFER_METADATA_SIZE",
    "PROGRAMDATA_METADATA_SIZE",
    "SolanaRpcClient",
    "program_data_address",
]
