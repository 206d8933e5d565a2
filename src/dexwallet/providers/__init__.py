"""Network providers: thin httpx clients over public chain APIs."""

from dexwallet.providers.base import BaseProvider, JsonRpcProvider, RpcError
from dexwallet.providers.blockfrost import BlockfrostProvider
from dexwallet.providers.esplora import EsploraProvider
from dexwallet.providers.evm_rpc import EvmRpcProvider
from dexwallet.providers.solana_rpc import SolanaRpcProvider

__all__ = [
    "BaseProvider",
    "BlockfrostProvider",
    "EsploraProvider",
    "EvmRpcProvider",
    "JsonRpcProvider",
    "RpcError",
    "SolanaRpcProvider",
]
