"""Key deriver factory.

Maps a chain name (or alias) to its deriver. Derivers are stateless apart
from the network flag, so instances are cached per (chain, testnet).
"""

from dexwallet.chains import ChainFamily, get_chain
from dexwallet.hdwallet.ada import CardanoKeyDeriver
from dexwallet.hdwallet.base import ChainKeyDeriver
from dexwallet.hdwallet.btc import BTCKeyDeriver
from dexwallet.hdwallet.evm import EVMKeyDeriver
from dexwallet.hdwallet.sol import SolanaKeyDeriver

_deriver_cache: dict[tuple[str, bool], ChainKeyDeriver] = {}


def get_key_deriver(chain: str, testnet: bool = False) -> ChainKeyDeriver:
    """Get the key deriver for a chain.

    Args:
        chain: Chain name or alias (bitcoin, eth, polygon, sol, ada, ...)
        testnet: Use test network address encoding (bitcoin, cardano)

    Raises:
        ValidationError: If the chain is not supported
    """
    info = get_chain(chain)
    cache_key = (info.name, testnet)

    if cache_key in _deriver_cache:
        return _deriver_cache[cache_key]

    if info.family == ChainFamily.UTXO:
        deriver: ChainKeyDeriver = BTCKeyDeriver(testnet=testnet)
    elif info.family == ChainFamily.ACCOUNT:
        deriver = EVMKeyDeriver(info)
    elif info.family == ChainFamily.SINGLE_SIGNER:
        deriver = SolanaKeyDeriver()
    else:
        deriver = CardanoKeyDeriver(testnet=testnet)

    _deriver_cache[cache_key] = deriver
    return deriver
