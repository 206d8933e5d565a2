"""Chain registry for all supported networks.

Four chain families share one wallet contract:
- UTXO: Bitcoin (native SegWit)
- Account: EVM networks (ethereum, base, polygon, sonic)
- Single-signer: Solana
- Extended-UTXO: Cardano (Shelley base addresses)

Network endpoints are NOT part of this registry; they come from
configuration (see ``dexwallet.config``) and are passed to providers
explicitly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dexwallet.errors import ValidationError


class ChainFamily(str, Enum):
    """Ledger model of a chain."""

    UTXO = "utxo"
    ACCOUNT = "account"
    SINGLE_SIGNER = "single_signer"
    EXTENDED_UTXO = "extended_utxo"


@dataclass(frozen=True)
class ChainInfo:
    """Static description of a blockchain."""

    name: str
    symbol: str
    family: ChainFamily
    decimals: int  # base-unit exponent
    coin_type: int  # SLIP-44
    chain_id: Optional[int] = None  # EVM chains only


# ======================
# Chain Definitions
# ======================

BITCOIN = ChainInfo(
    name="bitcoin",
    symbol="BTC",
    family=ChainFamily.UTXO,
    decimals=8,
    coin_type=0,  # m/84'/0'/...
)

ETHEREUM = ChainInfo(
    name="ethereum",
    symbol="ETH",
    family=ChainFamily.ACCOUNT,
    decimals=18,
    coin_type=60,  # m/44'/60'/...
    chain_id=1,
)

BASE = ChainInfo(
    name="base",
    symbol="ETH",
    family=ChainFamily.ACCOUNT,
    decimals=18,
    coin_type=60,
    chain_id=8453,
)

POLYGON = ChainInfo(
    name="polygon",
    symbol="POL",
    family=ChainFamily.ACCOUNT,
    decimals=18,
    coin_type=60,
    chain_id=137,
)

SONIC = ChainInfo(
    name="sonic",
    symbol="S",
    family=ChainFamily.ACCOUNT,
    decimals=18,
    coin_type=60,
    chain_id=146,
)

SOLANA = ChainInfo(
    name="solana",
    symbol="SOL",
    family=ChainFamily.SINGLE_SIGNER,
    decimals=9,
    coin_type=501,  # m/44'/501'/account'/change'
)

CARDANO = ChainInfo(
    name="cardano",
    symbol="ADA",
    family=ChainFamily.EXTENDED_UTXO,
    decimals=6,
    coin_type=1815,  # m/1852'/1815'/...
)


CHAINS: dict[str, ChainInfo] = {
    chain.name: chain
    for chain in (BITCOIN, ETHEREUM, BASE, POLYGON, SONIC, SOLANA, CARDANO)
}

# Aliases accepted in requests
_ALIASES = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "matic": "polygon",
    "poly": "polygon",
    "sol": "solana",
    "ada": "cardano",
}


# ======================
# Helper Functions
# ======================

def get_chain(name: str) -> ChainInfo:
    """Resolve a chain by name or alias.

    Raises:
        ValidationError: If the chain is not supported
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("chain name required")

    key = name.strip().lower()
    key = _ALIASES.get(key, key)

    chain = CHAINS.get(key)
    if chain is None:
        raise ValidationError(
            f"Unsupported chain: {name}",
            detail={"supported": sorted(CHAINS)},
        )
    return chain


def get_evm_chains() -> list[ChainInfo]:
    """Get account-model (EVM) chains."""
    return [c for c in CHAINS.values() if c.family == ChainFamily.ACCOUNT]
