"""Wallet services: per-chain wallets, registry and balance normalization."""

from dexwallet.services.balance import Balance, from_base_units, to_base_units
from dexwallet.services.wallet import (
    BitcoinWallet,
    CardanoWallet,
    ChainWallet,
    EvmWallet,
    SolanaWallet,
    WalletRegistry,
    build_registry,
)

__all__ = [
    "Balance",
    "BitcoinWallet",
    "CardanoWallet",
    "ChainWallet",
    "EvmWallet",
    "SolanaWallet",
    "WalletRegistry",
    "build_registry",
    "from_base_units",
    "to_base_units",
]
