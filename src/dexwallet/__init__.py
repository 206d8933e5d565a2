"""dexwallet - multi-chain wallet engine (Bitcoin, EVM, Solana, Cardano)."""

__version__ = "0.1.0"
