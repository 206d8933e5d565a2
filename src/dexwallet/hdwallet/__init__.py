"""HD wallet module: mnemonics, key derivation and private key import."""

from dexwallet.hdwallet.base import ChainKeyDeriver, KeyPair, WalletKeys
from dexwallet.hdwallet.factory import get_key_deriver
from dexwallet.hdwallet.mnemonic import generate_mnemonic, validate_mnemonic

__all__ = [
    "ChainKeyDeriver",
    "KeyPair",
    "WalletKeys",
    "generate_mnemonic",
    "get_key_deriver",
    "validate_mnemonic",
]
