"""Solana key derivation.

Ed25519 keys via SLIP-0010, with every path level hardened:
m/44'/501'/account'/change'

The address is the base58 encoding of the 32-byte public key.
"""

import logging
from typing import Any

import base58
from bip_utils import Bip32Slip10Ed25519
from solders.keypair import Keypair

from dexwallet.chains import SOLANA
from dexwallet.errors import UnsupportedKeyFormat
from dexwallet.hdwallet.base import ChainKeyDeriver, KeyPair, WalletKeys
from dexwallet.hdwallet.keycodec import SOLANA_KEY_CODEC
from dexwallet.hdwallet.mnemonic import mnemonic_to_seed

logger = logging.getLogger(__name__)


class SolanaKeyDeriver(ChainKeyDeriver):
    """Solana key deriver.

    The exported secret is the 64-byte seed||public key form that Solana
    CLI keypair files and browser wallets use.
    """

    chain = SOLANA
    codec = SOLANA_KEY_CODEC

    @property
    def purpose(self) -> int:
        return 44

    def get_derivation_path(self, account: int = 0, change: int = 0, index: int = 0) -> str:
        # ed25519 only supports hardened children; index is not part of the path
        return f"m/44'/{self.coin_type}'/{account}'/{change}'"

    def derive(
        self, mnemonic: str, account: int = 0, change: int = 0, index: int = 0
    ) -> WalletKeys:
        self._check_path(account, change, index)
        seed = mnemonic_to_seed(mnemonic)
        path = self.get_derivation_path(account, change)

        node = Bip32Slip10Ed25519.FromSeed(seed).DerivePath(path)
        keypair = Keypair.from_seed(node.PrivateKey().Raw().ToBytes())

        keys = self._build(keypair)
        keys.derivation_path = path
        return keys

    def from_private_key(self, value: Any) -> WalletKeys:
        decoded = self.codec.decode(value)
        return self._build(self.keypair_from_secret(decoded.data))

    def address_from_public_key(self, public_key: bytes) -> str:
        return base58.b58encode(public_key).decode()

    @staticmethod
    def keypair_from_secret(secret: bytes) -> Keypair:
        """Rebuild a keypair from a 32-byte seed or 64-byte secret key.

        Raises:
            UnsupportedKeyFormat: If the public half of a 64-byte secret
                does not belong to its seed
        """
        keypair = Keypair.from_seed(secret[:32])
        if len(secret) == 64 and bytes(keypair.pubkey()) != secret[32:]:
            raise UnsupportedKeyFormat("Secret key public half does not match its seed")
        return keypair

    def _build(self, keypair: Keypair) -> WalletKeys:
        secret = bytes(keypair)
        public_key = bytes(keypair.pubkey())
        address = str(keypair.pubkey())
        logger.debug(f"Derived solana address {address[:10]}...")

        return WalletKeys(
            chain=self.chain.name,
            address=address,
            public_key=address,
            private_key=base58.b58encode(secret).decode(),
            secret_key_bytes=list(secret),
            key_pair=KeyPair(public_key=public_key, private_key=secret),
        )
