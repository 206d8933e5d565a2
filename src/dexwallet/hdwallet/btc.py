"""Bitcoin key derivation.

Uses BIP-84 (native SegWit P2WPKH) derivation:
m/84'/coin'/account'/change/index

coin is 0 on mainnet and 1 on testnet. Addresses are bech32 with hrp
``bc`` (mainnet) or ``tb`` (testnet).
"""

import logging
from typing import Any

import coincurve
from bip_utils import Bip32Secp256k1, P2WPKHAddrEncoder, WifEncoder

from dexwallet.chains import BITCOIN
from dexwallet.errors import UnsupportedKeyFormat
from dexwallet.hdwallet.base import ChainKeyDeriver, KeyPair, WalletKeys
from dexwallet.hdwallet.keycodec import bitcoin_key_codec
from dexwallet.hdwallet.mnemonic import mnemonic_to_seed

logger = logging.getLogger(__name__)

MAINNET_WIF_VERSION = b"\x80"
TESTNET_WIF_VERSION = b"\xef"


class BTCKeyDeriver(ChainKeyDeriver):
    """Bitcoin native SegWit key deriver."""

    chain = BITCOIN

    def __init__(self, testnet: bool = False):
        self.testnet = testnet
        self.codec = bitcoin_key_codec(testnet)

    @property
    def purpose(self) -> int:
        return 84

    @property
    def coin_type(self) -> int:
        return 1 if self.testnet else 0

    @property
    def hrp(self) -> str:
        return "tb" if self.testnet else "bc"

    @property
    def wif_version(self) -> bytes:
        return TESTNET_WIF_VERSION if self.testnet else MAINNET_WIF_VERSION

    def derive(
        self, mnemonic: str, account: int = 0, change: int = 0, index: int = 0
    ) -> WalletKeys:
        self._check_path(account, change, index)
        seed = mnemonic_to_seed(mnemonic)
        path = self.get_derivation_path(account, change, index)

        node = Bip32Secp256k1.FromSeed(seed).DerivePath(path)
        keys = self._build(node.PrivateKey().Raw().ToBytes())
        keys.derivation_path = path
        return keys

    def from_private_key(self, value: Any) -> WalletKeys:
        decoded = self.codec.decode(value)
        return self._build(decoded.data)

    def address_from_public_key(self, public_key: bytes) -> str:
        return P2WPKHAddrEncoder.EncodeKey(public_key, hrp=self.hrp, wit_ver=0)

    def _build(self, private_key: bytes) -> WalletKeys:
        try:
            public_key = coincurve.PrivateKey(private_key).public_key.format(compressed=True)
        except ValueError as e:
            raise UnsupportedKeyFormat("Invalid secp256k1 private key") from e

        address = self.address_from_public_key(public_key)
        logger.debug(f"Derived bitcoin address {address[:10]}...")

        return WalletKeys(
            chain=self.chain.name,
            address=address,
            public_key=public_key.hex(),
            private_key=WifEncoder.Encode(private_key, self.wif_version),
            secret_key_bytes=list(private_key),
            key_pair=KeyPair(public_key=public_key, private_key=private_key),
        )
