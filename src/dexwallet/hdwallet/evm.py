"""EVM key derivation.

All EVM networks share one key space:
m/44'/60'/account'/change/index

The address is the EIP-55 checksummed form of the last 20 bytes of the
keccak hash of the public key.
"""

import logging
from typing import Any

import coincurve
from bip_utils import Bip32Secp256k1
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from dexwallet.chains import ETHEREUM, ChainInfo
from dexwallet.errors import UnsupportedKeyFormat
from dexwallet.hdwallet.base import ChainKeyDeriver, KeyPair, WalletKeys
from dexwallet.hdwallet.keycodec import EVM_KEY_CODEC
from dexwallet.hdwallet.mnemonic import mnemonic_to_seed

logger = logging.getLogger(__name__)


class EVMKeyDeriver(ChainKeyDeriver):
    """Ethereum-compatible key deriver."""

    codec = EVM_KEY_CODEC

    def __init__(self, chain: ChainInfo = ETHEREUM):
        self.chain = chain

    @property
    def purpose(self) -> int:
        return 44

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
        uncompressed = coincurve.PublicKey(public_key).format(compressed=False)
        return to_checksum_address(keccak(uncompressed[1:])[-20:])

    def _build(self, private_key: bytes) -> WalletKeys:
        try:
            public_key = coincurve.PrivateKey(private_key).public_key.format(compressed=False)
        except ValueError as e:
            raise UnsupportedKeyFormat("Invalid secp256k1 private key") from e
        account = Account.from_key(private_key)

        logger.debug(f"Derived EVM address {account.address[:10]}...")

        return WalletKeys(
            chain=self.chain.name,
            address=account.address,
            public_key="0x" + public_key[1:].hex(),
            private_key="0x" + private_key.hex(),
            secret_key_bytes=list(private_key),
            key_pair=KeyPair(public_key=public_key, private_key=private_key),
        )
