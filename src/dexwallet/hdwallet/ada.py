"""Cardano key derivation.

CIP-1852 (Icarus / BIP32-Ed25519) derivation from the mnemonic entropy:
- payment key: m/1852'/1815'/account'/change/index
- stake key:   m/1852'/1815'/account'/2/0

The Shelley base address combines the hashes of both verification keys
with the network tag (``addr1...`` on mainnet, ``addr_test1...`` otherwise).

Wallets are imported from a mnemonic only; a payment key alone cannot
reproduce the base address.
"""

import logging
from typing import Any

from pycardano import (
    Address,
    ExtendedSigningKey,
    HDWallet,
    Network,
    PaymentVerificationKey,
    StakeVerificationKey,
)

from dexwallet.chains import CARDANO
from dexwallet.errors import ValidationError
from dexwallet.hdwallet.base import ChainKeyDeriver, KeyPair, WalletKeys
from dexwallet.hdwallet.mnemonic import mnemonic_to_entropy

logger = logging.getLogger(__name__)

STAKE_ROLE = 2


class CardanoKeyDeriver(ChainKeyDeriver):
    """Cardano Shelley key deriver."""

    chain = CARDANO

    def __init__(self, testnet: bool = False):
        self.testnet = testnet

    @property
    def purpose(self) -> int:
        return 1852

    @property
    def network(self) -> Network:
        return Network.TESTNET if self.testnet else Network.MAINNET

    def derive(
        self, mnemonic: str, account: int = 0, change: int = 0, index: int = 0
    ) -> WalletKeys:
        self._check_path(account, change, index)
        root = HDWallet.from_entropy(mnemonic_to_entropy(mnemonic).hex())

        payment_path = self.get_derivation_path(account, change, index)
        payment = root.derive_from_path(payment_path)
        stake = root.derive_from_path(self.get_derivation_path(account, STAKE_ROLE, 0))

        payment_sk = ExtendedSigningKey.from_hdwallet(payment)
        stake_sk = ExtendedSigningKey.from_hdwallet(stake)

        address = self.base_address(payment.public_key, stake.public_key)
        logger.debug(f"Derived cardano address {address[:12]}...")

        return WalletKeys(
            chain=self.chain.name,
            address=address,
            public_key=payment.public_key.hex(),
            private_key=payment_sk.payload.hex(),
            secret_key_bytes=list(payment_sk.payload),
            key_pair=KeyPair(
                public_key=payment.public_key,
                private_key=payment_sk.payload,
                secondary=KeyPair(public_key=stake.public_key, private_key=stake_sk.payload),
            ),
            derivation_path=payment_path,
        )

    def from_private_key(self, value: Any) -> WalletKeys:
        raise ValidationError("Cardano wallets are imported from a mnemonic")

    def address_from_public_key(self, public_key: bytes) -> str:
        """Enterprise address (payment credential only)."""
        payment_vk = PaymentVerificationKey.from_primitive(public_key)
        return str(Address(payment_part=payment_vk.hash(), network=self.network))

    def base_address(self, payment_public_key: bytes, stake_public_key: bytes) -> str:
        payment_vk = PaymentVerificationKey.from_primitive(payment_public_key)
        stake_vk = StakeVerificationKey.from_primitive(stake_public_key)
        return str(
            Address(
                payment_part=payment_vk.hash(),
                staking_part=stake_vk.hash(),
                network=self.network,
            )
        )

    def address_from_keys(self, keys: WalletKeys) -> str:
        """Recompute the base address from a wallet's key pair."""
        pair = keys.key_pair
        if pair.secondary is None:
            raise ValidationError("Cardano key pair is missing its stake key")
        return self.base_address(pair.public_key, pair.secondary.public_key)
