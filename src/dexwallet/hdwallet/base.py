"""HD wallet base interface.

Each chain family implements ChainKeyDeriver: it walks a chain-specific
derivation path from a BIP-39 mnemonic, or parses a raw private key, and
returns the key pair together with the address recomputed from its public
key. Derivation is a pure function of (mnemonic, path parameters).

Security: key material lives only in the returned objects. Nothing here
caches or logs private keys.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from dexwallet.chains import ChainInfo
from dexwallet.errors import ValidationError

# BIP-32 child indexes must stay below the hardened offset
MAX_CHILD_INDEX = 2**31 - 1


@dataclass
class KeyPair:
    """Raw key material for one signer."""

    public_key: bytes
    private_key: bytes = field(repr=False)
    secondary: Optional["KeyPair"] = field(default=None, repr=False)  # Cardano stake key


@dataclass
class WalletKeys:
    """Exported key material for a wallet.

    ``private_key`` holds the chain's human-transcribable encoding (WIF,
    0x-hex, base58 secret, extended key hex); ``secret_key_bytes`` holds the
    raw byte form that can be imported back.
    """

    chain: str
    address: str
    public_key: str
    private_key: str = field(repr=False)
    secret_key_bytes: list[int] = field(repr=False)
    key_pair: KeyPair = field(repr=False)
    derivation_path: Optional[str] = None
    mnemonic: Optional[str] = field(default=None, repr=False)

    def export(self) -> dict:
        """Response payload (contains private key material)."""
        data = {
            "chain": self.chain,
            "address": self.address,
            "public_key": self.public_key,
            "private_key": self.private_key,
            "secret_key_bytes": self.secret_key_bytes,
        }
        if self.derivation_path:
            data["derivation_path"] = self.derivation_path
        if self.mnemonic:
            data["mnemonic"] = self.mnemonic
        return data


def check_child_index(name: str, value: Any) -> int:
    """Validate an account/change/index path parameter."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0 or value > MAX_CHILD_INDEX:
        raise ValidationError(f"{name} must be between 0 and {MAX_CHILD_INDEX}")
    return value


class ChainKeyDeriver(ABC):
    """Abstract base class for chain key derivation.

    Usage:
        deriver = BTCKeyDeriver()
        keys = deriver.derive(mnemonic, account=0, index=0)
        keys.address  # bc1q...
    """

    chain: ChainInfo

    @property
    @abstractmethod
    def purpose(self) -> int:
        """BIP purpose number (44, 84, 1852)."""
        pass

    @property
    def coin_type(self) -> int:
        """SLIP-44 coin type number."""
        return self.chain.coin_type

    def get_derivation_path(self, account: int = 0, change: int = 0, index: int = 0) -> str:
        """Get the full derivation path.

        Default format: m/purpose'/coin_type'/account'/change/index
        """
        return f"m/{self.purpose}'/{self.coin_type}'/{account}'/{change}/{index}"

    @abstractmethod
    def derive(
        self, mnemonic: str, account: int = 0, change: int = 0, index: int = 0
    ) -> WalletKeys:
        """Derive key pair and address from a mnemonic.

        Raises:
            InvalidMnemonic: If the mnemonic fails validation
            ValidationError: If a path parameter is out of range
        """
        pass

    @abstractmethod
    def from_private_key(self, value: Any) -> WalletKeys:
        """Build key pair and address from a raw private key.

        Raises:
            UnsupportedKeyFormat: If no supported encoding matches
        """
        pass

    @abstractmethod
    def address_from_public_key(self, public_key: bytes) -> str:
        """Encode the address for a public key."""
        pass

    def _check_path(self, account: int, change: int, index: int) -> None:
        check_child_index("account", account)
        check_child_index("change", change)
        check_child_index("index", index)
