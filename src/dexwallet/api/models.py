"""Request models shared by the chain routers."""

from typing import Optional, Union

from pydantic import BaseModel, Field

# Hex/WIF/base58/base64 string, or raw bytes as a JSON array
PrivateKey = Union[str, list[int]]
# Decimal string, JSON number, or "max" where supported
Amount = Union[str, int, float]


class DerivationParams(BaseModel):
    """Path parameters; each must be a non-hardened child index."""
    account: int = Field(default=0, ge=0)
    change: int = Field(default=0, ge=0)
    index: int = Field(default=0, ge=0)


class CreateWalletRequest(DerivationParams):
    """Request to create a wallet from a fresh mnemonic."""
    words: int = 12


class ImportWalletRequest(DerivationParams):
    """Request to import a wallet from a private key or mnemonic."""
    private_key: Optional[PrivateKey] = None
    mnemonic: Optional[str] = None


class ImportMnemonicRequest(DerivationParams):
    """Request to import a wallet from a mnemonic."""
    mnemonic: str


class SendRequest(DerivationParams):
    """Request to send native currency."""
    to_address: str
    amount: Amount
    private_key: Optional[PrivateKey] = None
    mnemonic: Optional[str] = None
