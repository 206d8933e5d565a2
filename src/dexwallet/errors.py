"""Error taxonomy for wallet operations.

Every failure surfaced by the engine is a WalletError subclass. The HTTP
layer maps them to responses using ``status_code`` and ``code``.

- ValidationError: malformed request, unknown chain, bad address
- CryptoError: mnemonic checksum, key encoding, signer/address mismatch
- FundsError: not enough value to cover amount plus fee
- ProviderError: network or indexer failure, malformed provider reply
- BroadcastError: transaction rejected, or submission outcome unknown
"""

from typing import Any, Optional


class WalletError(Exception):
    """Base class for all wallet engine errors."""

    status_code: int = 400
    code: str = "wallet_error"

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        data = {"error": self.message, "code": self.code}
        if self.detail is not None:
            data["detail"] = self.detail
        return data


class ValidationError(WalletError):
    """Missing or malformed request fields, unsupported chain name."""

    code = "validation_error"


class CryptoError(WalletError):
    """Key material could not be used."""

    code = "crypto_error"


class InvalidMnemonic(CryptoError):
    """Mnemonic failed the BIP-39 word list or checksum check."""

    code = "invalid_mnemonic"


class UnsupportedKeyFormat(CryptoError):
    """No known encoding matched the supplied private key."""

    code = "unsupported_key_format"


class SignerMismatch(CryptoError):
    """Supplied key does not control the declared sender address."""

    code = "signer_mismatch"


class FundsError(WalletError):
    """Available funds do not cover amount plus fee."""

    code = "insufficient_funds"


class ProviderError(WalletError):
    """A blockchain node or indexer call failed."""

    status_code = 502
    code = "provider_error"

    def __init__(self, message: str, provider: str = "", detail: Optional[Any] = None):
        super().__init__(message, detail)
        self.provider = provider

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.provider:
            data["provider"] = self.provider
        return data


class BroadcastError(WalletError):
    """A signed transaction was rejected or its submission is ambiguous.

    When ``outcome_unknown`` is set the transaction may still land on chain;
    callers must look up ``txid`` instead of resubmitting.
    """

    status_code = 502
    code = "broadcast_error"

    def __init__(
        self,
        message: str,
        detail: Optional[Any] = None,
        txid: Optional[str] = None,
        outcome_unknown: bool = False,
    ):
        super().__init__(message, detail)
        self.txid = txid
        self.outcome_unknown = outcome_unknown

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["outcome_unknown"] = self.outcome_unknown
        if self.txid:
            data["txid"] = self.txid
        return data


class DraftStateError(WalletError):
    """Transaction draft moved through its states out of order."""

    status_code = 500
    code = "draft_state_error"
