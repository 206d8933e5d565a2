"""EVM transaction builder.

Native transfers and ERC-20 ``transfer`` calls on any configured EVM
network. Transactions are EIP-1559 (type 2) when the network reports a
base fee, legacy (gasPrice) otherwise, and always carry the chain id.
"""

import logging
from typing import Any, Optional

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import is_address, keccak, to_checksum_address

from dexwallet.chains import ChainInfo
from dexwallet.errors import FundsError, ValidationError
from dexwallet.hdwallet.base import WalletKeys
from dexwallet.withdrawal.base import (
    MAX_AMOUNT,
    DraftState,
    SignedTransaction,
    TransactionBuilder,
    TransactionDraft,
)
from dexwallet.withdrawal.fees import FeeQuote, evm_fee

logger = logging.getLogger(__name__)

# ERC-20 function selectors
BALANCE_OF_SELECTOR = "70a08231"  # balanceOf(address)
DECIMALS_SELECTOR = "313ce567"  # decimals()
TRANSFER_SELECTOR = "a9059cbb"  # transfer(address,uint256)

DEFAULT_TOKEN_DECIMALS = 18


def checksum_address(address: str) -> str:
    """Validate and checksum an EVM address.

    Raises:
        ValidationError: If the address is not 20 bytes of hex
    """
    if not isinstance(address, str) or not is_address(address.strip()):
        raise ValidationError(f"Invalid EVM address: {address}")
    return to_checksum_address(address.strip())


def encode_balance_of(owner: str) -> str:
    return "0x" + BALANCE_OF_SELECTOR + abi_encode(["address"], [checksum_address(owner)]).hex()


def encode_decimals() -> str:
    return "0x" + DECIMALS_SELECTOR


def encode_transfer(to: str, amount: int) -> str:
    return "0x" + TRANSFER_SELECTOR + abi_encode(
        ["address", "uint256"], [checksum_address(to), amount]
    ).hex()


def decode_uint(data: str) -> int:
    """Decode a single uint256 return value (hex string)."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if len(raw) < 32:
        raise ValueError(f"expected a 32-byte word, got {len(raw)} bytes")
    return int.from_bytes(raw[:32], "big")


class EvmTransactionBuilder(TransactionBuilder):
    """Account-model transaction builder.

    Usage:
        builder = EvmTransactionBuilder(keys, POLYGON)
        draft = builder.new_draft("0x...", MAX_AMOUNT)
        builder.fund(draft, balance=10**18, nonce=3)
        builder.adjust_fee(draft, quote, gas_limit=21000)
        builder.sign(draft)
        signed = builder.serialize(draft)
    """

    supports_max = True

    def __init__(self, keys: WalletKeys, chain: ChainInfo):
        super().__init__(keys)
        self.chain = chain

    def validate_address(self, address: str) -> str:
        return checksum_address(address)

    def new_token_draft(self, token: str, destination: str, amount: int) -> TransactionDraft:
        """Draft an ERC-20 transfer of ``amount`` token base units."""
        token = checksum_address(token)
        if amount == MAX_AMOUNT:
            raise ValidationError("max amount is not supported for token transfers")
        draft = self.new_draft(destination, amount)
        draft.params["token"] = token
        return draft

    def fund(
        self, draft: TransactionDraft, balance: int, nonce: int, token_balance: Optional[int] = None
    ) -> None:
        """Attach native balance, nonce and (for tokens) the token balance."""
        draft.require(DraftState.DRAFT)
        draft.balance = balance
        draft.nonce = nonce
        if "token" in draft.params:
            draft.params["token_balance"] = token_balance or 0
        draft.advance(DraftState.FUNDED)

    def adjust_fee(self, draft: TransactionDraft, quote: FeeQuote, gas_limit: int) -> None:
        """Fix gas and fee; resolve MAX_AMOUNT to balance minus fee.

        Raises:
            FundsError: If balance does not cover amount plus fee
        """
        draft.require(DraftState.FUNDED)
        fee = evm_fee(gas_limit, quote)
        balance = draft.balance

        if "token" in draft.params:
            token_balance = draft.params["token_balance"]
            if draft.amount > token_balance:
                raise FundsError(
                    "Insufficient token balance",
                    detail={"available": token_balance, "required": draft.amount},
                )
            if fee > balance:
                raise FundsError(
                    "Insufficient native balance for gas",
                    detail={"available": balance, "required": fee},
                )
        elif draft.send_max:
            if balance <= fee:
                raise FundsError(
                    "Balance does not cover the fee",
                    detail={"available": balance, "required": fee},
                )
            draft.amount = balance - fee
        elif draft.amount + fee > balance:
            raise FundsError(
                "Insufficient funds",
                detail={"available": balance, "required": draft.amount + fee},
            )

        draft.fee = fee
        draft.params["gas_limit"] = gas_limit
        draft.params["quote"] = quote
        draft.advance(DraftState.FEE_ADJUSTED)

    def build_transaction(self, draft: TransactionDraft) -> dict[str, Any]:
        """Unsigned transaction dict in eth_account's format."""
        quote: FeeQuote = draft.params["quote"]
        token = draft.params.get("token")

        tx: dict[str, Any] = {
            "chainId": self.chain.chain_id,
            "nonce": draft.nonce,
            "gas": draft.params["gas_limit"],
        }
        if token:
            tx["to"] = token
            tx["value"] = 0
            tx["data"] = encode_transfer(draft.destination, draft.amount)
        else:
            tx["to"] = draft.destination
            tx["value"] = draft.amount
            tx["data"] = "0x"

        if quote.is_eip1559:
            tx["type"] = 2
            tx["maxFeePerGas"] = quote.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = quote.max_priority_fee_per_gas or 0
        else:
            tx["gasPrice"] = quote.gas_price
        return tx

    def sign(self, draft: TransactionDraft) -> None:
        draft.require(DraftState.FEE_ADJUSTED)
        tx = self.build_transaction(draft)
        draft.signed = Account.sign_transaction(tx, self.keys.key_pair.private_key)
        draft.advance(DraftState.SIGNED)

    def serialize(self, draft: TransactionDraft) -> SignedTransaction:
        draft.require(DraftState.SIGNED)
        raw = bytes(draft.signed.raw_transaction)
        txid = "0x" + keccak(raw).hex()

        draft.advance(DraftState.SERIALIZED)
        return SignedTransaction(
            chain=self.chain.name,
            raw=raw,
            txid=txid,
            amount=draft.amount,
            fee=draft.fee,
        )
