"""Solana transaction builder.

A single System Program transfer instruction, signed once by the sender
(who is also the fee payer) against a recent blockhash.
"""

import logging

from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from dexwallet.chains import SOLANA
from dexwallet.errors import FundsError, ValidationError
from dexwallet.hdwallet.sol import SolanaKeyDeriver
from dexwallet.withdrawal.base import (
    DraftState,
    SignedTransaction,
    TransactionBuilder,
    TransactionDraft,
)
from dexwallet.withdrawal.fees import solana_fee

logger = logging.getLogger(__name__)


def parse_pubkey(address: str) -> Pubkey:
    """Parse a base58 Solana address.

    Raises:
        ValidationError: If the address is not a 32-byte base58 key
    """
    if not isinstance(address, str) or not address.strip():
        raise ValidationError("address required")
    try:
        return Pubkey.from_string(address.strip())
    except ValueError as e:
        raise ValidationError(f"Invalid Solana address: {address}") from e


class SolanaTransactionBuilder(TransactionBuilder):
    """System transfer builder."""

    chain = SOLANA

    def validate_address(self, address: str) -> str:
        return str(parse_pubkey(address))

    def fund(self, draft: TransactionDraft, balance: int, blockhash: str) -> None:
        draft.require(DraftState.DRAFT)
        draft.balance = balance
        draft.params["blockhash"] = blockhash
        draft.advance(DraftState.FUNDED)

    def adjust_fee(self, draft: TransactionDraft) -> None:
        """Check the balance covers amount plus the signature fee."""
        draft.require(DraftState.FUNDED)
        fee = solana_fee(1)
        if draft.amount + fee > draft.balance:
            raise FundsError(
                "Insufficient funds",
                detail={"available": draft.balance, "required": draft.amount + fee},
            )
        draft.fee = fee
        draft.advance(DraftState.FEE_ADJUSTED)

    def sign(self, draft: TransactionDraft) -> None:
        draft.require(DraftState.FEE_ADJUSTED)
        keypair = SolanaKeyDeriver.keypair_from_secret(self.keys.key_pair.private_key)
        blockhash = Hash.from_string(draft.params["blockhash"])

        instruction = transfer(
            TransferParams(
                from_pubkey=keypair.pubkey(),
                to_pubkey=parse_pubkey(draft.destination),
                lamports=draft.amount,
            )
        )
        message = Message.new_with_blockhash([instruction], keypair.pubkey(), blockhash)
        draft.signed = Transaction([keypair], message, blockhash)
        draft.advance(DraftState.SIGNED)

    def serialize(self, draft: TransactionDraft) -> SignedTransaction:
        draft.require(DraftState.SIGNED)
        tx: Transaction = draft.signed

        draft.advance(DraftState.SERIALIZED)
        return SignedTransaction(
            chain=self.chain.name,
            raw=bytes(tx),
            txid=str(tx.signatures[0]),
            amount=draft.amount,
            fee=draft.fee,
        )
