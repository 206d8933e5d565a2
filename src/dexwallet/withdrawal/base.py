"""Base interfaces for transaction building.

Send flow:
1. Draft is created with destination and amount (or MAX_AMOUNT)
2. Draft is funded: UTXO selection, or balance + nonce / blockhash
3. Fee is fixed and change computed
4. Draft is signed with the sender's key
5. Draft is serialized into a SignedTransaction
6. SignedTransaction is broadcast exactly once

Builders are pure: every network value (UTXOs, fee rate, nonce, blockhash)
is fetched by the wallet service and passed in.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from dexwallet.chains import ChainInfo
from dexwallet.errors import (
    BroadcastError,
    DraftStateError,
    FundsError,
    ProviderError,
    SignerMismatch,
    ValidationError,
)
from dexwallet.hdwallet.base import WalletKeys

logger = logging.getLogger(__name__)

# Amount sentinel: send the whole balance minus fee
MAX_AMOUNT = "max"


class DraftState(str, Enum):
    """Lifecycle of a transaction draft."""

    DRAFT = "draft"
    FUNDED = "funded"
    FEE_ADJUSTED = "fee_adjusted"
    SIGNED = "signed"
    SERIALIZED = "serialized"


_NEXT_STATE = {
    DraftState.DRAFT: DraftState.FUNDED,
    DraftState.FUNDED: DraftState.FEE_ADJUSTED,
    DraftState.FEE_ADJUSTED: DraftState.SIGNED,
    DraftState.SIGNED: DraftState.SERIALIZED,
}


@dataclass(frozen=True)
class UTXO:
    """Unspent output; identity is (txid, vout)."""

    txid: str
    vout: int
    value: int  # base units

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)


@dataclass
class TxOutput:
    """Transaction output."""

    address: str
    value: int  # base units
    is_change: bool = False


@dataclass
class TransactionDraft:
    """Mutable accumulator for a transaction under construction."""

    chain: str
    sender: str
    destination: str
    amount: Optional[int]  # None until MAX_AMOUNT is resolved
    send_max: bool = False
    state: DraftState = DraftState.DRAFT
    inputs: list[UTXO] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    fee: int = 0
    balance: Optional[int] = None  # account chains
    nonce: Optional[int] = None
    params: dict[str, Any] = field(default_factory=dict)  # chain-specific (fee rate, blockhash, gas)
    signed: Any = field(default=None, repr=False)

    def advance(self, state: DraftState) -> None:
        """Move to the next state.

        Raises:
            DraftStateError: If ``state`` is not the direct successor
        """
        expected = _NEXT_STATE.get(self.state)
        if state != expected:
            raise DraftStateError(
                f"Cannot move draft from {self.state.value} to {state.value}"
            )
        self.state = state

    def require(self, state: DraftState) -> None:
        if self.state != state:
            raise DraftStateError(
                f"Draft is {self.state.value}, expected {state.value}"
            )

    def add_inputs(self, utxos: list[UTXO]) -> None:
        """Attach inputs; an outpoint may appear only once."""
        seen = {utxo.outpoint for utxo in self.inputs}
        for utxo in utxos:
            if utxo.outpoint in seen:
                raise ValidationError(
                    f"Duplicate input {utxo.txid}:{utxo.vout}",
                    detail={"txid": utxo.txid, "vout": utxo.vout},
                )
            seen.add(utxo.outpoint)
            self.inputs.append(utxo)

    @property
    def total_input(self) -> int:
        return sum(utxo.value for utxo in self.inputs)

    @property
    def total_output(self) -> int:
        return sum(output.value for output in self.outputs)

    @property
    def change(self) -> int:
        return sum(output.value for output in self.outputs if output.is_change)

    def check_balanced(self) -> None:
        """Inputs must cover outputs plus fee (UTXO chains)."""
        if self.total_input < self.total_output + self.fee:
            raise FundsError(
                "Insufficient funds",
                detail={
                    "available": self.total_input,
                    "required": self.total_output + self.fee,
                },
            )


@dataclass
class SignedTransaction:
    """Serialized transaction ready for broadcast.

    ``mark_submitted`` may be called once; a second submission attempt
    raises instead of rebroadcasting.
    """

    chain: str
    raw: bytes = field(repr=False)
    txid: str
    amount: int
    fee: int
    _submitted: bool = field(default=False, repr=False)

    @property
    def raw_hex(self) -> str:
        return self.raw.hex()

    @property
    def submitted(self) -> bool:
        return self._submitted

    def mark_submitted(self) -> None:
        if self._submitted:
            raise BroadcastError(
                "Transaction was already submitted",
                txid=self.txid,
            )
        self._submitted = True


@dataclass
class SendResult:
    """Result of a send operation."""

    chain: str
    txid: str
    from_address: str
    to_address: str
    amount: Decimal
    fee: Decimal
    amount_base_units: int
    fee_base_units: int
    status: str = "broadcast"
    token: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "chain": self.chain,
            "txid": self.txid,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "amount": format(self.amount, "f"),
            "fee": format(self.fee, "f"),
            "amount_base_units": str(self.amount_base_units),
            "fee_base_units": str(self.fee_base_units),
            "status": self.status,
        }
        if self.token:
            data["token"] = self.token
        return data


async def submit_once(
    signed: SignedTransaction,
    broadcast: Callable[[SignedTransaction], Awaitable[str]],
) -> str:
    """Broadcast a signed transaction exactly once.

    A definitive rejection propagates as BroadcastError. A transport or
    provider failure leaves the outcome unknown: the transaction may have
    reached the network, so it is reported with its txid and never retried.
    """
    signed.mark_submitted()
    try:
        txid = await broadcast(signed)
    except BroadcastError:
        raise
    except ProviderError as e:
        logger.error(f"{signed.chain} broadcast outcome unknown for {signed.txid}: {e.message}")
        raise BroadcastError(
            "Broadcast outcome unknown; look up the transaction before retrying",
            detail=e.detail if e.detail is not None else e.message,
            txid=signed.txid,
            outcome_unknown=True,
        ) from e

    if txid and txid != signed.txid:
        logger.warning(f"{signed.chain} provider returned txid {txid}, expected {signed.txid}")
    return txid or signed.txid


def ensure_signer(keys: WalletKeys, from_address: str, normalize: Callable[[str], str] = str) -> None:
    """Check that the key controls the declared sender address.

    Runs before any provider call.

    Raises:
        SignerMismatch: If the derived address differs from ``from_address``
    """
    if normalize(keys.address) != normalize(from_address):
        raise SignerMismatch(
            "Private key does not match from address",
            detail={"from_address": from_address, "key_address": keys.address},
        )


class TransactionBuilder(ABC):
    """Abstract base class for per-chain transaction builders.

    Each builder holds the sender's keys and drives a TransactionDraft
    through its states. Funding and fee steps take already-fetched network
    data and differ per chain; signing and serialization share this shape.
    """

    chain: ChainInfo
    supports_max = False

    def __init__(self, keys: WalletKeys):
        self.keys = keys

    @abstractmethod
    def validate_address(self, address: str) -> str:
        """Validate a destination address.

        Returns:
            Normalized address

        Raises:
            ValidationError: If the address is malformed or for another network
        """
        pass

    def new_draft(self, destination: str, amount: Any) -> TransactionDraft:
        """Create a draft for ``amount`` base units (or MAX_AMOUNT)."""
        destination = self.validate_address(destination)
        send_max = amount == MAX_AMOUNT
        if send_max and not self.supports_max:
            raise ValidationError(f"{self.chain.name} does not support sending the max amount")
        if not send_max:
            if isinstance(amount, bool) or not isinstance(amount, int):
                raise ValidationError("amount must be an integer number of base units")
            if amount <= 0:
                raise ValidationError("amount must be positive")

        return TransactionDraft(
            chain=self.chain.name,
            sender=self.keys.address,
            destination=destination,
            amount=None if send_max else amount,
            send_max=send_max,
        )

    @abstractmethod
    def sign(self, draft: TransactionDraft) -> None:
        """Sign a fee-adjusted draft (FEE_ADJUSTED -> SIGNED)."""
        pass

    @abstractmethod
    def serialize(self, draft: TransactionDraft) -> SignedTransaction:
        """Produce canonical bytes and txid (SIGNED -> SERIALIZED)."""
        pass
