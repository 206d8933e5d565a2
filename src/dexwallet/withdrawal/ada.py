"""Cardano transaction builder.

Builds a Shelley-era transaction spending pure-ADA UTXOs of the sender's
base address:
- inputs chosen with ascending selection against amount + 3 ADA
- outputs: destination, plus change back to the sender when it reaches
  the 1 ADA minimum UTXO value (smaller change is added to the fee)
- fee follows the linear formula a * size + b, recomputed until stable
- one vkey witness from the payment key over the body hash
"""

import logging

from pycardano import (
    Address,
    ExtendedSigningKey,
    Network,
    PaymentVerificationKey,
    PyCardanoException,
    Transaction,
    TransactionBody,
    TransactionId,
    TransactionInput,
    TransactionOutput,
    TransactionWitnessSet,
    VerificationKeyWitness,
)

from dexwallet.chains import CARDANO
from dexwallet.errors import FundsError, ValidationError
from dexwallet.hdwallet.base import WalletKeys
from dexwallet.withdrawal.base import (
    UTXO,
    DraftState,
    SignedTransaction,
    TransactionBuilder,
    TransactionDraft,
    TxOutput,
)
from dexwallet.withdrawal.coin_selection import select_utxos
from dexwallet.withdrawal.fees import (
    CARDANO_FEE_BUFFER,
    CARDANO_MIN_FEE_A,
    CARDANO_MIN_FEE_B,
    CARDANO_MIN_UTXO,
    cardano_fee,
)

logger = logging.getLogger(__name__)

MIN_SEND = 1_000_000  # lovelace
MAX_FEE_ITERATIONS = 10
_PLACEHOLDER_SIGNATURE = bytes(64)


def parse_address(address: str, network: Network) -> Address:
    """Parse a bech32 Shelley address for ``network``.

    Raises:
        ValidationError: If the address is malformed or for another network
    """
    if not isinstance(address, str) or not address.strip().startswith("addr"):
        raise ValidationError(f"Invalid Cardano address: {address}")
    try:
        parsed = Address.from_primitive(address.strip())
    except (ValueError, TypeError, PyCardanoException) as e:
        raise ValidationError(f"Invalid Cardano address: {address}") from e

    if parsed.network != network:
        raise ValidationError(
            f"Cardano address is for {parsed.network.name.lower()}, expected {network.name.lower()}"
        )
    return parsed


class CardanoTransactionBuilder(TransactionBuilder):
    """Shelley transaction builder."""

    chain = CARDANO

    def __init__(
        self,
        keys: WalletKeys,
        testnet: bool = False,
        fee_a: int = CARDANO_MIN_FEE_A,
        fee_b: int = CARDANO_MIN_FEE_B,
    ):
        super().__init__(keys)
        self.network = Network.TESTNET if testnet else Network.MAINNET
        self.fee_a = fee_a
        self.fee_b = fee_b

    def validate_address(self, address: str) -> str:
        parse_address(address, self.network)
        return address.strip()

    def new_draft(self, destination: str, amount) -> TransactionDraft:
        draft = super().new_draft(destination, amount)
        if draft.amount < MIN_SEND:
            raise ValidationError("Minimum 1 ADA required")
        return draft

    def fund(self, draft: TransactionDraft, utxos: list[UTXO]) -> None:
        draft.require(DraftState.DRAFT)
        if not utxos:
            raise FundsError("No UTXO available")

        chosen, total = select_utxos(utxos, draft.amount + CARDANO_FEE_BUFFER)
        draft.add_inputs(chosen)
        draft.advance(DraftState.FUNDED)

        logger.debug(f"Selected {len(chosen)} of {len(utxos)} UTXOs totalling {total} lovelace")

    def _plan_outputs(self, draft: TransactionDraft, fee: int) -> tuple[list[TxOutput], int]:
        total = draft.total_input
        change = total - draft.amount - fee
        if change < 0:
            raise FundsError(
                "Insufficient funds",
                detail={"available": total, "required": draft.amount + fee},
            )

        outputs = [TxOutput(address=draft.destination, value=draft.amount)]
        if change >= CARDANO_MIN_UTXO:
            outputs.append(TxOutput(address=draft.sender, value=change, is_change=True))
        elif change > 0:
            logger.debug(f"Change of {change} lovelace is below the minimum UTXO, adding to fee")
            fee += change
        return outputs, fee

    def _body(self, inputs: list[UTXO], outputs: list[TxOutput], fee: int) -> TransactionBody:
        return TransactionBody(
            inputs=[TransactionInput(TransactionId(bytes.fromhex(u.txid)), u.vout) for u in inputs],
            outputs=[
                TransactionOutput(Address.from_primitive(o.address), o.value) for o in outputs
            ],
            fee=fee,
        )

    def _witness_set(self, signature: bytes) -> TransactionWitnessSet:
        vkey = PaymentVerificationKey.from_primitive(self.keys.key_pair.public_key)
        return TransactionWitnessSet(vkey_witnesses=[VerificationKeyWitness(vkey, signature)])

    def adjust_fee(self, draft: TransactionDraft) -> None:
        """Iterate the linear fee against the signed size until it stops growing."""
        draft.require(DraftState.FUNDED)
        fee = self.fee_b
        outputs, fee = self._plan_outputs(draft, fee)

        for _ in range(MAX_FEE_ITERATIONS):
            body = self._body(draft.inputs, outputs, fee)
            size = len(Transaction(body, self._witness_set(_PLACEHOLDER_SIGNATURE)).to_cbor_hex()) // 2
            needed = cardano_fee(size, self.fee_a, self.fee_b)
            if needed <= fee:
                break
            outputs, fee = self._plan_outputs(draft, needed)

        draft.outputs = outputs
        draft.fee = fee
        draft.advance(DraftState.FEE_ADJUSTED)

    def sign(self, draft: TransactionDraft) -> None:
        draft.require(DraftState.FEE_ADJUSTED)
        draft.check_balanced()

        body = self._body(draft.inputs, draft.outputs, draft.fee)
        signing_key = ExtendedSigningKey(self.keys.key_pair.private_key)
        signature = signing_key.sign(body.hash())

        draft.signed = Transaction(body, self._witness_set(signature))
        draft.advance(DraftState.SIGNED)

    def serialize(self, draft: TransactionDraft) -> SignedTransaction:
        draft.require(DraftState.SIGNED)
        tx: Transaction = draft.signed

        draft.advance(DraftState.SERIALIZED)
        return SignedTransaction(
            chain=self.chain.name,
            raw=bytes.fromhex(tx.to_cbor_hex()),
            txid=tx.transaction_body.hash().hex(),
            amount=draft.amount,
            fee=draft.fee,
        )
