"""Transaction building: drafts, coin selection, fees and per-chain signing."""

from dexwallet.withdrawal.base import (
    MAX_AMOUNT,
    UTXO,
    DraftState,
    SendResult,
    SignedTransaction,
    TransactionBuilder,
    TransactionDraft,
    TxOutput,
    submit_once,
)
from dexwallet.withdrawal.coin_selection import select_utxos

__all__ = [
    "MAX_AMOUNT",
    "UTXO",
    "DraftState",
    "SendResult",
    "SignedTransaction",
    "TransactionBuilder",
    "TransactionDraft",
    "TxOutput",
    "select_utxos",
    "submit_once",
]
