"""UTXO coin selection.

Ascending first-fit: smallest outputs are spent first, which consolidates
dust at the cost of larger transactions. Selection is fee-naive; callers
include the fee in ``target`` and re-run selection when the input count
changes the fee.
"""

from typing import Sequence

from dexwallet.withdrawal.base import UTXO


def select_utxos(utxos: Sequence[UTXO], target: int) -> tuple[list[UTXO], int]:
    """Select UTXOs until their total reaches ``target``.

    At least one UTXO is taken whenever any is available.

    Never raises: when the UTXO set is too small, every UTXO is returned
    and the caller compares ``total`` with what it needs.

    Args:
        utxos: Candidate outputs (any order)
        target: Required total in base units

    Returns:
        Tuple of (chosen UTXOs, their total value)
    """
    chosen: list[UTXO] = []
    total = 0

    for utxo in sorted(utxos, key=lambda u: u.value):
        chosen.append(utxo)
        total += utxo.value
        if total >= target:
            break

    return chosen, total
