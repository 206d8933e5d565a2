"""Fee estimation formulas.

- Bitcoin: virtual size estimate for P2WPKH inputs/outputs times sat/vB rate
- EVM: gas units times effective gas price
- Cardano: linear fee over the serialized transaction size
- Solana: flat fee per signature
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

# Bitcoin P2WPKH size estimate (vbytes)
BTC_INPUT_VSIZE = 68
BTC_OUTPUT_VSIZE = 31
BTC_OVERHEAD_VSIZE = 10
BTC_MIN_FEE_RATE = Decimal("1")  # sat/vB
BTC_DUST_LIMIT = 546  # sats

# EVM
NATIVE_TRANSFER_GAS = 21000
DEFAULT_PRIORITY_FEE = 1_000_000_000  # 1 gwei

# Cardano
CARDANO_MIN_FEE_A = 44  # lovelace per byte
CARDANO_MIN_FEE_B = 155381  # lovelace
CARDANO_FEE_BUFFER = 3_000_000  # lovelace reserved for fee and change during selection
CARDANO_MIN_UTXO = 1_000_000  # lovelace

# Solana
LAMPORTS_PER_SIGNATURE = 5000


@dataclass
class FeeQuote:
    """Gas price data for an account chain (wei)."""

    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    @property
    def is_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None

    @property
    def effective_price(self) -> int:
        """Per-gas price used for the fee cost: max fee, else gas price."""
        if self.max_fee_per_gas is not None:
            return self.max_fee_per_gas
        if self.gas_price is not None:
            return self.gas_price
        return 0


def btc_vsize(n_inputs: int, n_outputs: int) -> int:
    """Estimated virtual size of a P2WPKH transaction."""
    return BTC_INPUT_VSIZE * n_inputs + BTC_OUTPUT_VSIZE * n_outputs + BTC_OVERHEAD_VSIZE


def btc_fee(n_inputs: int, n_outputs: int, fee_rate: Union[Decimal, int, float]) -> int:
    """Fee in satoshis, rounded up.

    Example: 2 inputs, 2 outputs at 10 sat/vB -> 218 vB -> 2180 sats
    """
    rate = Decimal(str(fee_rate))
    return math.ceil(Decimal(btc_vsize(n_inputs, n_outputs)) * rate)


def evm_fee(gas_units: int, quote: FeeQuote) -> int:
    """Maximum fee in wei for ``gas_units``."""
    return gas_units * quote.effective_price


def cardano_fee(tx_size: int, a: int = CARDANO_MIN_FEE_A, b: int = CARDANO_MIN_FEE_B) -> int:
    """Linear minimum fee for a transaction of ``tx_size`` bytes."""
    return a * tx_size + b


def solana_fee(signatures: int = 1) -> int:
    return LAMPORTS_PER_SIGNATURE * signatures
