"""Balance normalization.

Converts between integer base units and decimal display values using each
chain's fixed exponent (BTC 8, EVM 18, SOL 9, ADA 6).
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Optional

from dexwallet.chains import ChainInfo
from dexwallet.errors import ValidationError


def from_base_units(amount: int, decimals: int) -> Decimal:
    """1 BTC = 100_000_000 sats -> Decimal('1.00000000')"""
    return Decimal(amount).scaleb(-decimals)


def to_base_units(amount: Any, decimals: int) -> int:
    """Parse a decimal amount into base units, truncating extra precision.

    Raises:
        ValidationError: If the amount is not a positive number of at
            least one base unit
    """
    if isinstance(amount, bool) or amount is None:
        raise ValidationError("amount must be a number")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount: {amount}") from e

    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be positive")

    base_units = int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))
    if base_units <= 0:
        raise ValidationError(f"amount is below the smallest unit (10^-{decimals})")
    return base_units


@dataclass
class Balance:
    """Normalized balance of one address."""

    chain: str
    address: str
    symbol: str
    decimals: int
    base_units: int
    confirmed: Optional[int] = None
    pending: Optional[int] = None
    token: Optional[str] = None

    @property
    def value(self) -> Decimal:
        return from_base_units(self.base_units, self.decimals)

    def to_dict(self) -> dict:
        data = {
            "chain": self.chain,
            "address": self.address,
            "symbol": self.symbol,
            "balance": format(self.value, "f"),
            "base_units": str(self.base_units),
            "decimals": self.decimals,
        }
        if self.confirmed is not None:
            data["confirmed"] = format(from_base_units(self.confirmed, self.decimals), "f")
            data["confirmed_base_units"] = str(self.confirmed)
        if self.pending is not None:
            data["pending"] = format(from_base_units(self.pending, self.decimals), "f")
            data["pending_base_units"] = str(self.pending)
        if self.token:
            data["token"] = self.token
        return data


def resolve_balance(
    chain: ChainInfo,
    address: str,
    settled: Optional[int] = None,
    confirmed: Optional[int] = None,
    pending: Optional[int] = None,
) -> Balance:
    """Build a Balance from a provider reply.

    Pass ``settled`` for providers with a single value, or ``confirmed``
    and ``pending`` where the provider separates them; the total is then
    their sum.
    """
    if settled is None:
        if confirmed is None:
            raise ValueError("either settled or confirmed is required")
        settled = confirmed + (pending or 0)

    return Balance(
        chain=chain.name,
        address=address,
        symbol=chain.symbol,
        decimals=chain.decimals,
        base_units=settled,
        confirmed=confirmed,
        pending=pending,
    )
