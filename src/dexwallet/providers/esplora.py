"""Esplora REST API provider for Bitcoin.

Blockstream.info by default; any Esplora instance (mempool.space,
self-hosted electrs) works.
Docs: https://github.com/Blockstream/esplora/blob/master/API.md
"""

import logging
from decimal import Decimal

from dexwallet.errors import BroadcastError, ProviderError
from dexwallet.providers.base import BaseProvider
from dexwallet.withdrawal.base import UTXO
from dexwallet.withdrawal.fees import BTC_MIN_FEE_RATE

logger = logging.getLogger(__name__)

# Confirmation target (blocks) used for the fee quote
FASTEST_TARGET = "1"


class EsploraProvider(BaseProvider):
    """UTXO, fee-rate, balance and broadcast client."""

    name = "esplora"

    def _headers(self) -> dict[str, str]:
        if self.endpoint.has_api_key:
            return {"Authorization": f"Bearer {self.endpoint.api_key}"}
        return {}

    async def get_utxos(self, address: str) -> list[UTXO]:
        """Get unspent outputs (confirmed and mempool) for an address."""
        data = await self.get_json(f"/address/{address}/utxo")
        if not isinstance(data, list):
            raise ProviderError("esplora returned invalid UTXO list", provider=self.name, detail=data)

        try:
            utxos = [UTXO(txid=u["txid"], vout=int(u["vout"]), value=int(u["value"])) for u in data]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("esplora returned malformed UTXO", provider=self.name, detail=str(e)) from e

        logger.debug(f"Fetched {len(utxos)} UTXOs for {address[:10]}...")
        return utxos

    async def get_fee_rate(self) -> Decimal:
        """Fee rate (sat/vB) for next-block confirmation, at least 1 sat/vB."""
        data = await self.get_json("/fee-estimates")
        if not isinstance(data, dict) or FASTEST_TARGET not in data:
            raise ProviderError("esplora fee estimates missing", provider=self.name, detail=data)

        try:
            rate = Decimal(str(data[FASTEST_TARGET]))
        except ArithmeticError as e:
            raise ProviderError("esplora fee estimate invalid", provider=self.name) from e
        return max(rate, BTC_MIN_FEE_RATE)

    async def get_balance(self, address: str) -> tuple[int, int]:
        """Get (confirmed, pending) balance in satoshis.

        Pending is the net mempool delta and may be negative.
        """
        data = await self.get_json(f"/address/{address}")
        try:
            chain = data["chain_stats"]
            mempool = data["mempool_stats"]
            confirmed = int(chain["funded_txo_sum"]) - int(chain["spent_txo_sum"])
            pending = int(mempool["funded_txo_sum"]) - int(mempool["spent_txo_sum"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("esplora returned malformed address stats", provider=self.name) from e
        return confirmed, pending

    async def broadcast(self, raw_hex: str) -> str:
        """Broadcast a raw transaction; returns the txid.

        Raises:
            BroadcastError: If the node rejects the transaction (HTTP 400)
            ProviderError: If the outcome could not be determined
        """
        response = await self._request(
            "POST", "/tx", content=raw_hex, headers={"Content-Type": "text/plain"}
        )
        if response.status_code == 400:
            logger.warning(f"esplora rejected transaction: {response.text}")
            raise BroadcastError("Transaction rejected", detail=response.text)
        self._raise_for_status(response)
        return response.text.strip()
