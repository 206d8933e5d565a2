"""Blockfrost REST API provider for Cardano.

Docs: https://docs.blockfrost.io/
"""

import logging

from dexwallet.errors import BroadcastError, ProviderError, ValidationError
from dexwallet.providers.base import BaseProvider
from dexwallet.withdrawal.base import UTXO

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


def _lovelace(amounts: list) -> int:
    for entry in amounts:
        if entry.get("unit") == "lovelace":
            return int(entry["quantity"])
    return 0


class BlockfrostProvider(BaseProvider):
    """UTXO, balance and submit client.

    Requires a project id; calls fail with ValidationError until one is
    configured.
    """

    name = "blockfrost"

    def _headers(self) -> dict[str, str]:
        return {"project_id": self.endpoint.api_key}

    def _require_key(self) -> None:
        if not self.endpoint.has_api_key:
            raise ValidationError("Blockfrost API key not configured")

    async def get_utxos(self, address: str) -> list[UTXO]:
        """Get pure-ADA UTXOs of an address, following pagination.

        UTXOs carrying native tokens are left out: spending them here would
        drop the tokens from the change output.
        """
        self._require_key()
        utxos: list[UTXO] = []
        skipped = 0
        page = 1

        while True:
            response = await self._request(
                "GET",
                f"/addresses/{address}/utxos",
                params={"page": page, "count": PAGE_SIZE},
            )
            if response.status_code == 404:
                # Address never seen on chain
                break
            self._raise_for_status(response)
            data = self._json(response)
            if not isinstance(data, list):
                raise ProviderError("blockfrost returned invalid UTXO list", provider=self.name)

            try:
                for entry in data:
                    if any(a.get("unit") != "lovelace" for a in entry["amount"]):
                        skipped += 1
                        continue
                    utxos.append(
                        UTXO(
                            txid=entry["tx_hash"],
                            vout=int(entry.get("output_index", entry.get("tx_index"))),
                            value=_lovelace(entry["amount"]),
                        )
                    )
            except (KeyError, TypeError, ValueError) as e:
                raise ProviderError(
                    "blockfrost returned malformed UTXO", provider=self.name, detail=str(e)
                ) from e

            if len(data) < PAGE_SIZE:
                break
            page += 1

        if skipped:
            logger.info(f"Skipped {skipped} UTXOs carrying native tokens for {address[:12]}...")
        return utxos

    async def get_balance(self, address: str) -> int:
        """ADA balance in lovelace (0 for an unused address)."""
        self._require_key()
        response = await self._request("GET", f"/addresses/{address}")
        if response.status_code == 404:
            return 0
        self._raise_for_status(response)
        data = self._json(response)
        try:
            return _lovelace(data["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("blockfrost returned malformed address", provider=self.name) from e

    async def submit(self, raw: bytes) -> str:
        """Submit a CBOR-encoded transaction; returns its id.

        Raises:
            BroadcastError: If the node rejects the transaction
        """
        self._require_key()
        response = await self._request(
            "POST", "/tx/submit", content=raw, headers={"Content-Type": "application/cbor"}
        )
        if response.status_code == 400:
            logger.warning(f"blockfrost rejected transaction: {response.text}")
            raise BroadcastError("Transaction rejected", detail=response.text)
        self._raise_for_status(response)
        return str(self._json(response))
