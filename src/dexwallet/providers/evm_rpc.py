"""EVM JSON-RPC provider.

Plain ``eth_*`` calls against any node URL. One provider instance per
network; the chain id comes from the chain registry, not the node.
"""

import logging
from typing import Any

from dexwallet.errors import BroadcastError, ProviderError
from dexwallet.providers.base import JsonRpcProvider, RpcError, parse_hex_int
from dexwallet.withdrawal.fees import DEFAULT_PRIORITY_FEE, FeeQuote

logger = logging.getLogger(__name__)


class EvmRpcProvider(JsonRpcProvider):
    """Balance, nonce, fee data, gas estimate, call and broadcast client."""

    name = "evm-rpc"

    async def get_balance(self, address: str) -> int:
        """Native balance in wei."""
        result = await self.rpc("eth_getBalance", [address, "latest"])
        return parse_hex_int(result, "balance", self.name)

    async def get_nonce(self, address: str) -> int:
        """Next nonce, counting pending transactions."""
        result = await self.rpc("eth_getTransactionCount", [address, "pending"])
        return parse_hex_int(result, "nonce", self.name)

    async def get_fee_data(self) -> FeeQuote:
        """Current gas price, plus EIP-1559 fields when the network has a base fee.

        maxFeePerGas = 2 * baseFee + maxPriorityFeePerGas
        """
        gas_price = parse_hex_int(await self.rpc("eth_gasPrice"), "gas price", self.name)

        block = await self.rpc("eth_getBlockByNumber", ["latest", False])
        if not isinstance(block, dict):
            raise ProviderError("latest block unavailable", provider=self.name, detail=block)

        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeQuote(gas_price=gas_price)

        try:
            priority = parse_hex_int(
                await self.rpc("eth_maxPriorityFeePerGas"), "priority fee", self.name
            )
        except RpcError as e:
            logger.warning(f"eth_maxPriorityFeePerGas unavailable ({e.message}), using 1 gwei")
            priority = DEFAULT_PRIORITY_FEE

        max_fee = 2 * parse_hex_int(base_fee, "base fee", self.name) + priority
        return FeeQuote(
            gas_price=gas_price,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority,
        )

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        result = await self.rpc("eth_estimateGas", [tx])
        return parse_hex_int(result, "gas estimate", self.name)

    async def call(self, to: str, data: str) -> str:
        """Read-only contract call; returns hex return data."""
        result = await self.rpc("eth_call", [{"to": to, "data": data}, "latest"])
        if not isinstance(result, str):
            raise ProviderError("eth_call returned non-hex data", provider=self.name, detail=result)
        return result

    async def send_raw_transaction(self, raw_hex: str) -> str:
        """Broadcast a signed transaction; returns its hash.

        Raises:
            BroadcastError: If the node rejects the transaction
        """
        try:
            return await self.rpc("eth_sendRawTransaction", [raw_hex])
        except RpcError as e:
            raise BroadcastError(e.message, detail=e.detail) from e
