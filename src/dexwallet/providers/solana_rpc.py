"""Solana JSON-RPC provider."""

import asyncio
import base64
import logging
import time

from dexwallet.errors import BroadcastError, ProviderError
from dexwallet.providers.base import JsonRpcProvider, RpcError

logger = logging.getLogger(__name__)

CONFIRMED_STATUSES = ("confirmed", "finalized")


class SolanaRpcProvider(JsonRpcProvider):
    """Balance, blockhash, submit and confirmation client."""

    name = "solana-rpc"

    def __init__(self, *args, poll_interval: float = 1.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.poll_interval = poll_interval

    async def get_balance(self, address: str) -> int:
        """Balance in lamports."""
        result = await self.rpc("getBalance", [address, {"commitment": "confirmed"}])
        try:
            return int(result["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("getBalance reply malformed", provider=self.name, detail=result) from e

    async def get_latest_blockhash(self) -> str:
        result = await self.rpc("getLatestBlockhash", [{"commitment": "confirmed"}])
        try:
            return result["value"]["blockhash"]
        except (KeyError, TypeError) as e:
            raise ProviderError(
                "getLatestBlockhash reply malformed", provider=self.name, detail=result
            ) from e

    async def send_transaction(self, raw: bytes) -> str:
        """Submit a signed transaction; returns its signature.

        Raises:
            BroadcastError: If preflight or the node rejects the transaction
        """
        encoded = base64.b64encode(raw).decode()
        try:
            return await self.rpc(
                "sendTransaction",
                [encoded, {"encoding": "base64", "preflightCommitment": "confirmed"}],
            )
        except RpcError as e:
            raise BroadcastError(e.message, detail=e.detail) from e

    async def confirm_transaction(self, signature: str, timeout: float) -> str:
        """Poll signature status until confirmed or finalized.

        Returns:
            The confirmation status reached

        Raises:
            BroadcastError: If the transaction failed on chain, or with
                ``outcome_unknown`` when the timeout expires first
        """
        deadline = time.monotonic() + timeout
        while True:
            result = await self.rpc("getSignatureStatuses", [[signature]])
            statuses = result.get("value") if isinstance(result, dict) else None
            status = statuses[0] if statuses else None

            if status:
                if status.get("err"):
                    raise BroadcastError(
                        "Transaction failed", detail=status["err"], txid=signature
                    )
                if status.get("confirmationStatus") in CONFIRMED_STATUSES:
                    return status["confirmationStatus"]

            if time.monotonic() >= deadline:
                logger.warning(f"Transaction {signature} not confirmed after {timeout}s")
                raise BroadcastError(
                    "Transaction not confirmed before timeout",
                    txid=signature,
                    outcome_unknown=True,
                )
            await asyncio.sleep(self.poll_interval)

    async def send_and_confirm(self, raw: bytes, timeout: float) -> tuple[str, str]:
        """Submit, then wait for confirmation.

        Returns:
            (signature, confirmation status)
        """
        signature = await self.send_transaction(raw)
        logger.info(f"Submitted solana transaction {signature[:16]}..., awaiting confirmation")
        status = await self.confirm_transaction(signature, timeout)
        return signature, status
