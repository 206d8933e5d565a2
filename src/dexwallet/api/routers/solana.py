"""Solana wallet endpoints."""

from fastapi import APIRouter, Depends

from dexwallet.api.deps import get_registry
from dexwallet.api.models import (
    CreateWalletRequest,
    ImportMnemonicRequest,
    ImportWalletRequest,
    SendRequest,
)
from dexwallet.services.wallet import SolanaWallet, WalletRegistry

router = APIRouter(prefix="/api/solana")


def get_wallet(registry: WalletRegistry = Depends(get_registry)) -> SolanaWallet:
    return registry.get("solana")


@router.get("/health")
async def health(wallet: SolanaWallet = Depends(get_wallet)) -> dict:
    return wallet.health()


@router.post("/wallet/create")
async def create_wallet(
    request: CreateWalletRequest, wallet: SolanaWallet = Depends(get_wallet)
) -> dict:
    """Create a wallet; the response carries the mnemonic and 64-byte secret."""
    keys = wallet.create_wallet(
        words=request.words, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.post("/wallet/import")
async def import_wallet(
    request: ImportWalletRequest, wallet: SolanaWallet = Depends(get_wallet)
) -> dict:
    """Import from a byte array, JSON array, base58 or base64 secret, or a mnemonic."""
    keys = wallet.import_wallet(
        private_key=request.private_key,
        mnemonic=request.mnemonic,
        account=request.account,
        change=request.change,
        index=request.index,
    )
    return keys.export()


@router.post("/wallet/import/mnemonic")
async def import_mnemonic(
    request: ImportMnemonicRequest, wallet: SolanaWallet = Depends(get_wallet)
) -> dict:
    keys = wallet.import_mnemonic(
        request.mnemonic, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.get("/{address}/balance")
async def get_balance(address: str, wallet: SolanaWallet = Depends(get_wallet)) -> dict:
    balance = await wallet.get_balance(address)
    return balance.to_dict()


@router.post("/{from_address}/send")
async def send(
    from_address: str, request: SendRequest, wallet: SolanaWallet = Depends(get_wallet)
) -> dict:
    """Sign, submit and wait for confirmation."""
    result = await wallet.send(
        from_address,
        request.to_address,
        request.amount,
        private_key=request.private_key,
        mnemonic=request.mnemonic,
        account=request.account,
        change=request.change,
        index=request.index,
    )
    return result.to_dict()
