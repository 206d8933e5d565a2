"""Cardano wallet endpoints.

Cardano wallets are mnemonic-based: import and send take the mnemonic,
never a raw key.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from dexwallet.api.deps import get_registry
from dexwallet.api.models import Amount, CreateWalletRequest, DerivationParams
from dexwallet.services.wallet import CardanoWallet, WalletRegistry

router = APIRouter(prefix="/api/cardano")


class CardanoImportRequest(DerivationParams):
    """Request to import a wallet from its mnemonic."""
    mnemonic: str


class CardanoSendRequest(DerivationParams):
    """Send request; ``from_address`` is checked when given."""
    mnemonic: str
    to_address: str
    amount: Amount
    from_address: Optional[str] = None


def get_wallet(registry: WalletRegistry = Depends(get_registry)) -> CardanoWallet:
    return registry.get("cardano")


@router.get("/health")
async def health(wallet: CardanoWallet = Depends(get_wallet)) -> dict:
    return wallet.health()


@router.post("/wallet/create")
async def create_wallet(
    request: CreateWalletRequest, wallet: CardanoWallet = Depends(get_wallet)
) -> dict:
    keys = wallet.create_wallet(
        words=request.words, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.post("/wallet/import")
async def import_wallet(
    request: CardanoImportRequest, wallet: CardanoWallet = Depends(get_wallet)
) -> dict:
    keys = wallet.import_mnemonic(
        request.mnemonic, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.get("/balance/{address}")
async def get_balance(address: str, wallet: CardanoWallet = Depends(get_wallet)) -> dict:
    balance = await wallet.get_balance(address)
    return balance.to_dict()


@router.post("/send")
async def send(request: CardanoSendRequest, wallet: CardanoWallet = Depends(get_wallet)) -> dict:
    """Send ADA from the mnemonic's base address."""
    result = await wallet.send(
        request.from_address,
        request.to_address,
        request.amount,
        mnemonic=request.mnemonic,
        account=request.account,
        change=request.change,
        index=request.index,
    )
    return result.to_dict()
