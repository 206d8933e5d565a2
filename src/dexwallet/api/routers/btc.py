"""Bitcoin wallet endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from dexwallet.api.deps import get_registry
from dexwallet.api.models import (
    Amount,
    CreateWalletRequest,
    ImportMnemonicRequest,
    ImportWalletRequest,
    SendRequest,
)
from dexwallet.services.wallet import BitcoinWallet, WalletRegistry

router = APIRouter(prefix="/api/btc")


class BtcSendRequest(SendRequest):
    """Send request with an optional fee rate override (sat/vB)."""
    fee_rate: Optional[Amount] = None


def get_wallet(registry: WalletRegistry = Depends(get_registry)) -> BitcoinWallet:
    return registry.get("bitcoin")


@router.get("/health")
async def health(wallet: BitcoinWallet = Depends(get_wallet)) -> dict:
    return wallet.health()


@router.post("/wallet/create")
async def create_wallet(
    request: CreateWalletRequest, wallet: BitcoinWallet = Depends(get_wallet)
) -> dict:
    """Create a native SegWit wallet (returns mnemonic and WIF)."""
    keys = wallet.create_wallet(
        words=request.words, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.post("/wallet/import")
async def import_wallet(
    request: ImportWalletRequest, wallet: BitcoinWallet = Depends(get_wallet)
) -> dict:
    """Import from WIF, hex, byte array or mnemonic."""
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
    request: ImportMnemonicRequest, wallet: BitcoinWallet = Depends(get_wallet)
) -> dict:
    keys = wallet.import_mnemonic(
        request.mnemonic, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.get("/{address}/balance")
async def get_balance(address: str, wallet: BitcoinWallet = Depends(get_wallet)) -> dict:
    balance = await wallet.get_balance(address)
    return balance.to_dict()


@router.post("/{from_address}/send")
async def send(
    from_address: str, request: BtcSendRequest, wallet: BitcoinWallet = Depends(get_wallet)
) -> dict:
    """Sign locally and broadcast a transfer from ``from_address``."""
    result = await wallet.send(
        from_address,
        request.to_address,
        request.amount,
        private_key=request.private_key,
        mnemonic=request.mnemonic,
        fee_rate=request.fee_rate,
        account=request.account,
        change=request.change,
        index=request.index,
    )
    return result.to_dict()
