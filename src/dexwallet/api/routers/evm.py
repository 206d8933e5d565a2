"""EVM wallet endpoints (ethereum, base, polygon, sonic).

Every operation names its network: in the body for POST requests, in the
``chain`` query parameter for balance lookups, or in the path for tokens.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from dexwallet.api.deps import get_registry
from dexwallet.api.models import (
    Amount,
    CreateWalletRequest,
    DerivationParams,
    ImportMnemonicRequest,
    ImportWalletRequest,
    PrivateKey,
    SendRequest,
)
from dexwallet.services.wallet import EvmWallet, WalletRegistry

router = APIRouter(prefix="/api/evm")

DEFAULT_CHAIN = "ethereum"


class EvmCreateRequest(CreateWalletRequest):
    chain: str = DEFAULT_CHAIN


class EvmImportRequest(ImportWalletRequest):
    chain: str = DEFAULT_CHAIN


class EvmImportMnemonicRequest(ImportMnemonicRequest):
    chain: str = DEFAULT_CHAIN


class EvmSendRequest(SendRequest):
    """Native transfer; ``amount`` may be "max"."""
    chain: str = DEFAULT_CHAIN


class TokenTransferRequest(DerivationParams):
    """ERC-20 transfer request."""
    from_address: str
    to_address: str
    amount: Amount
    private_key: Optional[PrivateKey] = None
    mnemonic: Optional[str] = None


@router.get("/health")
async def health(registry: WalletRegistry = Depends(get_registry)) -> dict:
    """Health of every configured EVM network."""
    chains = {}
    for name in registry.chains():
        wallet = registry.get(name)
        if isinstance(wallet, EvmWallet):
            chains[name] = wallet.health()
    return {"ok": True, "chains": chains}


@router.post("/wallet/create")
async def create_wallet(
    request: EvmCreateRequest, registry: WalletRegistry = Depends(get_registry)
) -> dict:
    """Create a wallet; the address is valid on every EVM network."""
    wallet = registry.evm(request.chain)
    keys = wallet.create_wallet(
        words=request.words, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.post("/wallet/import")
async def import_wallet(
    request: EvmImportRequest, registry: WalletRegistry = Depends(get_registry)
) -> dict:
    wallet = registry.evm(request.chain)
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
    request: EvmImportMnemonicRequest, registry: WalletRegistry = Depends(get_registry)
) -> dict:
    wallet = registry.evm(request.chain)
    keys = wallet.import_mnemonic(
        request.mnemonic, account=request.account, change=request.change, index=request.index
    )
    return keys.export()


@router.get("/wallet/{address}/balance")
async def get_balance(
    address: str,
    chain: str = Query(DEFAULT_CHAIN),
    registry: WalletRegistry = Depends(get_registry),
) -> dict:
    balance = await registry.evm(chain).get_balance(address)
    return balance.to_dict()


@router.post("/wallet/{from_address}/send")
async def send(
    from_address: str,
    request: EvmSendRequest,
    registry: WalletRegistry = Depends(get_registry),
) -> dict:
    result = await registry.evm(request.chain).send(
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


@router.get("/token/{chain}/{token}/balance/{owner}")
async def get_token_balance(
    chain: str, token: str, owner: str, registry: WalletRegistry = Depends(get_registry)
) -> dict:
    balance = await registry.evm(chain).get_token_balance(token, owner)
    return balance.to_dict()


@router.post("/token/{chain}/{token}/transfer")
async def transfer_token(
    chain: str,
    token: str,
    request: TokenTransferRequest,
    registry: WalletRegistry = Depends(get_registry),
) -> dict:
    """Transfer ERC-20 tokens; gas is paid in the network's native currency."""
    result = await registry.evm(chain).transfer_token(
        token,
        request.from_address,
        request.to_address,
        request.amount,
        private_key=request.private_key,
        mnemonic=request.mnemonic,
        account=request.account,
        change=request.change,
        index=request.index,
    )
    return result.to_dict()
