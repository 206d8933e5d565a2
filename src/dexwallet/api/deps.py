"""FastAPI dependencies."""

from fastapi import Request

from dexwallet.services.wallet import WalletRegistry


def get_registry(request: Request) -> WalletRegistry:
    """Wallet registry built at app creation."""
    return request.app.state.registry
