"""FastAPI application factory."""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dexwallet import __version__
from dexwallet.config import Settings, get_settings
from dexwallet.errors import WalletError
from dexwallet.services.wallet import WalletRegistry, build_registry

logger = logging.getLogger(__name__)


async def wallet_error_handler(request: Request, exc: WalletError) -> JSONResponse:
    """Map engine errors to ``{"error", "code", "detail"}`` responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported like any other ValidationError."""
    detail = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "code": "validation_error", "detail": detail},
    )


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[WalletRegistry] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Defaults to the environment settings
        registry: Prebuilt wallets (tests inject fake providers here)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="dexwallet API",
        description="Multi-chain wallet engine: Bitcoin, EVM, Solana, Cardano",
        version=__version__,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.registry = registry or build_registry(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WalletError, wallet_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Register routes
    from dexwallet.api.routers import btc, cardano, evm, solana

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict:
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": "dexwallet",
            "version": __version__,
            "chains": app.state.registry.chains(),
        }

    app.include_router(btc.router, tags=["Bitcoin"])
    app.include_router(evm.router, tags=["EVM"])
    app.include_router(solana.router, tags=["Solana"])
    app.include_router(cardano.router, tags=["Cardano"])

    return app
