"""Application configuration using pydantic-settings.

Endpoints and API keys are read once at startup and handed to each chain
provider as an explicit ChainEndpoint. Operations never read settings or
environment variables themselves.

No default below embeds a credential: API keys default to empty and the
operations that need one fail with a ValidationError until it is set.
"""

from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dexwallet.chains import get_chain


@dataclass(frozen=True)
class ChainEndpoint:
    """Connection target for one chain's provider."""

    rpc_url: str
    api_key: str = ""
    timeout: float = 30.0

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=3000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")
    http_timeout: float = Field(default=30.0, description="Provider HTTP timeout (seconds)")

    # ======================
    # Bitcoin (Esplora API)
    # ======================
    btc_network: str = Field(default="mainnet", description="mainnet or testnet")
    btc_api_url: Optional[str] = Field(
        default=None, description="Esplora base URL (defaults to Blockstream for the network)"
    )
    btc_api_key: str = Field(default="", description="Optional Esplora API key")
    btc_fallback_fee_rate: Decimal = Field(
        default=Decimal("10"), description="sat/vB used when the fee provider is unavailable"
    )

    # ======================
    # EVM Chains (JSON-RPC)
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    sonic_rpc_url: str = Field(default="https://rpc.soniclabs.com", description="Sonic RPC URL")
    evm_api_key: str = Field(default="", description="Optional bearer token for EVM RPC")

    # ======================
    # Solana (JSON-RPC)
    # ======================
    sol_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com", description="Solana RPC URL"
    )
    sol_api_key: str = Field(default="", description="Optional bearer token for Solana RPC")
    sol_confirm_timeout: float = Field(
        default=60.0, description="Seconds to wait for transaction confirmation"
    )

    # ======================
    # Cardano (Blockfrost)
    # ======================
    cardano_network: str = Field(default="mainnet", description="mainnet or testnet")
    blockfrost_url: Optional[str] = Field(
        default=None, description="Blockfrost base URL (defaults by network)"
    )
    blockfrost_api_key: str = Field(default="", description="Blockfrost project id")
    cardano_min_fee_a: int = Field(default=44, description="Linear fee coefficient per byte")
    cardano_min_fee_b: int = Field(default=155381, description="Linear fee constant")

    @property
    def btc_testnet(self) -> bool:
        return self.btc_network.lower() == "testnet"

    @property
    def cardano_testnet(self) -> bool:
        return self.cardano_network.lower() in ("testnet", "preprod", "preview")

    def get_rpc_url(self, chain: str) -> str:
        """Get the provider base URL for a chain."""
        info = get_chain(chain)
        if info.name == "bitcoin":
            if self.btc_api_url:
                return self.btc_api_url.rstrip("/")
            if self.btc_testnet:
                return "https://blockstream.info/testnet/api"
            return "https://blockstream.info/api"
        if info.name == "cardano":
            if self.blockfrost_url:
                return self.blockfrost_url.rstrip("/")
            network = self.cardano_network.lower()
            if network == "testnet":
                # Legacy testnet retired; preprod is the public test network
                network = "preprod"
            return f"https://cardano-{network}.blockfrost.io/api/v0"

        rpc_map = {
            "ethereum": self.eth_rpc_url,
            "base": self.base_rpc_url,
            "polygon": self.polygon_rpc_url,
            "sonic": self.sonic_rpc_url,
            "solana": self.sol_rpc_url,
        }
        return rpc_map[info.name]

    def get_api_key(self, chain: str) -> str:
        """Get the provider API key for a chain."""
        info = get_chain(chain)
        key_map = {
            "bitcoin": self.btc_api_key,
            "cardano": self.blockfrost_api_key,
            "solana": self.sol_api_key,
        }
        return key_map.get(info.name, self.evm_api_key)

    def endpoint(self, chain: str) -> ChainEndpoint:
        """Build the explicit endpoint object for a chain's provider."""
        return ChainEndpoint(
            rpc_url=self.get_rpc_url(chain),
            api_key=self.get_api_key(chain),
            timeout=self.http_timeout,
        )

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        chains = {}
        for name in ("bitcoin", "ethereum", "base", "polygon", "sonic", "solana", "cardano"):
            endpoint = self.endpoint(name)
            chains[name] = {
                "rpc": endpoint.rpc_url,
                "api_key": "***" if endpoint.has_api_key else "(not set)",
            }
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "btc_network": self.btc_network,
            "cardano_network": self.cardano_network,
            "chains": chains,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
