"""Pytest configuration and fixtures."""

import json
import os
from typing import Callable

import httpx
import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from dexwallet.config import ChainEndpoint, Settings

# BIP-39 test mnemonic (all-zero entropy)
TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

# Second well-known test mnemonic (0x7f entropy)
OTHER_MNEMONIC = (
    "legal winner thank year wave sausage worth useful legal winner thank yellow"
)


def rpc_result(result) -> httpx.Response:
    """JSON-RPC success reply."""
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def rpc_error(message: str, code: int = -32000) -> httpx.Response:
    """JSON-RPC error reply."""
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}}
    )


def rpc_handler(results: dict, calls: list = None) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler answering JSON-RPC calls by method name.

    A value may be a response, a callable taking the params, or a plain
    result.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        if calls is not None:
            calls.append(payload)
        if method not in results:
            return rpc_error(f"method {method} not mocked", code=-32601)
        value = results[method]
        if callable(value):
            value = value(payload["params"])
        if isinstance(value, httpx.Response):
            return value
        return rpc_result(value)

    return handler


@pytest.fixture
def endpoint() -> ChainEndpoint:
    return ChainEndpoint(rpc_url="https://node.test", api_key="", timeout=5.0)


@pytest.fixture
def keyed_endpoint() -> ChainEndpoint:
    return ChainEndpoint(rpc_url="https://node.test", api_key="test-key", timeout=5.0)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        btc_network="mainnet",
        cardano_network="mainnet",
        blockfrost_api_key="test-project",
    )
