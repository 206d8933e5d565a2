"""Tests for the wallet service layer, using in-memory fake providers."""

from decimal import Decimal

import pytest
from eth_account import Account

from dexwallet.errors import (
    BroadcastError,
    FundsError,
    InvalidMnemonic,
    ProviderError,
    SignerMismatch,
    ValidationError,
)
from dexwallet.chains import ETHEREUM, POLYGON
from dexwallet.providers.base import RpcError
from dexwallet.services.wallet import (
    BitcoinWallet,
    CardanoWallet,
    EvmWallet,
    SolanaWallet,
    WalletRegistry,
    build_registry,
)
from dexwallet.withdrawal.base import UTXO, SignedTransaction, submit_once
from dexwallet.withdrawal.fees import FeeQuote, btc_fee
from tests.conftest import OTHER_MNEMONIC, TEST_MNEMONIC

GWEI = 10**9
ETHER = 10**18
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
BTC_SENDER = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
BTC_DESTINATION = "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g"
ETH_SENDER = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"


class FakeProvider:
    """Records every call; each test fills in the replies it needs."""

    name = "fake"
    base_url = "https://fake.test"

    def __init__(self, **replies):
        self.replies = replies
        self.calls = []

    async def _reply(self, method, *args):
        self.calls.append((method, args))
        reply = self.replies[method]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(*args)
        return reply


class FakeEsplora(FakeProvider):
    async def get_utxos(self, address):
        return await self._reply("get_utxos", address)

    async def get_fee_rate(self):
        return await self._reply("get_fee_rate")

    async def get_balance(self, address):
        return await self._reply("get_balance", address)

    async def broadcast(self, raw_hex):
        return await self._reply("broadcast", raw_hex)


class FakeEvmRpc(FakeProvider):
    async def get_balance(self, address):
        return await self._reply("get_balance", address)

    async def get_nonce(self, address):
        return await self._reply("get_nonce", address)

    async def get_fee_data(self):
        return await self._reply("get_fee_data")

    async def estimate_gas(self, tx):
        return await self._reply("estimate_gas", tx)

    async def call(self, to, data):
        return await self._reply("call", to, data)

    async def send_raw_transaction(self, raw_hex):
        return await self._reply("send_raw_transaction", raw_hex)


class FakeSolanaRpc(FakeProvider):
    async def get_balance(self, address):
        return await self._reply("get_balance", address)

    async def get_latest_blockhash(self):
        return await self._reply("get_latest_blockhash")

    async def send_and_confirm(self, raw, timeout):
        return await self._reply("send_and_confirm", raw, timeout)


class FakeBlockfrost(FakeProvider):
    async def get_utxos(self, address):
        return await self._reply("get_utxos", address)

    async def get_balance(self, address):
        return await self._reply("get_balance", address)

    async def submit(self, raw):
        return await self._reply("submit", raw)


def _no_txid(*args):
    """Broadcast reply without a txid, so the locally computed one is used."""
    return ""


def _uint(value):
    return "0x" + value.to_bytes(32, "big").hex()


class TestWalletKeys:
    """Create and import through the wallet contract."""

    def test_create_wallet(self):
        wallet = BitcoinWallet(FakeEsplora())
        keys = wallet.create_wallet(words=24)

        assert keys.address.startswith("bc1q")
        assert len(keys.mnemonic.split()) == 24
        assert wallet.import_mnemonic(keys.mnemonic).address == keys.address
        assert keys.export()["mnemonic"] == keys.mnemonic

    def test_import_prefers_mnemonic(self):
        wallet = EvmWallet(ETHEREUM, FakeEvmRpc())
        other = wallet.import_mnemonic(OTHER_MNEMONIC)
        keys = wallet.import_wallet(private_key=other.private_key, mnemonic=TEST_MNEMONIC)
        assert keys.address == ETH_SENDER

    def test_import_requires_key_material(self):
        with pytest.raises(ValidationError):
            SolanaWallet(FakeSolanaRpc()).import_wallet()

    def test_import_invalid_mnemonic(self):
        with pytest.raises(InvalidMnemonic):
            BitcoinWallet(FakeEsplora()).import_mnemonic("abandon " * 12)

    def test_cardano_private_key_rejected(self):
        with pytest.raises(ValidationError):
            CardanoWallet(FakeBlockfrost()).import_wallet(private_key="00" * 32)


class TestBitcoinWallet:
    """Bitcoin send flow."""

    def _provider(self, **overrides):
        replies = {
            "get_utxos": [UTXO(txid="aa" * 32, vout=0, value=50_000)],
            "get_fee_rate": Decimal("5"),
            "broadcast": _no_txid,
        }
        replies.update(overrides)
        return FakeEsplora(**replies)

    @pytest.mark.asyncio
    async def test_send(self):
        provider = self._provider()
        wallet = BitcoinWallet(provider)

        result = await wallet.send(BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC)

        assert result.amount_base_units == 10_000
        assert result.fee_base_units == btc_fee(1, 2, 5)
        assert result.amount == Decimal("0.00010000")
        assert len(result.txid) == 64
        assert [c[0] for c in provider.calls] == ["get_utxos", "get_fee_rate", "broadcast"]
        assert result.to_dict()["status"] == "broadcast"

    @pytest.mark.asyncio
    async def test_signer_mismatch_before_network(self):
        provider = self._provider()
        wallet = BitcoinWallet(provider)

        with pytest.raises(SignerMismatch):
            await wallet.send(BTC_DESTINATION, BTC_SENDER, "0.0001", mnemonic=TEST_MNEMONIC)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_uppercase_sender_address(self):
        provider = self._provider()
        result = await BitcoinWallet(provider).send(
            BTC_SENDER.upper(), BTC_DESTINATION.upper(), "0.0001", mnemonic=TEST_MNEMONIC
        )
        assert result.from_address == BTC_SENDER
        assert len(result.txid) == 64

    def test_normalize_address(self):
        wallet = BitcoinWallet(FakeEsplora())
        assert wallet.normalize_address(" BC1QCR8TE4KR609GCAWUTMRZA0J4XV80JY8Z306FYU ") == BTC_SENDER
        assert wallet.normalize_address("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2") == "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"

    @pytest.mark.asyncio
    async def test_invalid_destination_before_network(self):
        provider = self._provider()
        with pytest.raises(ValidationError):
            await BitcoinWallet(provider).send(BTC_SENDER, "bc1qnope", "0.0001", mnemonic=TEST_MNEMONIC)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_fee_rate_fallback(self):
        provider = self._provider(get_fee_rate=ProviderError("down", provider="fake"))
        wallet = BitcoinWallet(provider, fallback_fee_rate=Decimal("3"))

        result = await wallet.send(BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC)
        assert result.fee_base_units == btc_fee(1, 2, 3)

    @pytest.mark.asyncio
    async def test_explicit_fee_rate(self):
        provider = self._provider()
        result = await BitcoinWallet(provider).send(
            BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC, fee_rate="2"
        )
        assert result.fee_base_units == btc_fee(1, 2, 2)
        assert "get_fee_rate" not in [c[0] for c in provider.calls]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fee_rate", ["abc", "0", "-1"])
    async def test_invalid_fee_rate(self, fee_rate):
        with pytest.raises(ValidationError):
            await BitcoinWallet(self._provider()).send(
                BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC, fee_rate=fee_rate
            )

    @pytest.mark.asyncio
    async def test_insufficient_funds(self):
        provider = self._provider(get_utxos=[UTXO(txid="aa" * 32, vout=0, value=1_000)])
        with pytest.raises(FundsError):
            await BitcoinWallet(provider).send(BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC)
        assert "broadcast" not in [c[0] for c in provider.calls]

    @pytest.mark.asyncio
    async def test_broadcast_outcome_unknown(self):
        provider = self._provider(broadcast=ProviderError("timeout", provider="fake"))

        with pytest.raises(BroadcastError) as exc_info:
            await BitcoinWallet(provider).send(BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC)

        assert exc_info.value.outcome_unknown
        assert len(exc_info.value.txid) == 64
        assert [c[0] for c in provider.calls].count("broadcast") == 1

    @pytest.mark.asyncio
    async def test_broadcast_rejected(self):
        provider = self._provider(broadcast=BroadcastError("Transaction rejected", detail="bad-txns"))

        with pytest.raises(BroadcastError) as exc_info:
            await BitcoinWallet(provider).send(BTC_SENDER, BTC_DESTINATION, "0.0001", mnemonic=TEST_MNEMONIC)
        assert not exc_info.value.outcome_unknown

    @pytest.mark.asyncio
    async def test_balance(self):
        provider = FakeEsplora(get_balance=(150_000, -50_000))
        balance = await BitcoinWallet(provider).get_balance(BTC_SENDER)
        assert balance.base_units == 100_000
        assert balance.to_dict()["confirmed"] == "0.00150000"


class TestSubmitOnce:
    """A signed transaction reaches the broadcaster at most once."""

    @pytest.mark.asyncio
    async def test_second_submission_refused(self):
        signed = SignedTransaction(chain="bitcoin", raw=b"\x02", txid="ab" * 32, amount=1, fee=1)
        sent = []

        async def broadcast(tx):
            sent.append(tx.raw)
            return tx.txid

        assert await submit_once(signed, broadcast) == "ab" * 32
        with pytest.raises(BroadcastError):
            await submit_once(signed, broadcast)
        assert sent == [b"\x02"]
        assert signed.submitted

    @pytest.mark.asyncio
    async def test_consumed_even_when_outcome_unknown(self):
        signed = SignedTransaction(chain="ethereum", raw=b"\x02", txid="0xabc", amount=1, fee=1)

        async def broadcast(tx):
            raise ProviderError("connection reset", provider="fake")

        with pytest.raises(BroadcastError) as exc_info:
            await submit_once(signed, broadcast)
        assert exc_info.value.outcome_unknown
        assert exc_info.value.txid == "0xabc"
        assert signed.submitted


class TestEvmWallet:
    """EVM native and token transfers."""

    def _provider(self, **overrides):
        replies = {
            "get_balance": ETHER,
            "get_nonce": 3,
            "get_fee_data": FeeQuote(gas_price=GWEI),
            "estimate_gas": 21000,
            "send_raw_transaction": _no_txid,
        }
        replies.update(overrides)
        return FakeEvmRpc(**replies)

    @pytest.mark.asyncio
    async def test_send_max(self):
        provider = self._provider()
        wallet = EvmWallet(POLYGON, provider)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        result = await wallet.send(ETH_SENDER.lower(), destination, "max", mnemonic=TEST_MNEMONIC)

        assert result.chain == "polygon"
        assert result.fee_base_units == 21000 * GWEI
        assert result.amount_base_units == ETHER - 21000 * GWEI

        raw_hex = provider.calls[-1][1][0]
        assert raw_hex.startswith("0x")
        assert Account.recover_transaction(raw_hex) == ETH_SENDER
        assert result.txid.startswith("0x") and len(result.txid) == 66

    @pytest.mark.asyncio
    async def test_send_amount(self):
        provider = self._provider()
        wallet = EvmWallet(ETHEREUM, provider)
        keys = wallet.import_mnemonic(TEST_MNEMONIC)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        result = await wallet.send(ETH_SENDER, destination, "0.25", private_key=keys.private_key)
        assert result.amount_base_units == ETHER // 4
        assert result.to_dict()["amount"] == "0.250000000000000000"

        gas_request = [c for c in provider.calls if c[0] == "estimate_gas"][0][1][0]
        assert gas_request["value"] == "0x0"

    @pytest.mark.asyncio
    async def test_amount_above_balance_is_funds_error(self):
        # Nodes refuse to estimate gas for a value the sender cannot cover
        def estimate_gas(tx):
            if int(tx["value"], 16) > ETHER // 10:
                raise RpcError("insufficient funds for transfer", provider="fake")
            return 21000

        provider = self._provider(get_balance=ETHER // 10, estimate_gas=estimate_gas)
        wallet = EvmWallet(ETHEREUM, provider)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        with pytest.raises(FundsError):
            await wallet.send(ETH_SENDER, destination, "1", mnemonic=TEST_MNEMONIC)
        assert "send_raw_transaction" not in [c[0] for c in provider.calls]

    @pytest.mark.asyncio
    async def test_signer_mismatch_before_network(self):
        provider = self._provider()
        wallet = EvmWallet(ETHEREUM, provider)
        other = wallet.import_mnemonic(OTHER_MNEMONIC).address

        with pytest.raises(SignerMismatch):
            await wallet.send(other, ETH_SENDER, "0.1", mnemonic=TEST_MNEMONIC)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_insufficient_funds(self):
        provider = self._provider(get_balance=ETHER // 10)
        wallet = EvmWallet(ETHEREUM, provider)
        with pytest.raises(FundsError):
            await wallet.send(None, USDC, "0.1", mnemonic=TEST_MNEMONIC)
        assert "send_raw_transaction" not in [c[0] for c in provider.calls]

    @pytest.mark.asyncio
    async def test_token_decimals_fallback(self):
        provider = self._provider(call=RpcError("execution reverted", provider="fake"))
        assert await EvmWallet(ETHEREUM, provider).get_token_decimals(USDC) == 18

    @pytest.mark.asyncio
    async def test_token_decimals_empty_reply(self):
        provider = self._provider(call="0x")
        assert await EvmWallet(ETHEREUM, provider).get_token_decimals(USDC) == 18

    @pytest.mark.asyncio
    async def test_token_balance(self):
        def call(to, data):
            return _uint(6) if data == "0x313ce567" else _uint(2_500_000)

        balance = await EvmWallet(ETHEREUM, self._provider(call=call)).get_token_balance(USDC, ETH_SENDER)
        assert balance.decimals == 6
        assert balance.base_units == 2_500_000
        assert balance.to_dict()["balance"] == "2.500000"
        assert balance.token == USDC

    @pytest.mark.asyncio
    async def test_transfer_token(self):
        def call(to, data):
            return _uint(6) if data == "0x313ce567" else _uint(10_000_000)

        provider = self._provider(call=call, estimate_gas=60_000)
        wallet = EvmWallet(ETHEREUM, provider)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        result = await wallet.transfer_token(USDC, ETH_SENDER, destination, "1.5", mnemonic=TEST_MNEMONIC)

        assert result.amount_base_units == 1_500_000
        assert result.amount == Decimal("1.500000")
        assert result.token == USDC
        assert result.fee_base_units == 60_000 * GWEI

        gas_request = [c for c in provider.calls if c[0] == "estimate_gas"][0][1][0]
        assert gas_request["to"] == USDC
        assert gas_request["data"].startswith("0xa9059cbb")

    @pytest.mark.asyncio
    async def test_transfer_token_max_rejected_before_network(self):
        provider = self._provider(call=_uint(6))
        wallet = EvmWallet(ETHEREUM, provider)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        with pytest.raises(ValidationError):
            await wallet.transfer_token(USDC, ETH_SENDER, destination, "max", mnemonic=TEST_MNEMONIC)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_transfer_token_insufficient(self):
        def call(to, data):
            return _uint(6) if data == "0x313ce567" else _uint(1_000)

        wallet = EvmWallet(ETHEREUM, self._provider(call=call))
        with pytest.raises(FundsError):
            await wallet.transfer_token(USDC, ETH_SENDER, USDC, "1", mnemonic=TEST_MNEMONIC)


class TestSolanaWallet:
    """Solana send waits for confirmation."""

    @pytest.mark.asyncio
    async def test_send(self):
        def send_and_confirm(raw, timeout):
            return "5sig", "finalized"

        provider = FakeSolanaRpc(
            get_balance=2 * 10**9,
            get_latest_blockhash="11111111111111111111111111111111",
            send_and_confirm=send_and_confirm,
        )
        wallet = SolanaWallet(provider, confirm_timeout=5)
        sender = wallet.import_mnemonic(TEST_MNEMONIC)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        result = await wallet.send(sender.address, destination, "1", private_key=sender.private_key)

        assert result.status == "finalized"
        assert result.txid == "5sig"
        assert result.amount_base_units == 10**9
        assert result.fee_base_units == 5000
        assert provider.calls[-1][1][1] == 5

    @pytest.mark.asyncio
    async def test_confirmation_timeout_reports_txid(self):
        provider = FakeSolanaRpc(
            get_balance=2 * 10**9,
            get_latest_blockhash="11111111111111111111111111111111",
            send_and_confirm=BroadcastError("not confirmed", txid="5sig", outcome_unknown=True),
        )
        wallet = SolanaWallet(provider)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        with pytest.raises(BroadcastError) as exc_info:
            await wallet.send(None, destination, "1", mnemonic=TEST_MNEMONIC)
        assert exc_info.value.outcome_unknown

    @pytest.mark.asyncio
    async def test_max_not_supported(self):
        wallet = SolanaWallet(FakeSolanaRpc())
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address
        with pytest.raises(ValidationError):
            await wallet.send(None, destination, "max", mnemonic=TEST_MNEMONIC)


class TestCardanoWallet:
    """Cardano send flow."""

    @pytest.mark.asyncio
    async def test_send(self):
        provider = FakeBlockfrost(
            get_utxos=[UTXO(txid="ab" * 32, vout=0, value=10_000_000)],
            submit=_no_txid,
        )
        wallet = CardanoWallet(provider)
        sender = wallet.import_mnemonic(TEST_MNEMONIC)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address

        result = await wallet.send(sender.address, destination, "2", mnemonic=TEST_MNEMONIC)

        assert result.amount_base_units == 2_000_000
        assert result.from_address == sender.address
        assert len(result.txid) == 64
        assert provider.calls[0] == ("get_utxos", (sender.address,))

    @pytest.mark.asyncio
    async def test_mnemonic_required(self):
        provider = FakeBlockfrost()
        with pytest.raises(ValidationError):
            await CardanoWallet(provider).send(None, "addr1x", "2", private_key="00" * 32)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_minimum_send(self):
        provider = FakeBlockfrost()
        wallet = CardanoWallet(provider)
        destination = wallet.import_mnemonic(OTHER_MNEMONIC).address
        with pytest.raises(ValidationError):
            await wallet.send(None, destination, "0.5", mnemonic=TEST_MNEMONIC)
        assert provider.calls == []


class TestRegistry:
    """Chain name lookup."""

    def test_build_registry(self, settings):
        registry = build_registry(settings)
        assert set(registry.chains()) == {
            "bitcoin", "ethereum", "base", "polygon", "sonic", "solana", "cardano",
        }
        assert isinstance(registry.get("eth"), EvmWallet)
        assert registry.get("matic").chain.chain_id == 137
        assert isinstance(registry.get("ADA"), CardanoWallet)

    def test_unknown_chain(self, settings):
        with pytest.raises(ValidationError) as exc_info:
            build_registry(settings).get("dogecoin")
        assert "bitcoin" in exc_info.value.detail["supported"]

    def test_not_configured(self):
        registry = WalletRegistry({"bitcoin": BitcoinWallet(FakeEsplora())})
        with pytest.raises(ValidationError):
            registry.get("solana")

    def test_evm_only(self, settings):
        with pytest.raises(ValidationError):
            build_registry(settings).evm("bitcoin")

    def test_endpoints_from_settings(self, settings):
        registry = build_registry(settings)
        assert registry.get("bitcoin").provider.base_url == "https://blockstream.info/api"
        assert registry.get("cardano").provider.endpoint.api_key == "test-project"
        assert registry.get("cardano").health()["api_key_configured"] is True
