"""Wallet service: one uniform contract per chain.

Every chain wallet offers create, import, balance and send. Key handling
is local and request-scoped: keys are derived per call, the signer is
checked against the declared sender before any network call, and the
signed transaction is submitted exactly once.

Usage:
    registry = build_registry(get_settings())
    wallet = registry.get("polygon")
    keys = wallet.create_wallet(words=12)
    result = await wallet.send(keys.address, "0x...", "0.5", private_key=keys.private_key)
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from dexwallet.chains import BITCOIN, CARDANO, SOLANA, ChainInfo, get_chain, get_evm_chains
from dexwallet.config import Settings
from dexwallet.errors import ProviderError, ValidationError
from dexwallet.hdwallet.base import ChainKeyDeriver, WalletKeys
from dexwallet.hdwallet.factory import get_key_deriver
from dexwallet.hdwallet.mnemonic import generate_mnemonic
from dexwallet.providers.base import RpcError
from dexwallet.providers.blockfrost import BlockfrostProvider
from dexwallet.providers.esplora import EsploraProvider
from dexwallet.providers.evm_rpc import EvmRpcProvider
from dexwallet.providers.solana_rpc import SolanaRpcProvider
from dexwallet.services.balance import Balance, from_base_units, resolve_balance, to_base_units
from dexwallet.withdrawal.ada import CardanoTransactionBuilder, parse_address
from dexwallet.withdrawal.base import MAX_AMOUNT, SendResult, SignedTransaction, ensure_signer, submit_once
from dexwallet.withdrawal.btc import BitcoinTransactionBuilder, address_to_script_pubkey
from dexwallet.withdrawal.evm import (
    DEFAULT_TOKEN_DECIMALS,
    EvmTransactionBuilder,
    checksum_address,
    decode_uint,
    encode_balance_of,
    encode_decimals,
    encode_transfer,
)
from dexwallet.withdrawal.sol import SolanaTransactionBuilder, parse_pubkey

logger = logging.getLogger(__name__)


class ChainWallet(ABC):
    """Abstract base class for per-chain wallets."""

    chain: ChainInfo

    def __init__(self, deriver: ChainKeyDeriver):
        self.deriver = deriver

    # ======================
    # Keys
    # ======================

    def create_wallet(
        self, words: int = 12, account: int = 0, change: int = 0, index: int = 0
    ) -> WalletKeys:
        """Generate a mnemonic and derive the first wallet from it."""
        mnemonic = generate_mnemonic(words)
        keys = self.deriver.derive(mnemonic, account=account, change=change, index=index)
        keys.mnemonic = mnemonic
        logger.info(f"Created {self.chain.name} wallet {keys.address[:10]}...")
        return keys

    def import_mnemonic(
        self, mnemonic: str, account: int = 0, change: int = 0, index: int = 0
    ) -> WalletKeys:
        return self.deriver.derive(mnemonic, account=account, change=change, index=index)

    def import_private_key(self, private_key: Any) -> WalletKeys:
        return self.deriver.from_private_key(private_key)

    def import_wallet(
        self,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
    ) -> WalletKeys:
        """Import from a mnemonic (preferred when both are given) or a private key."""
        if mnemonic:
            return self.import_mnemonic(mnemonic, account=account, change=change, index=index)
        if private_key is not None and private_key != "":
            return self.import_private_key(private_key)
        raise ValidationError("private_key or mnemonic required")

    def signing_keys(
        self,
        from_address: Optional[str],
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
    ) -> WalletKeys:
        """Load the sender's keys and check they control ``from_address``."""
        keys = self.import_wallet(
            private_key=private_key, mnemonic=mnemonic, account=account, change=change, index=index
        )
        if from_address is not None:
            ensure_signer(keys, from_address.strip(), self.normalize_address)
        return keys

    # ======================
    # Addresses and amounts
    # ======================

    @abstractmethod
    def validate_address(self, address: str) -> str:
        """Validate an address for this chain; returns its canonical form."""
        pass

    def normalize_address(self, address: str) -> str:
        """Form used to compare addresses."""
        return address

    def parse_amount(self, amount: Any, decimals: Optional[int] = None) -> int:
        return to_base_units(amount, self.chain.decimals if decimals is None else decimals)

    def _result(
        self,
        signed: SignedTransaction,
        from_address: str,
        to_address: str,
        txid: str,
        status: str = "broadcast",
        decimals: Optional[int] = None,
        token: Optional[str] = None,
    ) -> SendResult:
        decimals = self.chain.decimals if decimals is None else decimals
        logger.info(
            f"{self.chain.name} send {signed.amount} base units to {to_address[:10]}... txid={txid}"
        )
        return SendResult(
            chain=self.chain.name,
            txid=txid,
            from_address=from_address,
            to_address=to_address,
            amount=from_base_units(signed.amount, decimals),
            fee=from_base_units(signed.fee, self.chain.decimals),
            amount_base_units=signed.amount,
            fee_base_units=signed.fee,
            status=status,
            token=token,
        )

    # ======================
    # Network
    # ======================

    @abstractmethod
    def health(self) -> dict:
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> Balance:
        pass

    @abstractmethod
    async def send(
        self,
        from_address: Optional[str],
        to_address: str,
        amount: Any,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        **options: Any,
    ) -> SendResult:
        pass


class BitcoinWallet(ChainWallet):
    """Native SegWit wallet backed by an Esplora API."""

    chain = BITCOIN

    def __init__(
        self,
        provider: EsploraProvider,
        testnet: bool = False,
        fallback_fee_rate: Decimal = Decimal("10"),
    ):
        super().__init__(get_key_deriver(BITCOIN.name, testnet))
        self.provider = provider
        self.testnet = testnet
        self.fallback_fee_rate = fallback_fee_rate

    def health(self) -> dict:
        return {
            "ok": True,
            "chain": self.chain.name,
            "network": "testnet" if self.testnet else "mainnet",
            "api": self.provider.base_url,
        }

    def validate_address(self, address: str) -> str:
        address_to_script_pubkey(address, self.testnet)
        return address.strip()

    def normalize_address(self, address: str) -> str:
        # Bech32 is case-insensitive, base58 is not
        address = address.strip()
        if address.lower().startswith(("bc1", "tb1")):
            return address.lower()
        return address

    async def get_balance(self, address: str) -> Balance:
        address = self.validate_address(address)
        confirmed, pending = await self.provider.get_balance(address)
        return resolve_balance(self.chain, address, confirmed=confirmed, pending=pending)

    async def resolve_fee_rate(self, requested: Any = None) -> Decimal:
        """Requested rate, else the provider quote, else the configured fallback."""
        if requested is not None:
            try:
                rate = Decimal(str(requested))
            except InvalidOperation as e:
                raise ValidationError(f"Invalid fee_rate: {requested}") from e
            if not rate.is_finite() or rate <= 0:
                raise ValidationError("fee_rate must be positive")
            return rate

        try:
            return await self.provider.get_fee_rate()
        except ProviderError as e:
            logger.warning(
                f"Fee estimate unavailable ({e.message}), using fallback {self.fallback_fee_rate} sat/vB"
            )
            return self.fallback_fee_rate

    async def send(
        self,
        from_address: Optional[str],
        to_address: str,
        amount: Any,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        fee_rate: Any = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
        **options: Any,
    ) -> SendResult:
        keys = self.signing_keys(from_address, private_key, mnemonic, account, change, index)
        builder = BitcoinTransactionBuilder(keys, testnet=self.testnet)
        draft = builder.new_draft(to_address, self.parse_amount(amount))

        utxos = await self.provider.get_utxos(keys.address)
        rate = await self.resolve_fee_rate(fee_rate)

        builder.fund(draft, utxos, rate)
        builder.adjust_fee(draft)
        builder.sign(draft)
        signed = builder.serialize(draft)

        txid = await submit_once(signed, lambda tx: self.provider.broadcast(tx.raw_hex))
        return self._result(signed, keys.address, draft.destination, txid)


class EvmWallet(ChainWallet):
    """Account-model wallet for one EVM network, with ERC-20 support."""

    def __init__(self, chain: ChainInfo, provider: EvmRpcProvider):
        super().__init__(get_key_deriver(chain.name))
        self.chain = chain
        self.provider = provider

    def health(self) -> dict:
        return {
            "ok": True,
            "chain": self.chain.name,
            "chain_id": self.chain.chain_id,
            "rpc": self.provider.base_url,
        }

    def validate_address(self, address: str) -> str:
        return checksum_address(address)

    def normalize_address(self, address: str) -> str:
        return address.lower()

    def parse_amount(self, amount: Any, decimals: Optional[int] = None) -> Any:
        if isinstance(amount, str) and amount.strip().lower() == MAX_AMOUNT:
            return MAX_AMOUNT
        return super().parse_amount(amount, decimals)

    async def get_balance(self, address: str) -> Balance:
        address = self.validate_address(address)
        wei = await self.provider.get_balance(address)
        return resolve_balance(self.chain, address, settled=wei)

    async def send(
        self,
        from_address: Optional[str],
        to_address: str,
        amount: Any,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
        **options: Any,
    ) -> SendResult:
        """Send native currency; ``amount`` may be MAX_AMOUNT."""
        keys = self.signing_keys(from_address, private_key, mnemonic, account, change, index)
        builder = EvmTransactionBuilder(keys, self.chain)
        draft = builder.new_draft(to_address, self.parse_amount(amount))

        balance = await self.provider.get_balance(keys.address)
        nonce = await self.provider.get_nonce(keys.address)
        builder.fund(draft, balance=balance, nonce=nonce)

        quote = await self.provider.get_fee_data()
        gas_limit = await self.provider.estimate_gas(
            {"from": keys.address, "to": draft.destination, "value": "0x0"}
        )
        builder.adjust_fee(draft, quote, gas_limit)
        builder.sign(draft)
        signed = builder.serialize(draft)

        txid = await submit_once(
            signed, lambda tx: self.provider.send_raw_transaction("0x" + tx.raw_hex)
        )
        return self._result(signed, keys.address, draft.destination, txid)

    # ======================
    # ERC-20
    # ======================

    async def get_token_decimals(self, token: str) -> int:
        """Token decimals from the contract, 18 when it does not answer."""
        token = checksum_address(token)
        try:
            return decode_uint(await self.provider.call(token, encode_decimals()))
        except (RpcError, ValueError) as e:
            logger.warning(
                f"decimals() failed for {token} on {self.chain.name} ({e}), assuming {DEFAULT_TOKEN_DECIMALS}"
            )
            return DEFAULT_TOKEN_DECIMALS

    async def _token_balance_units(self, token: str, owner: str) -> int:
        data = await self.provider.call(token, encode_balance_of(owner))
        try:
            return decode_uint(data)
        except ValueError as e:
            raise ProviderError(
                f"balanceOf returned invalid data for {token}", provider=self.provider.name, detail=data
            ) from e

    async def get_token_balance(self, token: str, owner: str) -> Balance:
        token = checksum_address(token)
        owner = self.validate_address(owner)
        decimals = await self.get_token_decimals(token)
        units = await self._token_balance_units(token, owner)
        return Balance(
            chain=self.chain.name,
            address=owner,
            symbol="",
            decimals=decimals,
            base_units=units,
            token=token,
        )

    async def transfer_token(
        self,
        token: str,
        from_address: Optional[str],
        to_address: str,
        amount: Any,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
    ) -> SendResult:
        """Send ERC-20 tokens; gas is paid in the native currency."""
        keys = self.signing_keys(from_address, private_key, mnemonic, account, change, index)
        if isinstance(amount, str) and amount.strip().lower() == MAX_AMOUNT:
            raise ValidationError("max amount is not supported for token transfers")
        builder = EvmTransactionBuilder(keys, self.chain)
        token = checksum_address(token)
        to_address = builder.validate_address(to_address)

        decimals = await self.get_token_decimals(token)
        draft = builder.new_token_draft(token, to_address, self.parse_amount(amount, decimals))

        balance = await self.provider.get_balance(keys.address)
        nonce = await self.provider.get_nonce(keys.address)
        token_balance = await self._token_balance_units(token, keys.address)
        builder.fund(draft, balance=balance, nonce=nonce, token_balance=token_balance)

        quote = await self.provider.get_fee_data()
        gas_limit = await self.provider.estimate_gas(
            {"from": keys.address, "to": token, "data": encode_transfer(to_address, draft.amount)}
        )
        builder.adjust_fee(draft, quote, gas_limit)
        builder.sign(draft)
        signed = builder.serialize(draft)

        txid = await submit_once(
            signed, lambda tx: self.provider.send_raw_transaction("0x" + tx.raw_hex)
        )
        return self._result(
            signed, keys.address, to_address, txid, decimals=decimals, token=token
        )


class SolanaWallet(ChainWallet):
    """Solana wallet; sends wait for confirmation."""

    chain = SOLANA

    def __init__(self, provider: SolanaRpcProvider, confirm_timeout: float = 60.0):
        super().__init__(get_key_deriver(SOLANA.name))
        self.provider = provider
        self.confirm_timeout = confirm_timeout

    def health(self) -> dict:
        return {"ok": True, "chain": self.chain.name, "rpc": self.provider.base_url}

    def validate_address(self, address: str) -> str:
        return str(parse_pubkey(address))

    async def get_balance(self, address: str) -> Balance:
        address = self.validate_address(address)
        lamports = await self.provider.get_balance(address)
        return resolve_balance(self.chain, address, settled=lamports)

    async def send(
        self,
        from_address: Optional[str],
        to_address: str,
        amount: Any,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
        **options: Any,
    ) -> SendResult:
        keys = self.signing_keys(from_address, private_key, mnemonic, account, change, index)
        builder = SolanaTransactionBuilder(keys)
        draft = builder.new_draft(to_address, self.parse_amount(amount))

        balance = await self.provider.get_balance(keys.address)
        blockhash = await self.provider.get_latest_blockhash()
        builder.fund(draft, balance=balance, blockhash=blockhash)
        builder.adjust_fee(draft)
        builder.sign(draft)
        signed = builder.serialize(draft)

        confirmation = {}

        async def broadcast(tx: SignedTransaction) -> str:
            signature, confirmation["status"] = await self.provider.send_and_confirm(
                tx.raw, self.confirm_timeout
            )
            return signature

        txid = await submit_once(signed, broadcast)
        return self._result(
            signed, keys.address, draft.destination, txid, status=confirmation["status"]
        )


class CardanoWallet(ChainWallet):
    """Shelley wallet backed by Blockfrost; imported from a mnemonic only."""

    chain = CARDANO

    def __init__(
        self,
        provider: BlockfrostProvider,
        testnet: bool = False,
        fee_a: int = 44,
        fee_b: int = 155381,
    ):
        super().__init__(get_key_deriver(CARDANO.name, testnet))
        self.provider = provider
        self.testnet = testnet
        self.fee_a = fee_a
        self.fee_b = fee_b

    def health(self) -> dict:
        return {
            "ok": True,
            "chain": self.chain.name,
            "network": "testnet" if self.testnet else "mainnet",
            "api": self.provider.base_url,
            "api_key_configured": self.provider.endpoint.has_api_key,
        }

    def validate_address(self, address: str) -> str:
        parse_address(address, self.deriver.network)
        return address.strip()

    async def get_balance(self, address: str) -> Balance:
        address = self.validate_address(address)
        lovelace = await self.provider.get_balance(address)
        return resolve_balance(self.chain, address, settled=lovelace)

    async def send(
        self,
        from_address: Optional[str],
        to_address: str,
        amount: Any,
        private_key: Any = None,
        mnemonic: Optional[str] = None,
        account: int = 0,
        change: int = 0,
        index: int = 0,
        **options: Any,
    ) -> SendResult:
        """Send ADA from the mnemonic's base address.

        ``from_address`` is optional; when given it must match.
        """
        if not mnemonic:
            raise ValidationError("mnemonic required")
        keys = self.signing_keys(from_address, None, mnemonic, account, change, index)
        builder = CardanoTransactionBuilder(
            keys, testnet=self.testnet, fee_a=self.fee_a, fee_b=self.fee_b
        )
        draft = builder.new_draft(to_address, self.parse_amount(amount))

        utxos = await self.provider.get_utxos(keys.address)
        builder.fund(draft, utxos)
        builder.adjust_fee(draft)
        builder.sign(draft)
        signed = builder.serialize(draft)

        txid = await submit_once(signed, lambda tx: self.provider.submit(tx.raw))
        return self._result(signed, keys.address, draft.destination, txid)


class WalletRegistry:
    """Chain name -> wallet lookup."""

    def __init__(self, wallets: dict[str, ChainWallet]):
        self._wallets = wallets

    def get(self, chain: str) -> ChainWallet:
        """Resolve a chain name or alias.

        Raises:
            ValidationError: If the chain is unknown or not configured
        """
        info = get_chain(chain)
        wallet = self._wallets.get(info.name)
        if wallet is None:
            raise ValidationError(f"{info.name} is not configured")
        return wallet

    def evm(self, chain: str) -> EvmWallet:
        wallet = self.get(chain)
        if not isinstance(wallet, EvmWallet):
            raise ValidationError(f"{wallet.chain.name} is not an EVM chain")
        return wallet

    def chains(self) -> list[str]:
        return list(self._wallets)


def build_registry(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> WalletRegistry:
    """Build wallets for every chain from settings.

    Each provider receives its own explicit ChainEndpoint.
    """
    wallets: dict[str, ChainWallet] = {
        BITCOIN.name: BitcoinWallet(
            EsploraProvider(settings.endpoint(BITCOIN.name), transport=transport),
            testnet=settings.btc_testnet,
            fallback_fee_rate=settings.btc_fallback_fee_rate,
        ),
        SOLANA.name: SolanaWallet(
            SolanaRpcProvider(settings.endpoint(SOLANA.name), transport=transport),
            confirm_timeout=settings.sol_confirm_timeout,
        ),
        CARDANO.name: CardanoWallet(
            BlockfrostProvider(settings.endpoint(CARDANO.name), transport=transport),
            testnet=settings.cardano_testnet,
            fee_a=settings.cardano_min_fee_a,
            fee_b=settings.cardano_min_fee_b,
        ),
    }
    for chain in get_evm_chains():
        wallets[chain.name] = EvmWallet(
            chain, EvmRpcProvider(settings.endpoint(chain.name), transport=transport)
        )

    logger.info(f"Wallet registry ready: {', '.join(wallets)}")
    return WalletRegistry(wallets)
