"""Tests for the Bitcoin transaction builder."""

from decimal import Decimal

import coincurve
import pytest

from dexwallet.errors import DraftStateError, FundsError, ValidationError
from dexwallet.hdwallet.btc import BTCKeyDeriver
from dexwallet.withdrawal.base import MAX_AMOUNT, UTXO, DraftState
from dexwallet.withdrawal.btc import (
    BitcoinTransactionBuilder,
    address_to_script_pubkey,
    hash256,
    segwit_sighash,
    serialize_transaction,
)
from dexwallet.withdrawal.fees import BTC_DUST_LIMIT, btc_fee
from tests.conftest import TEST_MNEMONIC

DESTINATION = "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g"


@pytest.fixture
def keys():
    return BTCKeyDeriver().derive(TEST_MNEMONIC)


@pytest.fixture
def builder(keys):
    return BitcoinTransactionBuilder(keys)


def _utxos(*values):
    return [UTXO(txid=f"{i + 1:064x}", vout=i, value=v) for i, v in enumerate(values)]


def _build(builder, utxos, amount, fee_rate=Decimal("10")):
    draft = builder.new_draft(DESTINATION, amount)
    builder.fund(draft, utxos, fee_rate)
    builder.adjust_fee(draft)
    builder.sign(draft)
    return draft, builder.serialize(draft)


class TestAddressScripts:
    """Address to output script conversion."""

    def test_p2wpkh(self, keys):
        script = address_to_script_pubkey(keys.address)
        assert script[:2] == b"\x00\x14"
        assert len(script) == 22

    def test_legacy_p2pkh(self):
        script = address_to_script_pubkey("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2")
        assert script[:3] == b"\x76\xa9\x14"
        assert script[-2:] == b"\x88\xac"

    def test_p2sh(self):
        script = address_to_script_pubkey("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy")
        assert script[:2] == b"\xa9\x14"
        assert script[-1:] == b"\x87"

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "bc1qinvalid",
            "tb1qcr8te4kr609gcawutmrza0j4xv80jy8zeqchgx",
            "mipcBbFg9gMiCh81Kj8tqqdgoZub1ZJRfn",
            "0x9858EfFD232B4033E47d90003D41EC34EcaEda94",
        ],
    )
    def test_invalid_for_mainnet(self, address):
        with pytest.raises(ValidationError):
            address_to_script_pubkey(address)


class TestBitcoinBuilder:
    """Draft lifecycle for P2WPKH spends."""

    def test_spend_with_change(self, builder, keys):
        draft, signed = _build(builder, _utxos(50_000, 30_000), 40_000)

        # Both UTXOs needed, 2 inputs + 2 outputs at 10 sat/vB
        assert len(draft.inputs) == 2
        assert draft.fee == 2180
        assert [o.value for o in draft.outputs] == [40_000, 37_820]
        assert draft.outputs[1].is_change
        assert draft.outputs[1].address == keys.address
        assert draft.total_input == draft.total_output + draft.fee
        assert draft.state == DraftState.SERIALIZED

        assert signed.amount == 40_000
        assert signed.fee == 2180

    def test_single_input_when_enough(self, builder):
        draft, _ = _build(builder, _utxos(100_000, 5_000, 60_000), 40_000)
        # Ascending: 5k then 60k covers 40k + fee
        assert [u.value for u in draft.inputs] == [5_000, 60_000]

    def test_dust_change_goes_to_fee(self, builder):
        draft, signed = _build(builder, _utxos(40_500), 40_000, Decimal("1"))

        assert len(draft.outputs) == 1
        assert draft.fee == 500
        assert draft.fee >= btc_fee(1, 1, 1)
        assert signed.fee == 500

    def test_insufficient_funds(self, builder):
        draft = builder.new_draft(DESTINATION, 20_000)
        with pytest.raises(FundsError) as exc_info:
            builder.fund(draft, _utxos(10_000), Decimal("10"))
        assert exc_info.value.detail["available"] == 10_000

    def test_no_utxos(self, builder):
        draft = builder.new_draft(DESTINATION, 20_000)
        with pytest.raises(FundsError):
            builder.fund(draft, [], Decimal("10"))

    def test_dust_amount_rejected(self, builder):
        draft = builder.new_draft(DESTINATION, BTC_DUST_LIMIT - 1)
        with pytest.raises(ValidationError):
            builder.fund(draft, _utxos(100_000), Decimal("10"))

    def test_max_not_supported(self, builder):
        with pytest.raises(ValidationError):
            builder.new_draft(DESTINATION, MAX_AMOUNT)

    @pytest.mark.parametrize("amount", [0, -5, "1000", 1.5])
    def test_amount_must_be_positive_int(self, builder, amount):
        with pytest.raises(ValidationError):
            builder.new_draft(DESTINATION, amount)

    def test_steps_in_order(self, builder):
        draft = builder.new_draft(DESTINATION, 40_000)
        with pytest.raises(DraftStateError):
            builder.sign(draft)
        builder.fund(draft, _utxos(50_000), Decimal("1"))
        with pytest.raises(DraftStateError):
            builder.fund(draft, _utxos(50_000), Decimal("1"))

    def test_duplicate_outpoint_rejected(self, builder):
        utxo = UTXO(txid="aa" * 32, vout=0, value=50_000)
        draft = builder.new_draft(DESTINATION, 60_000)
        with pytest.raises(ValidationError):
            builder.fund(draft, [utxo, utxo], Decimal("1"))


class TestSigning:
    """Signatures and serialization."""

    def test_signatures_verify(self, builder, keys):
        draft, _ = _build(builder, _utxos(50_000, 30_000), 40_000)

        outputs = [(o.value, address_to_script_pubkey(o.address)) for o in draft.outputs]
        program = address_to_script_pubkey(keys.address)[2:]
        script_code = b"\x76\xa9\x14" + program + b"\x88\xac"
        public_key = coincurve.PublicKey(keys.key_pair.public_key)

        for index, (signature, pubkey) in enumerate(draft.signed):
            assert signature[-1] == 0x01  # SIGHASH_ALL
            assert pubkey == keys.key_pair.public_key
            sighash = segwit_sighash(draft.inputs, outputs, index, script_code)
            assert public_key.verify(signature[:-1], sighash, hasher=None)

    def test_serialization(self, builder):
        draft, signed = _build(builder, _utxos(50_000), 40_000)

        raw = signed.raw_hex
        assert raw.startswith("02000000" + "0001")
        assert raw.endswith("00000000")

        outputs = [(o.value, address_to_script_pubkey(o.address)) for o in draft.outputs]
        stripped = serialize_transaction(draft.inputs, outputs)
        assert signed.txid == hash256(stripped)[::-1].hex()
        assert len(signed.txid) == 64

    def test_deterministic(self, keys):
        # RFC 6979 nonces: same draft, same bytes
        _, first = _build(BitcoinTransactionBuilder(keys), _utxos(50_000), 40_000)
        _, second = _build(BitcoinTransactionBuilder(keys), _utxos(50_000), 40_000)
        assert first.raw == second.raw
