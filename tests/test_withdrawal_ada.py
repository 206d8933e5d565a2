"""Tests for the Cardano transaction builder."""

import pytest
from pycardano import Transaction

from dexwallet.errors import FundsError, ValidationError
from dexwallet.hdwallet.ada import CardanoKeyDeriver
from dexwallet.withdrawal.base import UTXO
from dexwallet.withdrawal.ada import CardanoTransactionBuilder
from dexwallet.withdrawal.fees import CARDANO_MIN_UTXO, cardano_fee
from tests.conftest import OTHER_MNEMONIC, TEST_MNEMONIC

ADA = 1_000_000


@pytest.fixture
def keys():
    return CardanoKeyDeriver().derive(TEST_MNEMONIC)


@pytest.fixture
def destination():
    return CardanoKeyDeriver().derive(OTHER_MNEMONIC).address


@pytest.fixture
def builder(keys):
    return CardanoTransactionBuilder(keys)


def _utxos(*values):
    return [UTXO(txid=f"{i + 1:064x}", vout=i, value=v) for i, v in enumerate(values)]


def _build(builder, destination, amount, utxos):
    draft = builder.new_draft(destination, amount)
    builder.fund(draft, utxos)
    builder.adjust_fee(draft)
    builder.sign(draft)
    return draft, builder.serialize(draft)


class TestCardanoBuilder:
    """Shelley transaction drafts."""

    def test_spend_with_change(self, builder, keys, destination):
        draft, signed = _build(builder, destination, 2 * ADA, _utxos(10 * ADA, 5 * ADA))

        # Ascending selection against amount + 3 ADA picks the 5 ADA output
        assert [u.value for u in draft.inputs] == [5 * ADA]
        assert len(draft.outputs) == 2
        assert draft.outputs[1].address == keys.address
        assert draft.outputs[1].value >= CARDANO_MIN_UTXO
        assert draft.total_input == draft.total_output + draft.fee

        # Fee covers the linear formula over the signed size
        assert signed.fee >= cardano_fee(len(signed.raw))
        assert signed.fee < cardano_fee(len(signed.raw)) + 1000

    def test_txid_is_body_hash(self, builder, destination):
        _, signed = _build(builder, destination, 2 * ADA, _utxos(5 * ADA))

        tx = Transaction.from_cbor(signed.raw.hex())
        assert signed.txid == tx.transaction_body.hash().hex()
        assert len(tx.transaction_witness_set.vkey_witnesses) == 1

    def test_small_change_folded_into_fee(self, builder, destination):
        draft, signed = _build(builder, destination, 2 * ADA, _utxos(3_100_000))

        assert len(draft.outputs) == 1
        assert signed.fee == 1_100_000
        assert draft.total_input == 2 * ADA + signed.fee

    def test_insufficient_funds(self, builder, destination):
        draft = builder.new_draft(destination, 2 * ADA)
        builder.fund(draft, _utxos(2_100_000))
        with pytest.raises(FundsError):
            builder.adjust_fee(draft)

    def test_no_utxo(self, builder, destination):
        draft = builder.new_draft(destination, 2 * ADA)
        with pytest.raises(FundsError) as exc_info:
            builder.fund(draft, [])
        assert exc_info.value.message == "No UTXO available"

    def test_minimum_send(self, builder, destination):
        with pytest.raises(ValidationError) as exc_info:
            builder.new_draft(destination, ADA - 1)
        assert exc_info.value.message == "Minimum 1 ADA required"

    def test_testnet_destination_rejected(self, builder):
        testnet_address = CardanoKeyDeriver(testnet=True).derive(OTHER_MNEMONIC).address
        with pytest.raises(ValidationError):
            builder.new_draft(testnet_address, 2 * ADA)

    @pytest.mark.parametrize("address", ["", "addr1notvalid", "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"])
    def test_invalid_address(self, builder, address):
        with pytest.raises(ValidationError):
            builder.new_draft(address, 2 * ADA)
