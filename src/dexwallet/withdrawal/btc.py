"""Bitcoin transaction builder.

Builds version 2 native SegWit (P2WPKH) transactions:
- inputs spend the sender's P2WPKH outputs, sequence 0xffffffff (final, no RBF)
- each input is signed with the BIP-143 sighash (SIGHASH_ALL)
- witness stack is [signature, compressed public key]
- locktime 0

Destinations may be bech32/bech32m (any witness version) or legacy
P2PKH/P2SH base58 addresses for the configured network.
"""

import hashlib
import logging
from decimal import Decimal
from typing import Optional

import base58
import coincurve
from bip_utils import Bech32ChecksumError, SegwitBech32Decoder

from dexwallet.chains import BITCOIN
from dexwallet.errors import FundsError, ValidationError
from dexwallet.hdwallet.base import WalletKeys
from dexwallet.withdrawal.base import (
    UTXO,
    DraftState,
    SignedTransaction,
    TransactionBuilder,
    TransactionDraft,
    TxOutput,
)
from dexwallet.withdrawal.coin_selection import select_utxos
from dexwallet.withdrawal.fees import BTC_DUST_LIMIT, btc_fee

logger = logging.getLogger(__name__)

TX_VERSION = 2
SEQUENCE_FINAL = b"\xff\xff\xff\xff"
LOCKTIME = 0
SIGHASH_ALL = 1

# base58 version bytes: (P2PKH, P2SH)
_LEGACY_VERSIONS = {
    False: (0x00, 0x05),
    True: (0x6F, 0xC4),
}


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def address_to_script_pubkey(address: str, testnet: bool = False) -> bytes:
    """Output script for an address on the given network.

    Raises:
        ValidationError: If the address is malformed or for another network
    """
    if not isinstance(address, str) or not address.strip():
        raise ValidationError("address required")

    address = address.strip()
    hrp = "tb" if testnet else "bc"
    network = "testnet" if testnet else "mainnet"

    if address.lower().startswith(hrp + "1"):
        try:
            witness_version, program = SegwitBech32Decoder.Decode(hrp, address.lower())
        except (ValueError, Bech32ChecksumError) as e:
            raise ValidationError(f"Invalid bitcoin address: {address}") from e

        if witness_version == 0 and len(program) not in (20, 32):
            raise ValidationError(f"Invalid witness program length in {address}")
        # OP_0 or OP_1..OP_16, then the program push
        op_version = 0x00 if witness_version == 0 else 0x50 + witness_version
        return bytes([op_version, len(program)]) + bytes(program)

    try:
        payload = base58.b58decode_check(address)
    except ValueError as e:
        raise ValidationError(f"Invalid bitcoin address for {network}: {address}") from e

    p2pkh_version, p2sh_version = _LEGACY_VERSIONS[testnet]
    if len(payload) != 21:
        raise ValidationError(f"Invalid bitcoin address for {network}: {address}")
    if payload[0] == p2pkh_version:
        # OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG
        return b"\x76\xa9\x14" + payload[1:] + b"\x88\xac"
    if payload[0] == p2sh_version:
        # OP_HASH160 <20> OP_EQUAL
        return b"\xa9\x14" + payload[1:] + b"\x87"

    raise ValidationError(f"Invalid bitcoin address for {network}: {address}")


def _outpoint(utxo: UTXO) -> bytes:
    return bytes.fromhex(utxo.txid)[::-1] + utxo.vout.to_bytes(4, "little")


def _serialize_output(value: int, script: bytes) -> bytes:
    return value.to_bytes(8, "little") + encode_varint(len(script)) + script


def segwit_sighash(
    inputs: list[UTXO],
    outputs: list[tuple[int, bytes]],
    input_index: int,
    script_code: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP-143 signature hash for one input.

    Args:
        inputs: Spent outputs, in transaction order
        outputs: (value, script_pubkey) pairs, in transaction order
        input_index: Input being signed
        script_code: P2PKH-form script of the spent key hash
    """
    hash_prevouts = hash256(b"".join(_outpoint(utxo) for utxo in inputs))
    hash_sequence = hash256(SEQUENCE_FINAL * len(inputs))
    hash_outputs = hash256(b"".join(_serialize_output(v, s) for v, s in outputs))

    target = inputs[input_index]
    preimage = (
        TX_VERSION.to_bytes(4, "little")
        + hash_prevouts
        + hash_sequence
        + _outpoint(target)
        + encode_varint(len(script_code))
        + script_code
        + target.value.to_bytes(8, "little")
        + SEQUENCE_FINAL
        + hash_outputs
        + LOCKTIME.to_bytes(4, "little")
        + sighash_type.to_bytes(4, "little")
    )
    return hash256(preimage)


def serialize_transaction(
    inputs: list[UTXO],
    outputs: list[tuple[int, bytes]],
    witnesses: Optional[list[list[bytes]]] = None,
) -> bytes:
    """Serialize with witness data (BIP-144) when ``witnesses`` is given."""
    body = encode_varint(len(inputs))
    for utxo in inputs:
        # scriptSig is empty for native SegWit spends
        body += _outpoint(utxo) + b"\x00" + SEQUENCE_FINAL
    body += encode_varint(len(outputs))
    for value, script in outputs:
        body += _serialize_output(value, script)

    version = TX_VERSION.to_bytes(4, "little")
    locktime = LOCKTIME.to_bytes(4, "little")
    if not witnesses:
        return version + body + locktime

    witness_data = b""
    for stack in witnesses:
        witness_data += encode_varint(len(stack))
        for item in stack:
            witness_data += encode_varint(len(item)) + item

    return version + b"\x00\x01" + body + witness_data + locktime


class BitcoinTransactionBuilder(TransactionBuilder):
    """P2WPKH transaction builder.

    Usage:
        builder = BitcoinTransactionBuilder(keys)
        draft = builder.new_draft("bc1q...", 50_000)
        builder.fund(draft, utxos, Decimal("10"))
        builder.adjust_fee(draft)
        builder.sign(draft)
        signed = builder.serialize(draft)
    """

    chain = BITCOIN

    def __init__(self, keys: WalletKeys, testnet: bool = False):
        super().__init__(keys)
        self.testnet = testnet

    def validate_address(self, address: str) -> str:
        address_to_script_pubkey(address, self.testnet)
        return address.strip()

    def fund(self, draft: TransactionDraft, utxos: list[UTXO], fee_rate: Decimal) -> None:
        """Select inputs covering amount plus fee.

        Selection is re-run until the fee for the selected input count is
        covered by the target it was selected for.
        """
        draft.require(DraftState.DRAFT)
        amount = draft.amount
        if amount < BTC_DUST_LIMIT:
            raise ValidationError(f"amount must be at least {BTC_DUST_LIMIT} sats")

        fee = btc_fee(1, 2, fee_rate)
        chosen, total = [], 0
        for _ in range(len(utxos) + 1):
            chosen, total = select_utxos(utxos, amount + fee)
            needed = btc_fee(max(len(chosen), 1), 2, fee_rate)
            if needed <= fee:
                break
            fee = needed

        # A change-less spend needs one output less
        minimum = amount + btc_fee(max(len(chosen), 1), 1, fee_rate)
        if total < minimum:
            raise FundsError(
                "Insufficient funds",
                detail={"available": total, "required": minimum, "utxos": len(utxos)},
            )

        draft.add_inputs(chosen)
        draft.params["fee_rate"] = Decimal(str(fee_rate))
        draft.advance(DraftState.FUNDED)

        logger.debug(f"Selected {len(chosen)} of {len(utxos)} UTXOs totalling {total} sats")

    def adjust_fee(self, draft: TransactionDraft) -> None:
        """Fix the fee and add change; sub-dust change goes to the fee."""
        draft.require(DraftState.FUNDED)
        rate = draft.params["fee_rate"]
        n_inputs = len(draft.inputs)
        total = draft.total_input

        fee = btc_fee(n_inputs, 2, rate)
        change = total - draft.amount - fee
        outputs = [TxOutput(address=draft.destination, value=draft.amount)]

        if change >= BTC_DUST_LIMIT:
            outputs.append(TxOutput(address=draft.sender, value=change, is_change=True))
        else:
            fee = btc_fee(n_inputs, 1, rate)
            if total - draft.amount - fee < 0:
                raise FundsError(
                    "Insufficient funds",
                    detail={"available": total, "required": draft.amount + fee},
                )
            fee = total - draft.amount

        draft.outputs = outputs
        draft.fee = fee
        draft.advance(DraftState.FEE_ADJUSTED)

    def _output_scripts(self, draft: TransactionDraft) -> list[tuple[int, bytes]]:
        return [
            (output.value, address_to_script_pubkey(output.address, self.testnet))
            for output in draft.outputs
        ]

    def sign(self, draft: TransactionDraft) -> None:
        draft.require(DraftState.FEE_ADJUSTED)
        draft.check_balanced()

        # P2WPKH script code is the P2PKH script of the sender's key hash
        sender_script = address_to_script_pubkey(draft.sender, self.testnet)
        script_code = b"\x76\xa9\x14" + sender_script[2:22] + b"\x88\xac"

        private_key = coincurve.PrivateKey(self.keys.key_pair.private_key)
        public_key = self.keys.key_pair.public_key
        outputs = self._output_scripts(draft)

        witnesses = []
        for index in range(len(draft.inputs)):
            sighash = segwit_sighash(draft.inputs, outputs, index, script_code)
            # sighash is already double-SHA256
            signature = private_key.sign(sighash, hasher=None)
            witnesses.append([signature + bytes([SIGHASH_ALL]), public_key])

        draft.signed = witnesses
        draft.advance(DraftState.SIGNED)

    def serialize(self, draft: TransactionDraft) -> SignedTransaction:
        draft.require(DraftState.SIGNED)
        outputs = self._output_scripts(draft)

        raw = serialize_transaction(draft.inputs, outputs, draft.signed)
        txid = hash256(serialize_transaction(draft.inputs, outputs))[::-1].hex()

        draft.advance(DraftState.SERIALIZED)
        return SignedTransaction(
            chain=self.chain.name,
            raw=raw,
            txid=txid,
            amount=draft.amount,
            fee=draft.fee,
        )
