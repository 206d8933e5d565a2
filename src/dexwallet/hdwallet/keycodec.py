"""Private key decoding.

Callers paste keys in whatever form their tooling exports: a byte list, a
JSON array string, base58, base64, hex or WIF. A PrivateKeyCodec tries its
decoders in a fixed priority order and returns the first result whose
length is one the chain accepts.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import base58

from dexwallet.errors import UnsupportedKeyFormat, ValidationError

logger = logging.getLogger(__name__)

KeyDecoder = Callable[[Any], Optional[bytes]]


@dataclass
class DecodedKey:
    """Result of a successful decode."""

    format: str
    data: bytes = field(repr=False)


# ======================
# Decoders
# ======================
# Each returns None when the value is not in its encoding.

def decode_byte_sequence(value: Any) -> Optional[bytes]:
    """Python list/tuple of ints, or raw bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
            return None
        try:
            return bytes(value)
        except ValueError:
            return None
    return None


def decode_json_array(value: Any) -> Optional[bytes]:
    """String holding a JSON array of byte values, e.g. ``"[12, 34, ...]"``."""
    if not isinstance(value, str) or not value.strip().startswith("["):
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    return decode_byte_sequence(parsed)


def decode_base58(value: Any) -> Optional[bytes]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return base58.b58decode(value.strip())
    except ValueError:
        return None


def decode_base64(value: Any) -> Optional[bytes]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None


def decode_hex(value: Any) -> Optional[bytes]:
    """Hex string, with or without 0x prefix."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if not text:
        return None
    try:
        return bytes.fromhex(text)
    except ValueError:
        return None


def decode_wif(value: Any, testnet: bool = False) -> Optional[bytes]:
    """Wallet Import Format for the given Bitcoin network.

    A WIF for the other network does not match.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        payload = base58.b58decode_check(value.strip())
    except ValueError:
        return None

    version = 0xEF if testnet else 0x80
    if len(payload) < 33 or payload[0] != version:
        return None

    key = payload[1:]
    # Trailing 0x01 marks a compressed public key
    if len(key) == 33 and key[-1] == 0x01:
        key = key[:-1]
    return key if len(key) == 32 else None


# ======================
# Codec
# ======================

class PrivateKeyCodec:
    """Ordered list of decoders plus the key sizes a chain accepts.

    Usage:
        codec = PrivateKeyCodec([("hex", decode_hex)], sizes=(32,))
        decoded = codec.decode("0x4c08...")
        decoded.data  # 32 bytes
    """

    def __init__(self, decoders: Sequence[tuple[str, KeyDecoder]], sizes: Sequence[int]):
        self.decoders = list(decoders)
        self.sizes = tuple(sizes)

    @property
    def formats(self) -> list[str]:
        """Decoder names in priority order."""
        return [name for name, _ in self.decoders]

    def decode(self, value: Any) -> DecodedKey:
        """Decode a private key.

        Raises:
            ValidationError: If no key was supplied
            UnsupportedKeyFormat: If no decoder yields an accepted length
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError("private_key required")

        for name, decoder in self.decoders:
            data = decoder(value)
            if data is not None and len(data) in self.sizes:
                logger.debug(f"Private key decoded as {name} ({len(data)} bytes)")
                return DecodedKey(format=name, data=data)

        raise UnsupportedKeyFormat(
            "Unsupported private key format",
            detail={"accepted_formats": self.formats, "accepted_sizes": list(self.sizes)},
        )


# Solana: 32-byte seed or 64-byte seed||public key
SOLANA_KEY_CODEC = PrivateKeyCodec(
    [
        ("byte_array", decode_byte_sequence),
        ("json_array", decode_json_array),
        ("base58", decode_base58),
        ("base64", decode_base64),
    ],
    sizes=(32, 64),
)

EVM_KEY_CODEC = PrivateKeyCodec(
    [
        ("byte_array", decode_byte_sequence),
        ("json_array", decode_json_array),
        ("hex", decode_hex),
    ],
    sizes=(32,),
)


def bitcoin_key_codec(testnet: bool = False) -> PrivateKeyCodec:
    """Codec for Bitcoin keys; WIF is checked against the network."""
    return PrivateKeyCodec(
        [
            ("wif", lambda value: decode_wif(value, testnet=testnet)),
            ("byte_array", decode_byte_sequence),
            ("json_array", decode_json_array),
            ("hex", decode_hex),
        ],
        sizes=(32,),
    )
