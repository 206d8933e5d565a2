"""BIP-39 mnemonic handling.

Only the English word list is accepted, and no passphrase is supported.
Identical mnemonic always yields the identical seed.
"""

from bip_utils import (
    Bip39Languages,
    Bip39MnemonicDecoder,
    Bip39MnemonicGenerator,
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
    Bip39WordsNum,
)

from dexwallet.errors import InvalidMnemonic, ValidationError

# Word counts offered when creating wallets
SUPPORTED_WORD_COUNTS = {
    12: Bip39WordsNum.WORDS_NUM_12,
    24: Bip39WordsNum.WORDS_NUM_24,
}


def generate_mnemonic(words: int = 12) -> str:
    """Generate a new random mnemonic.

    Args:
        words: 12 (128-bit entropy) or 24 (256-bit entropy)
    """
    words_num = SUPPORTED_WORD_COUNTS.get(words) if isinstance(words, int) else None
    if words_num is None:
        raise ValidationError("words must be 12 or 24")

    mnemonic = Bip39MnemonicGenerator(Bip39Languages.ENGLISH).FromWordsNumber(words_num)
    return mnemonic.ToStr()


def normalize_mnemonic(mnemonic: str) -> str:
    """Collapse whitespace between words."""
    if not isinstance(mnemonic, str):
        raise ValidationError("mnemonic must be a string")
    return " ".join(mnemonic.split())


def validate_mnemonic(mnemonic: str) -> str:
    """Validate word list and checksum.

    Returns:
        Normalized mnemonic

    Raises:
        InvalidMnemonic: If the checksum or any word is invalid
    """
    normalized = normalize_mnemonic(mnemonic)
    if not normalized:
        raise ValidationError("mnemonic required")

    if not Bip39MnemonicValidator(Bip39Languages.ENGLISH).IsValid(normalized):
        raise InvalidMnemonic("Invalid mnemonic")
    return normalized


def mnemonic_to_seed(mnemonic: str) -> bytes:
    """Derive the 64-byte BIP-39 seed (empty passphrase)."""
    normalized = validate_mnemonic(mnemonic)
    return bytes(Bip39SeedGenerator(normalized, Bip39Languages.ENGLISH).Generate())


def mnemonic_to_entropy(mnemonic: str) -> bytes:
    """Recover the entropy encoded by the mnemonic."""
    normalized = validate_mnemonic(mnemonic)
    return bytes(Bip39MnemonicDecoder(Bip39Languages.ENGLISH).Decode(normalized))
