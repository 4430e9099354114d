"""Bank account identifier encoding.

The matcher compares identifiers as opaque tokens. This module only decides
how an IBAN taken from a bank record becomes such a token: either the
normalised IBAN itself, or a short PBKDF2-HMAC-SHA256 digest keyed by the
account holder name so plaintext IBANs are never stored.
"""

import hashlib
import re

from .enums import IdentifierMode

HASH_ITERATIONS = 1000
HASH_BYTES = 6  # 12 hex digits

_WHITESPACE = re.compile(r"\s+")


def normalize_iban(iban: str) -> str:
    """Remove whitespace and uppercase an IBAN.

    Example:
        >>> normalize_iban("de12 3456 7890")
        'DE1234567890'
    """
    return _WHITESPACE.sub("", iban).upper()


def hash_iban(iban: str, name: str) -> str:
    """Derive the opaque identifier token for an IBAN and account holder name.

    The account holder name is the PBKDF2 password and the IBAN the salt, so the
    same IBAN used by different holders yields different tokens.
    """
    key = hashlib.pbkdf2_hmac(
        "sha256",
        name.encode("utf-8"),
        iban.encode("utf-8"),
        HASH_ITERATIONS,
        dklen=HASH_BYTES,
    )
    return key.hex()


def encode_identifier(iban: str | None, account_name: str, mode: IdentifierMode) -> str | None:
    """Turn a raw IBAN into the identifier token stored on transactions and bindings."""
    if not iban or not iban.strip():
        return None
    normalized = normalize_iban(iban)
    if mode is IdentifierMode.HASHED:
        return hash_iban(normalized, account_name)
    return normalized
