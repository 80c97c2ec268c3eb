import hashlib
import hmac

FINGERPRINT_PREFIX = "0x"
FINGERPRINT_HEX_LENGTH = 64


def fingerprint(canonical_text: str) -> str:
    """SHA-256 over the UTF-8 bytes of canonical text, as 0x-prefixed hex.

    The prefix matches the bytes32 encoding the ledger contract expects.
    """
    digest = hashlib.sha256(canonical_text.encode("utf-8")).hexdigest()
    return f"{FINGERPRINT_PREFIX}{digest}"


def is_fingerprint(value: str) -> bool:
    if not value.startswith(FINGERPRINT_PREFIX):
        return False
    hex_part = value[len(FINGERPRINT_PREFIX):]
    if len(hex_part) != FINGERPRINT_HEX_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in hex_part)


def verify_fingerprint(canonical_text: str, expected: str) -> bool:
    """Recompute the fingerprint and compare in constant time."""
    return hmac.compare_digest(fingerprint(canonical_text), expected.lower())
