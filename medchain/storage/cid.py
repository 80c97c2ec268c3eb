import base64

_BASE32_MULTIBASE_PREFIX = "b"


def cid_to_bytes(cid: str) -> bytes:
    """Binary form of a base32 CIDv1 string, as the ledger contract stores it.

    Raises:
        ValueError: for CIDv0 (``Qm...``) or any non-base32 multibase string.
    """
    if not cid.startswith(_BASE32_MULTIBASE_PREFIX):
        raise ValueError(f"Expected a base32 CIDv1, got '{cid}'")
    body = cid[len(_BASE32_MULTIBASE_PREFIX):].upper()
    padding = "=" * (-len(body) % 8)
    try:
        raw = base64.b32decode(body + padding)
    except ValueError as exc:
        raise ValueError(f"Invalid base32 CID '{cid}': {exc}") from exc
    if not raw or raw[0] != 0x01:
        raise ValueError(f"CID '{cid}' is not version 1")
    return raw
