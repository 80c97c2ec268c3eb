from web3 import Web3

from medchain.pipeline.exceptions import InputError


def normalize_principal(value: str | None) -> str:
    """Validate an account address and return its checksum form.

    Lowercase and correctly checksummed addresses are accepted; a mixed-case
    address with a wrong checksum is rejected.

    Raises:
        InputError: if the value is missing or not a valid address.
    """
    if value is None or not value.strip():
        raise InputError("Subject is required")
    candidate = value.strip()
    if not Web3.is_address(candidate):
        raise InputError(f"Subject '{candidate}' is not a valid account address")
    return Web3.to_checksum_address(candidate)
