import json
from pathlib import Path
from typing import Any

from medchain.pipeline.exceptions import LedgerError

_DEFAULT_ABI_DIR = Path(__file__).parent / "abi"


def load_contract_abi(path: Path | None = None) -> list[dict[str, Any]]:
    """Load the ReportValidator contract ABI.

    Args:
        path: Path to an ABI JSON file (a bare list or a Hardhat artifact with
              an "abi" key). Defaults to the bundled report_validator.json.

    Raises:
        LedgerError: if the file cannot be read or does not contain an ABI list.
    """
    if path is None:
        path = _DEFAULT_ABI_DIR / "report_validator.json"
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise LedgerError(f"Failed to load contract ABI: {exc}") from exc

    abi = payload.get("abi") if isinstance(payload, dict) else payload
    if not isinstance(abi, list):
        raise LedgerError(f"Contract ABI in {path} must be a list")
    return abi
