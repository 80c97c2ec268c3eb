import json
from pathlib import Path

import pytest

from medchain.ledger.abi_loader import load_contract_abi
from medchain.pipeline.exceptions import LedgerError


class TestLoadContractAbi:
    def test_loads_bundled_abi(self) -> None:
        abi = load_contract_abi()
        names = {entry["name"] for entry in abi}
        assert {"hasRole", "uploadReport", "ReportUploaded"} <= names

    def test_upload_report_signature(self) -> None:
        abi = load_contract_abi()
        upload = next(entry for entry in abi if entry["name"] == "uploadReport")
        assert [item["type"] for item in upload["inputs"]] == ["address", "bytes32", "bytes"]

    def test_accepts_hardhat_artifact(self, tmp_path: Path) -> None:
        path = tmp_path / "ReportValidator.json"
        path.write_text(json.dumps({"contractName": "ReportValidator", "abi": [{"name": "hasRole"}]}))

        assert load_contract_abi(path) == [{"name": "hasRole"}]

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(LedgerError, match="Failed to load contract ABI"):
            load_contract_abi(tmp_path / "missing.json")

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "abi.json"
        path.write_text("{not json")
        with pytest.raises(LedgerError, match="Failed to load contract ABI"):
            load_contract_abi(path)

    def test_artifact_without_abi_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "abi.json"
        path.write_text(json.dumps({"bytecode": "0x00"}))
        with pytest.raises(LedgerError, match="must be a list"):
            load_contract_abi(path)
