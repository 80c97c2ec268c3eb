"""Ledger adapter for the ReportValidator contract on an EVM chain, via web3.py."""

from pathlib import Path
from typing import Any, ClassVar

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from medchain.ledger.abi_loader import load_contract_abi
from medchain.ledger.base import BaseLedgerClient
from medchain.logging.logger import Log
from medchain.pipeline.exceptions import LedgerError, PermissionDenied
from medchain.pipeline.models import AnchorReceipt
from medchain.storage.cid import cid_to_bytes


class Web3LedgerAdapter(BaseLedgerClient):
    """Signs and submits uploadReport transactions with a single backend account.

    Permission reads and anchor writes go through separate providers so each
    carries its own timeout; the permission check is expected to be fast.
    """

    ROLE_DENIED_MARKERS: ClassVar[tuple[str, ...]] = (
        "missing role",
        "accesscontrol",
    )

    def __init__(
        self,
        *,
        rpc_url: str,
        private_key: str,
        contract_address: str,
        role_name: str = "UPLOADER_ROLE",
        permission_timeout_seconds: float = 5.0,
        anchor_timeout_seconds: float = 30.0,
        receipt_timeout_seconds: float = 120.0,
        abi_path: Path | None = None,
    ) -> None:
        abi = load_contract_abi(abi_path)
        address = Web3.to_checksum_address(contract_address)

        self._read_w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": permission_timeout_seconds})
        )
        self._write_w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": anchor_timeout_seconds})
        )
        self._read_contract = self._read_w3.eth.contract(address=address, abi=abi)
        self._write_contract = self._write_w3.eth.contract(address=address, abi=abi)

        self._account = Account.from_key(private_key)
        self._role = Web3.keccak(text=role_name)
        self._role_name = role_name
        self._receipt_timeout_seconds = receipt_timeout_seconds

    @property
    def uploader(self) -> str:
        return self._account.address

    def has_permission(self, principal: str) -> bool:
        try:
            return bool(
                self._read_contract.functions.hasRole(
                    self._role, Web3.to_checksum_address(principal)
                ).call()
            )
        except (Web3Exception, OSError, ValueError) as exc:
            raise LedgerError(f"Permission check failed for {principal}: {exc}") from exc

    def anchor(self, subject: str, fingerprint: str, cid: str) -> AnchorReceipt:
        try:
            call = self._write_contract.functions.uploadReport(
                Web3.to_checksum_address(subject),
                bytes.fromhex(fingerprint.removeprefix("0x")),
                cid_to_bytes(cid),
            )
            tx_hash = self._submit(call)
            Log.info("Anchor transaction submitted", tx_ref=Web3.to_hex(tx_hash), cid=cid)
            receipt = self._write_w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout_seconds
            )
        except ContractLogicError as exc:
            raise self._translate_revert(exc, fingerprint, cid) from exc
        except TimeExhausted as exc:
            raise LedgerError(
                f"Anchor transaction not confirmed within {self._receipt_timeout_seconds}s: {exc}",
                partial={"fingerprint": fingerprint, "cid": cid},
            ) from exc
        except (Web3Exception, OSError, ValueError) as exc:
            raise LedgerError(
                f"Anchor RPC failed: {exc}",
                partial={"fingerprint": fingerprint, "cid": cid},
            ) from exc

        tx_ref = Web3.to_hex(receipt["transactionHash"])
        if receipt["status"] != 1:
            raise LedgerError(
                f"Anchor transaction {tx_ref} reverted",
                partial={"fingerprint": fingerprint, "cid": cid, "tx_ref": tx_ref},
            )
        return AnchorReceipt(tx_ref=tx_ref, block_ref=int(receipt["blockNumber"]))

    def _submit(self, call: Any) -> bytes:
        # Gas estimation in build_transaction surfaces contract reverts before signing.
        tx = call.build_transaction(
            {
                "from": self._account.address,
                "nonce": self._write_w3.eth.get_transaction_count(self._account.address, "pending"),
                "chainId": self._write_w3.eth.chain_id,
            }
        )
        signed = self._account.sign_transaction(tx)
        return self._write_w3.eth.send_raw_transaction(signed.raw_transaction)

    def _translate_revert(
        self, exc: ContractLogicError, fingerprint: str, cid: str
    ) -> LedgerError | PermissionDenied:
        reason = str(exc.message or exc)
        partial = {"fingerprint": fingerprint, "cid": cid}
        if any(marker in reason.lower() for marker in self.ROLE_DENIED_MARKERS):
            return PermissionDenied(
                f"Ledger rejected {self.uploader}: missing {self._role_name}",
                hint=f"Grant {self._role_name} to {self.uploader} on the ReportValidator contract.",
                partial=partial,
            )
        return LedgerError(f"Anchor transaction reverted: {reason}", partial=partial)
