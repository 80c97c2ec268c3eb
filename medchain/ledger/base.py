from abc import ABC, abstractmethod

from medchain.pipeline.models import AnchorReceipt


class BaseLedgerClient(ABC):
    """Contract for permissioned-ledger adapters."""

    @property
    @abstractmethod
    def uploader(self) -> str:
        """Checksum address of the account that signs anchor transactions."""

    @abstractmethod
    def has_permission(self, principal: str) -> bool:
        """Whether ``principal`` currently holds the upload role.

        Advisory only: the contract re-checks the role when anchoring.

        Raises:
            LedgerError: if the ledger cannot be queried.
        """

    @abstractmethod
    def anchor(self, subject: str, fingerprint: str, cid: str) -> AnchorReceipt:
        """Record (fingerprint, cid) for ``subject`` in one ledger transaction.

        Blocks until the transaction is confirmed or rejected. Not retried.

        Raises:
            PermissionDenied: if the contract rejects the signer's role.
            LedgerError: if the transaction reverts or the RPC call fails.
        """

    def close(self) -> None:
        """Release network resources. No-op by default."""
