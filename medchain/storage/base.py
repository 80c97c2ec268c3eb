from abc import ABC, abstractmethod


class BaseContentStore(ABC):
    """Contract for content-addressed store adapters.

    The store is append-only from the pipeline's point of view: there is no
    update or delete.
    """

    @abstractmethod
    def put(self, data: bytes) -> str:
        """Store bytes and return their content identifier.

        The CID is a function of ``data`` only.

        Raises:
            StorageUnavailable: if the store is unreachable after retries.
        """

    @abstractmethod
    def get(self, cid: str) -> bytes:
        """Return the bytes stored under ``cid``.

        Raises:
            ContentNotFound: if the store does not know the CID.
            StorageUnavailable: if the store is unreachable after retries.
        """

    def close(self) -> None:
        """Release network resources. No-op by default."""
