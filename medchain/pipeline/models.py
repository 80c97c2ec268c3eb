import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum


class IngestionStatus(StrEnum):
    PENDING = "pending"
    STORED = "stored"
    ANCHORED = "anchored"
    FAILED = "failed"


_FORWARD: dict[IngestionStatus, frozenset[IngestionStatus]] = {
    IngestionStatus.PENDING: frozenset({IngestionStatus.STORED, IngestionStatus.FAILED}),
    IngestionStatus.STORED: frozenset({IngestionStatus.ANCHORED, IngestionStatus.FAILED}),
    IngestionStatus.FAILED: frozenset({IngestionStatus.ANCHORED}),
    IngestionStatus.ANCHORED: frozenset(),
}


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AnchorReceipt:
    """Ledger references returned once an anchor transaction is confirmed."""

    tx_ref: str
    block_ref: int


@dataclass(frozen=True)
class IngestionRecord:
    """Provenance record of one ingestion attempt.

    Immutable: every status change produces a new record through advance(),
    which rejects backwards transitions. failed -> anchored is the resume path.
    """

    subject: str
    filename: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    fingerprint: str | None = None
    cid: str | None = None
    tx_ref: str | None = None
    block_ref: int | None = None
    status: IngestionStatus = IngestionStatus.PENDING
    error_message: str | None = None
    resume_attempts: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def advance(self, status: IngestionStatus, **changes: object) -> "IngestionRecord":
        if status not in _FORWARD[self.status]:
            raise ValueError(f"Illegal status transition {self.status} -> {status}")
        return replace(self, status=status, updated_at=_now(), **changes)  # type: ignore[arg-type]

    def progress(self) -> dict[str, object]:
        """Partial progress reported alongside errors."""
        return {
            "id": self.id,
            "status": str(self.status),
            "fingerprint": self.fingerprint,
            "cid": self.cid,
            "tx_ref": self.tx_ref,
            "block_ref": self.block_ref,
        }


@dataclass(frozen=True)
class RetrievedDocument:
    """Decrypted and fingerprint-verified content of an anchored ingestion."""

    record: IngestionRecord
    canonical_text: str
