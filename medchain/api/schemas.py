from datetime import datetime

from pydantic import BaseModel

from medchain.pipeline.models import IngestionRecord


class IngestionResponse(BaseModel):
    """Public view of an ingestion record."""

    id: str
    subject: str
    filename: str
    fingerprint: str | None
    cid: str | None
    tx_ref: str | None
    block_ref: int | None
    status: str
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: IngestionRecord) -> "IngestionResponse":
        return cls(
            id=record.id,
            subject=record.subject,
            filename=record.filename,
            fingerprint=record.fingerprint,
            cid=record.cid,
            tx_ref=record.tx_ref,
            block_ref=record.block_ref,
            status=str(record.status),
            error_message=record.error_message,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class VerificationResponse(BaseModel):
    id: str
    fingerprint: str | None
    cid: str | None
    verified: bool


class ErrorDetail(BaseModel):
    category: str
    message: str
    hint: str
    partial: dict[str, object]


class ErrorResponse(BaseModel):
    error: ErrorDetail
