from typing import ClassVar


class PipelineError(Exception):
    """Base exception for every failure the ingestion pipeline reports.

    Each subclass carries a stable category, an HTTP status for the upload
    endpoint and a remediation hint. ``partial`` holds whatever progress was
    made before the failure (ingestion id, fingerprint, cid, status) so callers
    can resume instead of starting over.
    """

    category: ClassVar[str] = "internal"
    status_code: ClassVar[int] = 500
    default_hint: ClassVar[str] = "Retry later or contact an operator."

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        partial: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint or self.default_hint
        self.partial: dict[str, object] = dict(partial or {})

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.category,
            "message": self.message,
            "hint": self.hint,
            "partial": self.partial,
        }


class InputError(PipelineError):
    """Raised for bad file type/size or a missing/invalid subject."""

    category = "input"
    status_code = 400
    default_hint = "Upload a .pdf or .docx under the size limit with a valid subject address."


class ExtractionError(PipelineError):
    """Raised when a document cannot be parsed into text."""

    category = "extraction"
    status_code = 422
    default_hint = "The document appears corrupt or has no text layer; re-export it and retry."


class StorageUnavailable(PipelineError):
    """Raised when the content-addressed store is unreachable after retries."""

    category = "storage"
    status_code = 503
    default_hint = "The content store is unreachable; retry the upload later."


class ContentNotFound(PipelineError):
    """Raised when the content-addressed store does not know a CID."""

    category = "not_found"
    status_code = 404
    default_hint = "Check the CID; stored content may not be pinned on this node."


class PermissionDenied(PipelineError):
    """Raised when the signing account lacks the ledger upload role."""

    category = "permission"
    status_code = 403
    default_hint = "Grant UPLOADER_ROLE on the ReportValidator contract to the signing account."


class LedgerError(PipelineError):
    """Raised when an anchor transaction reverts or the RPC call fails."""

    category = "ledger"
    status_code = 502
    default_hint = "Content is stored but not anchored; resume the ingestion once the ledger is healthy."


class IntegrityError(PipelineError):
    """Raised when decryption or fingerprint verification fails."""

    category = "integrity"
    status_code = 500
    default_hint = "Stored content failed verification; check the deployment secret or investigate tampering."


class PersistenceError(PipelineError):
    """Raised when the metadata store cannot be written or read."""

    category = "persistence"
    status_code = 500
    default_hint = "The metadata store is unavailable; anchored state is reported in 'partial'."


class IngestionCancelled(PipelineError):
    """Raised when the caller cancels before the anchor was submitted."""

    category = "cancelled"
    status_code = 400
    default_hint = "The ingestion was cancelled before anchoring; upload again if needed."


class IngestionNotFound(PipelineError):
    """Raised when no ingestion record exists for an id."""

    category = "not_found"
    status_code = 404
    default_hint = "Check the ingestion id."


class ResumeConflict(PipelineError):
    """Raised when an ingestion cannot be resumed or another process resumed it first."""

    category = "conflict"
    status_code = 409
    default_hint = "Only failed ingestions with stored content can be resumed; reload its status."
