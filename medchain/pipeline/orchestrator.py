import threading
from dataclasses import replace
from pathlib import PurePath

from medchain.content.canonicalizer import Canonicalizer
from medchain.content.hasher import fingerprint, is_fingerprint, verify_fingerprint
from medchain.crypto.envelope import CipherEnvelope, decrypt, encrypt
from medchain.database.repositories.ingestion_repository import IngestionRepository
from medchain.extraction.factory import DocumentExtractor
from medchain.ledger.base import BaseLedgerClient
from medchain.ledger.principal import normalize_principal
from medchain.logging.logger import Log
from medchain.pipeline.context import PipelineContext
from medchain.pipeline.exceptions import (
    ContentNotFound,
    ExtractionError,
    IngestionCancelled,
    InputError,
    IntegrityError,
    LedgerError,
    PermissionDenied,
    PersistenceError,
    PipelineError,
    ResumeConflict,
)
from medchain.pipeline.models import IngestionRecord, IngestionStatus, RetrievedDocument
from medchain.storage.base import BaseContentStore


class UploadOrchestrator:
    """Sequences one ingestion end to end and owns its failure policy.

    Pipeline: validate -> extract -> canonicalize -> hash -> encrypt -> store
    -> permission check -> anchor -> persist.

    Nothing is persisted for failures before the anchor call. An anchor
    failure persists the record as failed with its CID so resume() can
    re-anchor the stored envelope without storing it again.
    """

    def __init__(
        self,
        *,
        extractor: DocumentExtractor,
        store: BaseContentStore,
        ledger: BaseLedgerClient,
        repository: IngestionRepository,
        canonicalizer: Canonicalizer,
        encryption_secret: bytes,
        max_upload_bytes: int,
    ) -> None:
        self._extractor = extractor
        self._store = store
        self._ledger = ledger
        self._repository = repository
        self._canonicalizer = canonicalizer
        self._secret = encryption_secret
        self._max_upload_bytes = max_upload_bytes

    def ingest_document(
        self,
        data: bytes,
        filename: str,
        subject: str | None,
        cancel: threading.Event | None = None,
    ) -> IngestionRecord:
        """Validate an uploaded file, extract its text and ingest it.

        Raises:
            InputError: for a bad subject, extension or size; nothing is called.
            ExtractionError: if the document yields no text.
        """
        principal = normalize_principal(subject)
        extension = PurePath(filename or "").suffix.lower()
        if extension not in self._extractor.supported_extensions:
            raise InputError(
                f"Unsupported file type '{extension or filename}'. "
                f"Supported: {sorted(self._extractor.supported_extensions)}"
            )
        if not data:
            raise InputError("Uploaded file is empty")
        if len(data) > self._max_upload_bytes:
            raise InputError(
                f"File is {len(data)} bytes; the limit is {self._max_upload_bytes} bytes"
            )

        self._check_cancel(cancel, None)
        raw_text = self._extractor.extract(data, extension)
        if not raw_text.strip():
            raise ExtractionError(f"No extractable text in '{filename}'")
        Log.info(f"Extracted {len(raw_text)} chars", document=filename)

        return self.ingest(raw_text, principal, filename, cancel)

    def ingest(
        self,
        raw_text: str,
        subject: str,
        filename: str,
        cancel: threading.Event | None = None,
    ) -> IngestionRecord:
        """Run the pipeline on already extracted text."""
        record = IngestionRecord(subject=normalize_principal(subject), filename=filename)
        Log.info("Ingestion started", ingestion_id=record.id, subject=record.subject)

        # Step 1: canonicalize, fingerprint and encrypt (local, all-or-nothing)
        self._check_cancel(cancel, record)
        canonical_text = self._canonicalizer.canonicalize(raw_text)
        record = replace(record, fingerprint=fingerprint(canonical_text))
        envelope = encrypt(canonical_text, self._secret)

        # Step 2: store the envelope
        self._check_cancel(cancel, record)
        try:
            cid = self._store.put(envelope.to_bytes())
        except PipelineError as exc:
            raise self._abandon(record, exc)
        record = record.advance(IngestionStatus.STORED, cid=cid)
        Log.info("Envelope stored", ingestion_id=record.id, cid=cid)

        # Step 3: advisory permission check; the contract enforces it again
        self._check_cancel(cancel, record)
        try:
            self._require_permission()
        except PipelineError as exc:
            raise self._abandon(record, exc)

        # Step 4: anchor; cancellation is no longer honoured from here on
        try:
            receipt = self._ledger.anchor(record.subject, record.fingerprint or "", cid)
        except (LedgerError, PermissionDenied) as exc:
            raise self._persist_anchor_failure(record, exc)
        record = record.advance(
            IngestionStatus.ANCHORED,
            tx_ref=receipt.tx_ref,
            block_ref=receipt.block_ref,
        )
        Log.info(
            "Fingerprint anchored",
            ingestion_id=record.id,
            fingerprint=record.fingerprint,
            tx_ref=receipt.tx_ref,
            block_ref=receipt.block_ref,
        )

        # Step 5: persist the anchored record
        try:
            self._repository.save(record)
        except PersistenceError as exc:
            exc.partial.update(record.progress())
            Log.error(
                f"Anchored ingestion could not be persisted: {exc}",
                ingestion_id=record.id,
                tx_ref=record.tx_ref,
            )
            raise
        return record

    def resume(self, ingestion_id: str) -> IngestionRecord:
        """Re-anchor a failed ingestion from its stored CID without storing again.

        Raises:
            IngestionNotFound: if the id is unknown.
            ResumeConflict: if the record is not resumable or another process
                claimed it first.
            PermissionDenied, LedgerError: if anchoring fails again; the record
                stays failed with the new error message.
        """
        record = self._repository.find_by_id(ingestion_id)
        if record.status != IngestionStatus.FAILED or not record.cid or not record.fingerprint:
            raise ResumeConflict(
                f"Ingestion {ingestion_id} is {record.status} and cannot be resumed",
                partial=record.progress(),
            )
        if not self._repository.claim_for_resume(record.id, record.resume_attempts):
            raise ResumeConflict(
                f"Ingestion {ingestion_id} was claimed by another process",
                partial=record.progress(),
            )
        record = replace(record, resume_attempts=record.resume_attempts + 1)
        Log.info(
            f"Resuming ingestion (attempt {record.resume_attempts})",
            ingestion_id=record.id,
            cid=record.cid,
        )

        try:
            self._require_permission()
            receipt = self._ledger.anchor(record.subject, record.fingerprint, record.cid)
        except (LedgerError, PermissionDenied) as exc:
            exc.partial.update(record.progress())
            try:
                self._repository.record_failure(record.id, str(exc))
                exc.partial["persisted"] = True
            except PersistenceError as persist_exc:
                exc.partial["persisted"] = False
                Log.error(
                    f"Resume failure could not be recorded: {persist_exc}",
                    ingestion_id=record.id,
                )
            Log.error(f"Resume failed: {exc}", ingestion_id=record.id)
            raise

        anchored = record.advance(
            IngestionStatus.ANCHORED,
            tx_ref=receipt.tx_ref,
            block_ref=receipt.block_ref,
            error_message=None,
        )
        if not self._repository.mark_anchored(record.id, receipt.tx_ref, receipt.block_ref):
            Log.error(
                "Resumed anchor confirmed but record is no longer failed",
                ingestion_id=record.id,
                tx_ref=receipt.tx_ref,
            )
            raise ResumeConflict(
                f"Ingestion {ingestion_id} changed state while resuming",
                partial=anchored.progress(),
            )
        Log.info("Resumed ingestion anchored", ingestion_id=record.id, tx_ref=receipt.tx_ref)
        return anchored

    def retrieve(self, ingestion_id: str) -> RetrievedDocument:
        """Fetch, decrypt and verify the stored content of an ingestion.

        Raises:
            ContentNotFound: if the record has no CID or the store lost it.
            IntegrityError: if decryption or fingerprint verification fails.
        """
        record = self._repository.find_by_id(ingestion_id)
        if not record.cid:
            raise ContentNotFound(
                f"Ingestion {ingestion_id} has no stored content",
                partial=record.progress(),
            )
        envelope = CipherEnvelope.from_bytes(self._store.get(record.cid))
        canonical_text = decrypt(envelope, self._secret)
        if record.fingerprint and not verify_fingerprint(canonical_text, record.fingerprint):
            raise IntegrityError(
                f"Decrypted content of {ingestion_id} does not match its fingerprint",
                partial=record.progress(),
            )
        Log.info("Stored content verified", ingestion_id=record.id, cid=record.cid)
        return RetrievedDocument(record=record, canonical_text=canonical_text)

    def find(self, ingestion_id: str) -> IngestionRecord:
        return self._repository.find_by_id(ingestion_id)

    def history_for_subject(self, subject: str) -> list[IngestionRecord]:
        return self._repository.find_by_subject(normalize_principal(subject))

    def history_for_fingerprint(self, value: str) -> list[IngestionRecord]:
        candidate = value.strip().lower()
        if not is_fingerprint(candidate):
            raise InputError(f"'{value}' is not a 0x-prefixed SHA-256 fingerprint")
        return self._repository.find_by_fingerprint(candidate)

    def _require_permission(self) -> None:
        uploader = self._ledger.uploader
        if not self._ledger.has_permission(uploader):
            raise PermissionDenied(
                f"Signing account {uploader} lacks the upload role",
                hint=f"Grant UPLOADER_ROLE to {uploader} on the ReportValidator contract.",
            )

    def _check_cancel(
        self, cancel: threading.Event | None, record: IngestionRecord | None
    ) -> None:
        if cancel is None or not cancel.is_set():
            return
        if record is None:
            raise IngestionCancelled("Ingestion cancelled before extraction")
        raise self._abandon(
            record, IngestionCancelled(f"Ingestion cancelled while {record.status}")
        )

    def _abandon(self, record: IngestionRecord, exc: PipelineError) -> PipelineError:
        failed = record.advance(IngestionStatus.FAILED, error_message=str(exc))
        exc.partial.update(failed.progress())
        Log.warning(
            f"Ingestion abandoned before anchoring: {exc}",
            ingestion_id=failed.id,
            cid=failed.cid,
        )
        return exc

    def _persist_anchor_failure(
        self, record: IngestionRecord, exc: PipelineError
    ) -> PipelineError:
        failed = record.advance(IngestionStatus.FAILED, error_message=str(exc))
        exc.partial.update(failed.progress())
        try:
            self._repository.save(failed)
            exc.partial["persisted"] = True
        except PersistenceError as persist_exc:
            exc.partial["persisted"] = False
            Log.error(
                f"Failed ingestion could not be persisted: {persist_exc}",
                ingestion_id=failed.id,
                cid=failed.cid,
            )
        Log.error(f"Anchoring failed: {exc}", ingestion_id=failed.id, cid=failed.cid)
        return exc


def build_orchestrator(context: PipelineContext) -> UploadOrchestrator:
    """Build an UploadOrchestrator from the shared pipeline context."""
    settings = context.settings
    return UploadOrchestrator(
        extractor=context.extractor,
        store=context.store,
        ledger=context.ledger,
        repository=context.repository,
        canonicalizer=Canonicalizer(lowercase=settings.canonical_lowercase),
        encryption_secret=settings.encryption_secret.encode("utf-8"),
        max_upload_bytes=settings.max_upload_bytes,
    )
