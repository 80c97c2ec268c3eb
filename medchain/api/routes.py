import asyncio
import threading
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from medchain.api.schemas import ErrorResponse, IngestionResponse, VerificationResponse
from medchain.logging.logger import Log
from medchain.pipeline.exceptions import InputError
from medchain.pipeline.orchestrator import UploadOrchestrator

router = APIRouter()

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    403: {"model": ErrorResponse, "description": "Ledger permission missing"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Storage, ledger or metadata failure"},
}


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return request.app.state.orchestrator


def get_max_upload_bytes(request: Request) -> int:
    return request.app.state.max_upload_bytes


OrchestratorDep = Annotated[UploadOrchestrator, Depends(get_orchestrator)]


async def cancel_on_disconnect(
    request: Request,
    work: asyncio.Future[object],
    cancel: threading.Event,
    poll_seconds: float,
) -> None:
    """Poll the client connection while ``work`` runs; set ``cancel`` if it drops."""
    while not work.done():
        await asyncio.wait({work}, timeout=poll_seconds)
        if not work.done() and await request.is_disconnected():
            Log.warning("Client disconnected; cancelling ingestion")
            cancel.set()
            return


@router.get("/health", response_class=PlainTextResponse)
def health() -> str:
    return "ok"


@router.post("/upload", response_model=IngestionResponse, responses=_ERROR_RESPONSES)
async def upload(
    request: Request,
    orchestrator: OrchestratorDep,
    max_upload_bytes: Annotated[int, Depends(get_max_upload_bytes)],
    file: Annotated[UploadFile | None, File(description="PDF or DOCX medical report")] = None,
    subject: Annotated[str | None, Form(description="Subject account address")] = None,
) -> IngestionResponse:
    """Extract, fingerprint, encrypt, store and anchor one document.

    The pipeline runs on the thread pool; if the client disconnects before the
    anchor transaction is submitted the ingestion is cancelled.
    """
    if file is None or not file.filename:
        raise InputError("No file uploaded")
    # Read one byte past the limit so oversized uploads are rejected without buffering them.
    data = await file.read(max_upload_bytes + 1)
    Log.info(f"Upload received: {file.filename} ({len(data)} bytes)")

    cancel = threading.Event()
    work = asyncio.ensure_future(
        run_in_threadpool(orchestrator.ingest_document, data, file.filename, subject, cancel)
    )
    await cancel_on_disconnect(request, work, cancel, request.app.state.disconnect_poll_seconds)
    record = await work
    return IngestionResponse.from_record(record)


@router.get("/ingestions", response_model=list[IngestionResponse], responses=_ERROR_RESPONSES)
def list_ingestions(
    orchestrator: OrchestratorDep,
    subject: Annotated[str | None, Query()] = None,
    fingerprint: Annotated[str | None, Query()] = None,
) -> list[IngestionResponse]:
    """Audit history by subject or by fingerprint (exactly one filter)."""
    if (subject is None) == (fingerprint is None):
        raise InputError("Provide exactly one of 'subject' or 'fingerprint'")
    if subject is not None:
        records = orchestrator.history_for_subject(subject)
    else:
        records = orchestrator.history_for_fingerprint(fingerprint or "")
    return [IngestionResponse.from_record(record) for record in records]


@router.get("/ingestions/{ingestion_id}", response_model=IngestionResponse)
def get_ingestion(ingestion_id: str, orchestrator: OrchestratorDep) -> IngestionResponse:
    return IngestionResponse.from_record(orchestrator.find(ingestion_id))


@router.post(
    "/ingestions/{ingestion_id}/resume",
    response_model=IngestionResponse,
    responses=_ERROR_RESPONSES,
)
def resume_ingestion(ingestion_id: str, orchestrator: OrchestratorDep) -> IngestionResponse:
    """Re-anchor a failed ingestion from its stored CID."""
    return IngestionResponse.from_record(orchestrator.resume(ingestion_id))


@router.get("/ingestions/{ingestion_id}/verify", response_model=VerificationResponse)
def verify_ingestion(ingestion_id: str, orchestrator: OrchestratorDep) -> VerificationResponse:
    """Decrypt the stored envelope and recompute its fingerprint. Plaintext is not returned."""
    document = orchestrator.retrieve(ingestion_id)
    return VerificationResponse(
        id=document.record.id,
        fingerprint=document.record.fingerprint,
        cid=document.record.cid,
        verified=True,
    )
