from medchain.logging.logger import Log
from medchain.pipeline.exceptions import PipelineError, ResumeConflict
from medchain.pipeline.models import IngestionRecord
from medchain.pipeline.orchestrator import UploadOrchestrator


class ResumeRunner:
    """Resume one failed ingestion and log the outcome without raising."""

    def __init__(self, orchestrator: UploadOrchestrator) -> None:
        self._orchestrator = orchestrator

    def run(self, record: IngestionRecord) -> bool:
        """Return True if the ingestion reached anchored."""
        Log.info(
            f"Resuming ingestion (attempt {record.resume_attempts + 1})",
            ingestion_id=record.id,
        )
        try:
            anchored = self._orchestrator.resume(record.id)
        except ResumeConflict as exc:
            Log.info(f"Skipping ingestion: {exc}", ingestion_id=record.id)
            return False
        except PipelineError as exc:
            Log.error(
                f"Resume failed [{exc.category}]: {exc}",
                ingestion_id=record.id,
                hint=exc.hint,
            )
            return False
        Log.info("Ingestion resumed", ingestion_id=anchored.id, tx_ref=anchored.tx_ref)
        return True
