import time

from medchain.config.settings import Settings
from medchain.database.repositories.ingestion_repository import IngestionRepository
from medchain.logging.logger import Log
from medchain.pipeline.exceptions import PersistenceError
from medchain.pipeline.models import IngestionRecord
from medchain.worker.resume_runner import ResumeRunner


class Worker:
    """Poll loop: find resumable ingestions -> dispatch -> sleep when idle."""

    def __init__(
        self,
        repository: IngestionRepository,
        resume_runner: ResumeRunner,
        settings: Settings,
    ) -> None:
        self._repository = repository
        self._resume_runner = resume_runner
        self._settings = settings

    def run(self, max_records: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_records is set, stop after dispatching that many records (for testing).
        """
        Log.info("Resume worker started, polling for failed ingestions")
        dispatched = 0
        try:
            while max_records is None or dispatched < max_records:
                batch = self._find_batch()
                if not batch:
                    Log.debug("No resumable ingestions, sleeping")
                    time.sleep(self._settings.resume_poll_interval_seconds)
                    continue
                resumed_any = False
                for record in batch:
                    resumed_any = self._resume_runner.run(record) or resumed_any
                    dispatched += 1
                    if max_records is not None and dispatched >= max_records:
                        break
                if not resumed_any:
                    time.sleep(self._settings.resume_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Resume worker shutting down gracefully")

    def _find_batch(self) -> list[IngestionRecord]:
        """Fetch the next batch of resumable records. Gracefully handle DB errors."""
        try:
            return self._repository.find_resumable(self._settings.max_resume_attempts)
        except PersistenceError as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return []
