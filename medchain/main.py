import signal
from types import FrameType

import uvicorn

from medchain.api.app import create_app
from medchain.config.settings import Settings
from medchain.logging.logger import Log
from medchain.pipeline.context import build_pipeline_context
from medchain.pipeline.orchestrator import build_orchestrator
from medchain.worker.resume_runner import ResumeRunner
from medchain.worker.worker import Worker


def _interrupt_on_sigterm(_signum: int, _frame: FrameType | None) -> None:
    raise KeyboardInterrupt


def main() -> None:
    """Resume worker entry point: settings -> pipeline context -> poll loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    signal.signal(signal.SIGTERM, _interrupt_on_sigterm)

    context = build_pipeline_context(settings)
    try:
        orchestrator = build_orchestrator(context)
        worker = Worker(context.repository, ResumeRunner(orchestrator), settings)
        worker.run()
    finally:
        context.close()


def serve() -> None:
    """Upload API entry point. uvicorn handles SIGINT/SIGTERM and runs the lifespan shutdown."""
    settings = Settings()
    Log.configure(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
