from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medchain.api.errors import register_error_handlers
from medchain.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from medchain.api.routes import router
from medchain.config.settings import Settings
from medchain.logging.logger import Log
from medchain.pipeline.context import build_pipeline_context
from medchain.pipeline.orchestrator import UploadOrchestrator, build_orchestrator


def create_app(
    settings: Settings | None = None,
    orchestrator: UploadOrchestrator | None = None,
) -> FastAPI:
    """Build the upload API.

    With no orchestrator injected, the lifespan builds the pipeline context
    from settings at startup and closes it on shutdown.
    """
    resolved = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.max_upload_bytes = resolved.max_upload_bytes
        app.state.disconnect_poll_seconds = resolved.disconnect_poll_seconds
        if orchestrator is not None:
            app.state.orchestrator = orchestrator
            yield
            return

        context = build_pipeline_context(resolved)
        app.state.orchestrator = build_orchestrator(context)
        Log.info("Upload API started")
        try:
            yield
        finally:
            context.close()
            Log.info("Upload API stopped")

    app = FastAPI(title="MedChain ingestion", lifespan=lifespan)
    app.include_router(router)
    register_error_handlers(app)

    # Last added runs first: CORS answers preflights before the limiter counts them.
    if resolved.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=resolved.rate_limit_requests,
            window_seconds=resolved.rate_limit_window_seconds,
        )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=resolved.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    return app
