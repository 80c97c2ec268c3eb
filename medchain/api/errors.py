from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from medchain.logging.logger import Log
from medchain.pipeline.exceptions import InputError, PipelineError


def error_response(status_code: int, error: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error.to_dict()})


async def pipeline_error_handler(_request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        Log.error(f"Request failed [{exc.category}]: {exc}", partial=exc.partial)
    else:
        Log.warning(f"Request rejected [{exc.category}]: {exc}")
    return error_response(exc.status_code, exc)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
    Log.warning(f"Request validation failed on {request.url.path}: {fields}")
    return error_response(400, InputError(f"Invalid request fields: {fields}"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, return a generic internal error body."""
    Log.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}"
    )
    return error_response(
        500,
        PipelineError(
            "An unexpected error occurred.",
            hint="Retry later; if it persists, check the service logs.",
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
