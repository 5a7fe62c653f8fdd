"""Application factory for the job URL importer FastAPI backend."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from job_importer.log import get_logger

from .routes import api_router

log = get_logger(__name__)


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    # 422 is reserved for rejected page content
    log.info("Malformed request body on %s: %d error(s)", request.url.path, len(exc.errors()))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request body"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    app = FastAPI(
        title="Job URL Importer API",
        description="Import job postings by URL with SSRF-safe fetching and template-garbage detection.",
        version="0.1.0",
    )

    app.add_exception_handler(RequestValidationError, _invalid_body)
    app.include_router(api_router, prefix="/api")

    return app
