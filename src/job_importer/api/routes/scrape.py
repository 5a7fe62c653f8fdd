"""Job posting import-by-URL endpoint."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from job_importer.errors import ScrapeError, SSRFBlockedError
from job_importer.log import get_logger, redact_url, sanitize_for_log
from job_importer.pipeline import ScrapePipeline

from ..schemas.scrape import ErrorResponse, GarbageContentResponse, ScrapeRequest, ScrapeResponse
from ..services.scrape_service import get_pipeline, outcome_to_response, run_scrape

log = get_logger(__name__)

router = APIRouter(prefix="/scrape", tags=["scrape"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post(
    "",
    response_model=ScrapeResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": GarbageContentResponse},
        500: {"model": ErrorResponse},
    },
    summary="Import a job posting from a public URL",
)
def scrape(request: ScrapeRequest, pipeline: ScrapePipeline = Depends(get_pipeline)) -> JSONResponse:
    """Fetch the page safely, reject template garbage, and optionally clean it up with the LLM."""
    if not request.url or not request.url.strip():
        return _error(status.HTTP_400_BAD_REQUEST, "URL is required")

    try:
        outcome = run_scrape(pipeline, request.url, request.clean)
    except SSRFBlockedError as exc:
        log.warning("SSRF attempt blocked (url=[redacted])")
        log.debug("SSRF block detail for host %s: %s", redact_url(request.url), exc.detail)
        return _error(exc.status_code, exc.public_message)
    except ScrapeError as exc:
        if exc.status_code >= 500:
            log.error("Error scraping %s: %s", redact_url(request.url), exc.detail or exc.public_message)
        else:
            log.info("Rejected URL input (%s): %s", exc.kind.value, sanitize_for_log(exc.detail or exc.public_message, 120))
        return _error(exc.status_code, exc.public_message)
    except Exception:
        log.exception("Unexpected error scraping %s", redact_url(request.url))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to scrape URL")

    status_code, body = outcome_to_response(outcome)
    return JSONResponse(status_code=status_code, content=body)
