"""Service layer that runs the scrape pipeline and shapes its outcome for HTTP."""

from __future__ import annotations

import time
from typing import Any, Dict, Tuple

from job_importer.agents.jd_cleaner import format_cleaned_job_description
from job_importer.configuration import settings
from job_importer.models import Accepted, AcceptedRaw, PipelineOutcome, Rejected
from job_importer.pipeline import ScrapePipeline

from ..schemas.scrape import GarbageContentResponse, ScrapeResponse

_PIPELINE = ScrapePipeline()


def get_pipeline() -> ScrapePipeline:
    return _PIPELINE


def run_scrape(pipeline: ScrapePipeline, url: str, clean: bool) -> PipelineOutcome:
    """Run one import with the configured whole-request deadline."""
    deadline = time.monotonic() + settings.scrape_deadline_seconds
    return pipeline.run(url, clean=clean, deadline=deadline)


def _body(model: ScrapeResponse) -> Dict[str, Any]:
    # Optional markers are omitted rather than sent as null
    data = model.model_dump(by_alias=True)
    for key in ("structured", "cleanupFailed"):
        if data.get(key) is None:
            data.pop(key, None)
    return data


def outcome_to_response(outcome: PipelineOutcome) -> Tuple[int, Dict[str, Any]]:
    """Map a terminal outcome to (status code, JSON body)."""
    if isinstance(outcome, Rejected):
        body = GarbageContentResponse(
            error=outcome.user_message,
            confidence=outcome.classification.confidence,
            reasons=list(outcome.reasons),
        )
        return 422, body.model_dump(by_alias=True)

    if isinstance(outcome, Accepted):
        cleaned, raw = outcome.structured, outcome.raw
        body = ScrapeResponse(
            title=cleaned.title or raw.title,
            company=cleaned.company or raw.company,
            location=cleaned.location or raw.location,
            description=format_cleaned_job_description(cleaned),
            structured=cleaned,
        )
        return 200, _body(body)

    if isinstance(outcome, AcceptedRaw):
        raw = outcome.raw
        body = ScrapeResponse(
            title=raw.title,
            company=raw.company,
            location=raw.location,
            description=raw.description,
            cleanup_failed=True if outcome.cleanup_failed else None,
        )
        return 200, _body(body)

    raise TypeError(f"Unknown pipeline outcome: {type(outcome).__name__}")
