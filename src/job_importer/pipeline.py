"""
Scrape pipeline
Validating -> Fetching -> Classifying (raw) -> Cleaning up -> Classifying (cleaned) -> Done

Strictly linear with no retries. Guard and fetch failures raise ScrapeError subclasses;
every other terminal state is returned as a PipelineOutcome. The cleanup adapter runs at
most once, and only after the raw text passed classification.
"""
from __future__ import annotations

import dataclasses
import time
from typing import Callable, Optional

from job_importer.agents.garbage_detector import (
    GarbageClassifier,
    create_garbage_content_error_message,
)
from job_importer.agents.jd_cleaner import CleanupAdapter, LLMJobDescriptionCleaner
from job_importer.agents.jd_fetcher import fetch_raw_content
from job_importer.agents.url_guard import GuardedURL, guard_url
from job_importer.configuration import settings
from job_importer.errors import CleanupFailedError, FetchFailedError
from job_importer.log import get_logger, redact_url
from job_importer.models import (
    Accepted,
    AcceptedRaw,
    PipelineOutcome,
    RawContent,
    Rejected,
    RejectionStage,
)

log = get_logger(__name__)

Guard = Callable[[str], GuardedURL]
Fetcher = Callable[..., RawContent]


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return deadline - time.monotonic()


class ScrapePipeline:
    def __init__(
        self,
        guard: Guard = guard_url,
        fetcher: Fetcher = fetch_raw_content,
        classifier: Optional[GarbageClassifier] = None,
        cleaner: Optional[CleanupAdapter] = None,
        cleaned_classifier: Optional[GarbageClassifier] = None,
    ):
        self.guard = guard
        self.fetcher = fetcher
        self.classifier = classifier or GarbageClassifier()
        # Cleaned summaries are scored on length but never rejected for it alone
        self.cleaned_classifier = cleaned_classifier or GarbageClassifier(
            dataclasses.replace(self.classifier.config, short_text_decisive=False)
        )
        self.cleaner = cleaner if cleaner is not None else LLMJobDescriptionCleaner()

    def run(self, url: str, clean: bool = True, deadline: Optional[float] = None) -> PipelineOutcome:
        # Validating: raises InvalidURLError / SSRFBlockedError
        self.guard(url)

        # Fetching
        left = _remaining(deadline)
        if left is not None and left <= 0:
            raise FetchFailedError(detail="request deadline exceeded before fetch")
        timeout = settings.fetch_timeout_seconds if left is None else min(settings.fetch_timeout_seconds, left)
        raw = self.fetcher(url, timeout=timeout)

        # Classifying (raw)
        verdict = self.classifier.classify(raw.description, url)
        if verdict.is_garbage:
            log.info(
                "Detected garbage content from %s (confidence=%s, reasons=%s)",
                redact_url(url),
                verdict.confidence,
                list(verdict.reasons),
            )
            return Rejected(
                classification=verdict,
                user_message=create_garbage_content_error_message(verdict, url),
                stage=RejectionStage.RAW,
            )

        if not clean:
            return AcceptedRaw(raw=raw, cleanup_failed=False)

        # Cleaning up
        try:
            left = _remaining(deadline)
            if left is not None and left <= 0:
                raise CleanupFailedError(detail="request deadline exceeded before cleanup")
            cleanup_timeout = (
                settings.cleanup_timeout_seconds if left is None else min(settings.cleanup_timeout_seconds, left)
            )
            structured = self.cleaner.clean(raw.description, timeout=cleanup_timeout)
        except CleanupFailedError as exc:
            log.warning("Cleanup failed for %s, returning raw content (%s)", redact_url(url), exc.detail)
            return AcceptedRaw(raw=raw, cleanup_failed=True)
        except Exception as exc:
            log.warning(
                "Cleanup adapter raised %s for %s, returning raw content",
                type(exc).__name__,
                redact_url(url),
            )
            return AcceptedRaw(raw=raw, cleanup_failed=True)

        # Classifying (cleaned)
        recheck = self.cleaned_classifier.classify(f"{structured.title} {structured.description}", url)
        if recheck.is_garbage and recheck.confidence == "high":
            log.warning("Cleanup produced garbage content for %s (confidence=%s)", redact_url(url), recheck.confidence)
            return Rejected(
                classification=recheck,
                user_message=create_garbage_content_error_message(recheck, url),
                stage=RejectionStage.CLEANED,
            )
        if recheck.is_garbage:
            log.info(
                "Cleanup output for %s looks unreliable (confidence=%s), returning raw content",
                redact_url(url),
                recheck.confidence,
            )
            return AcceptedRaw(raw=raw, cleanup_failed=True)

        return Accepted(structured=structured, raw=raw)
