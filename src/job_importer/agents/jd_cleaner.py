"""
JD Cleaner (cleanup adapter)
- Input: raw page text extracted by the fetcher
- Output: StructuredJobDescription, schema-validated

The LLM is asked for strict structured output; anything that does not validate raises
CleanupFailedError, the single failure mode callers have to handle. There is no partial
result and no silent defaulting of missing fields.
"""
from __future__ import annotations

from typing import Any, List, Optional, Protocol

from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI
from pydantic import ValidationError

from job_importer.configuration import settings
from job_importer.errors import CleanupFailedError
from job_importer.log import get_logger
from job_importer.models import StructuredJobDescription

log = get_logger(__name__)


class CleanupAdapter(Protocol):
    def clean(self, raw_text: str, timeout: Optional[float] = None) -> StructuredJobDescription:
        ...


# ---------------- LLM ----------------

def _llm(timeout: Optional[float] = None):
    timeout = settings.cleanup_timeout_seconds if timeout is None else timeout
    if settings.llm_provider == "google":
        if not settings.google_api_key:
            raise RuntimeError("Missing GOOGLE_API_KEY (or GEMINI_API_KEY).")
        return ChatGoogleGenerativeAI(
            model=settings.llm_model,
            api_key=settings.google_api_key,
            temperature=0.0,
            timeout=timeout,
            max_retries=0,
        )

    if not settings.openai_api_key:
        raise RuntimeError("Missing OPENAI_API_KEY.")
    return ChatOpenAI(
        model=settings.llm_model,
        api_key=settings.openai_api_key,
        temperature=0.0,
        timeout=timeout,
        max_retries=0,
        max_tokens=4000,
    )

# ---------------- Prompts ----------------

_SYSTEM = (
    "You are a job description parser. Your task is to extract and format job posting "
    "information from raw web page content.\n"
    "Extract ONLY the job-related content, ignoring:\n"
    "- Website navigation and menus\n"
    "- Footer content\n"
    "- Related job listings\n"
    "- Advertisements\n"
    "- Cookie notices\n"
    "- Company boilerplate (unless it's part of the actual job description)\n"
    "Format the job description cleanly, preserving the important details while removing "
    "HTML artifacts and duplicate content. Never copy template placeholders such as {{{{...}}}} "
    "or [FIRSTNAME] into your answer."
)

_TEMPLATE = (
    "Parse the following raw web page content and extract the job description information.\n\n"
    "Raw Content:\n---\n{content}\n---\n\n"
    "Return these fields:\n"
    "- title: the job title\n"
    "- company, location, employmentType, salary: string or null when not mentioned\n"
    "- description: a clean, well-formatted job description paragraph\n"
    "- responsibilities, requirements, niceToHave, benefits: arrays of short strings "
    "(extract from numbered/bulleted lists; empty array when absent)"
)

_PROMPT = ChatPromptTemplate.from_messages([
    ("system", _SYSTEM),
    ("human", _TEMPLATE),
])

# ---------------- Adapter ----------------


def _validate(result: Any) -> StructuredJobDescription:
    if result is None:
        raise CleanupFailedError(detail="model returned no structured output")
    if isinstance(result, StructuredJobDescription):
        # Re-validate: structured-output parsers may build models without running validators
        result = result.model_dump()
    try:
        return StructuredJobDescription.model_validate(result)
    except ValidationError as exc:
        raise CleanupFailedError(detail=f"schema validation failed: {exc.error_count()} error(s)") from exc


def _structured(llm):
    if isinstance(llm, ChatOpenAI):
        return llm.with_structured_output(StructuredJobDescription, method="function_calling")
    return llm.with_structured_output(StructuredJobDescription)


def _strip_list(items: List[str]) -> List[str]:
    return [s.strip() for s in items if s and s.strip()]


class LLMJobDescriptionCleaner:
    """Cleanup adapter backed by a LangChain chat model with structured output."""

    def __init__(self, llm_factory=_llm, max_chars: Optional[int] = None):
        self._llm_factory = llm_factory
        self.max_chars = settings.cleanup_max_chars if max_chars is None else max_chars

    def clean(self, raw_text: str, timeout: Optional[float] = None) -> StructuredJobDescription:
        content = (raw_text or "").strip()
        if not content:
            raise CleanupFailedError(detail="no content to clean")
        content = content[: self.max_chars]

        try:
            llm = self._llm_factory(timeout)
            chain = _PROMPT | _structured(llm)
            result = chain.invoke({"content": content})
        except CleanupFailedError:
            raise
        except Exception as exc:
            raise CleanupFailedError(detail=f"{type(exc).__name__}: {exc}") from exc

        job = _validate(result)
        log.debug(
            "Cleanup produced %d responsibilities, %d requirements",
            len(job.responsibilities),
            len(job.requirements),
        )
        return job.model_copy(update={
            "responsibilities": _strip_list(job.responsibilities),
            "requirements": _strip_list(job.requirements),
            "nice_to_have": _strip_list(job.nice_to_have),
            "benefits": _strip_list(job.benefits),
        })


def format_cleaned_job_description(job: StructuredJobDescription) -> str:
    """Render the structured posting as Markdown."""
    sections: List[str] = [f"# {job.title}"]

    metadata = []
    if job.company:
        metadata.append(f"**Company:** {job.company}")
    if job.location:
        metadata.append(f"**Location:** {job.location}")
    if job.employment_type:
        metadata.append(f"**Type:** {job.employment_type}")
    if job.salary:
        metadata.append(f"**Salary:** {job.salary}")
    if metadata:
        sections.append("\n".join(metadata))

    if job.description:
        sections.append(f"## Overview\n{job.description}")

    for heading, items in (
        ("Responsibilities", job.responsibilities),
        ("Requirements", job.requirements),
        ("Nice to Have", job.nice_to_have),
        ("Benefits", job.benefits),
    ):
        if items:
            sections.append(f"## {heading}\n" + "\n".join(f"- {item}" for item in items))

    return "\n\n".join(sections)
