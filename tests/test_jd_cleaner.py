from __future__ import annotations

import pytest
from langchain_core.runnables import RunnableLambda
from langchain_openai import ChatOpenAI

from job_importer.agents import jd_cleaner
from job_importer.agents.jd_cleaner import LLMJobDescriptionCleaner, format_cleaned_job_description
from job_importer.errors import CleanupFailedError
from job_importer.models import StructuredJobDescription

from conftest import CLEAN_POSTING, structured_job


def _payload(**overrides):
    data = {
        "title": "  Senior Software Engineer ",
        "company": "Acme Corp",
        "location": None,
        "employmentType": "Full-time",
        "salary": "$120k - $150k",
        "description": "Build the services behind the Acme customer platform.",
        "responsibilities": ["  Build backend services ", "", "Review code"],
        "requirements": ["5+ years of Python"],
        "niceToHave": [],
        "benefits": ["Health insurance", "   "],
    }
    data.update(overrides)
    return data


class FakeLLM:
    """Chat model stand-in whose structured-output runnable returns a canned value."""

    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.schemas = []
        self.prompts = []

    def with_structured_output(self, schema, **kwargs):
        self.schemas.append(schema)

        def run(prompt_value):
            self.prompts.append(prompt_value.to_messages()[-1].content)
            if self.error is not None:
                raise self.error
            return self.output

        return RunnableLambda(run)


def _cleaner(llm: FakeLLM, **kwargs) -> LLMJobDescriptionCleaner:
    timeouts = []

    def factory(timeout=None):
        timeouts.append(timeout)
        return llm

    cleaner = LLMJobDescriptionCleaner(llm_factory=factory, **kwargs)
    cleaner.factory_timeouts = timeouts
    return cleaner


def test_clean_returns_validated_structure() -> None:
    llm = FakeLLM(output=_payload())
    cleaner = _cleaner(llm)

    job = cleaner.clean(CLEAN_POSTING, timeout=42)

    assert isinstance(job, StructuredJobDescription)
    assert job.title == "Senior Software Engineer"
    assert job.employment_type == "Full-time"
    assert job.location is None
    assert job.responsibilities == ["Build backend services", "Review code"]
    assert job.benefits == ["Health insurance"]
    assert llm.schemas == [StructuredJobDescription]
    assert cleaner.factory_timeouts == [42]
    assert "We are looking for a talented software engineer" in llm.prompts[0]


def test_clean_accepts_model_instances() -> None:
    job = _cleaner(FakeLLM(output=structured_job())).clean(CLEAN_POSTING)
    assert job.company == "Acme Corp"


def test_clean_truncates_long_input() -> None:
    llm = FakeLLM(output=_payload())
    _cleaner(llm, max_chars=50).clean("A" * 40 + "B" * 100)
    prompt = llm.prompts[0]
    assert "A" * 40 + "B" * 10 in prompt
    assert "B" * 11 not in prompt


def test_empty_input_fails_without_calling_the_model() -> None:
    llm = FakeLLM(output=_payload())
    cleaner = _cleaner(llm)
    with pytest.raises(CleanupFailedError):
        cleaner.clean("   ")
    assert cleaner.factory_timeouts == []
    assert llm.prompts == []


def test_no_structured_output_fails_closed() -> None:
    with pytest.raises(CleanupFailedError) as excinfo:
        _cleaner(FakeLLM(output=None)).clean(CLEAN_POSTING)
    assert excinfo.value.detail == "model returned no structured output"


@pytest.mark.parametrize(
    "payload",
    [
        {"title": "Engineer"},
        _payload(title="   "),
        _payload(description=""),
        _payload(requirements="not a list"),
        {k: v for k, v in _payload().items() if k != "salary"},
    ],
)
def test_schema_violations_fail_closed(payload) -> None:
    with pytest.raises(CleanupFailedError) as excinfo:
        _cleaner(FakeLLM(output=payload)).clean(CLEAN_POSTING)
    assert excinfo.value.detail.startswith("schema validation failed")
    assert excinfo.value.status_code == 500


def test_model_errors_become_cleanup_failures() -> None:
    with pytest.raises(CleanupFailedError) as excinfo:
        _cleaner(FakeLLM(error=TimeoutError("read timed out"))).clean(CLEAN_POSTING)
    assert excinfo.value.detail == "TimeoutError: read timed out"


def test_missing_credentials_become_cleanup_failures(monkeypatch) -> None:
    monkeypatch.setattr(jd_cleaner.settings, "llm_provider", "openai")
    monkeypatch.setattr(jd_cleaner.settings, "openai_api_key", None)
    with pytest.raises(CleanupFailedError) as excinfo:
        LLMJobDescriptionCleaner().clean(CLEAN_POSTING)
    assert "OPENAI_API_KEY" in excinfo.value.detail


def test_openai_model_is_built_without_retries(monkeypatch) -> None:
    monkeypatch.setattr(jd_cleaner.settings, "llm_provider", "openai")
    monkeypatch.setattr(jd_cleaner.settings, "openai_api_key", "sk-test")
    llm = jd_cleaner._llm(timeout=7)
    assert isinstance(llm, ChatOpenAI)
    assert llm.max_retries == 0
    assert llm.temperature == 0.0


def test_structured_output_schema_uses_camel_case_keys() -> None:
    schema = StructuredJobDescription.model_json_schema(by_alias=True)
    assert {"employmentType", "niceToHave"} <= set(schema["properties"])
    assert "niceToHave" in schema["required"]


# ---------------- formatting ----------------


def test_format_renders_markdown_sections() -> None:
    text = format_cleaned_job_description(structured_job(salary="$120k", nice_to_have=[]))

    assert text.startswith("# Senior Software Engineer\n\n**Company:** Acme Corp\n**Location:** Remote")
    assert "**Type:** Full-time" in text
    assert "**Salary:** $120k" in text
    assert "## Overview\nAcme is hiring" in text
    assert "## Responsibilities\n- Build backend services\n- Review code" in text
    assert "## Requirements\n- 5+ years of Python" in text
    assert "## Benefits\n- Health insurance" in text
    assert "Nice to Have" not in text


def test_format_skips_empty_metadata() -> None:
    job = structured_job(company=None, location=None, employment_type=None, salary=None)
    text = format_cleaned_job_description(job)
    assert "**" not in text
    assert text.split("\n\n")[1].startswith("## Overview")
