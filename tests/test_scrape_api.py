from __future__ import annotations

import logging
from functools import partial

import pytest
from fastapi.testclient import TestClient

from job_importer.agents.jd_fetcher import fetch_raw_content
from job_importer.agents.url_guard import guard_url
from job_importer.api.app import create_app
from job_importer.api.services.scrape_service import get_pipeline
from job_importer.configuration import settings
from job_importer.errors import FetchFailedError
from job_importer.pipeline import ScrapePipeline

from conftest import (
    CLEAN_POSTING,
    TEMPLATE_GARBAGE,
    FakeCleaner,
    FakeResponse,
    FakeSession,
    raw_content,
    structured_job,
)

URL = "https://jobs.example.com/123"


def _fetcher(description: str = CLEAN_POSTING, error: Exception = None):
    def fetch(url, timeout=None):
        if error is not None:
            raise error
        return raw_content(description, url)

    return fetch


@pytest.fixture
def make_client(public_resolver):
    app = create_app()

    def build(fetcher=None, cleaner=None) -> TestClient:
        pipeline = ScrapePipeline(
            guard=partial(guard_url, resolver=public_resolver),
            fetcher=fetcher or _fetcher(),
            cleaner=cleaner or FakeCleaner(result=structured_job()),
        )
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()


def test_health_ping(make_client) -> None:
    resp = make_client().get("/api/health/ping")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ---------------- 200 ----------------


def test_cleaned_posting_returns_structure(make_client) -> None:
    resp = make_client().post("/api/scrape", json={"url": URL})

    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "Senior Software Engineer"
    assert body["company"] == "Acme Corp"
    assert body["location"] == "Remote"
    assert body["description"].startswith("# Senior Software Engineer")
    assert "cleanupFailed" not in body
    structured = body["structured"]
    assert structured["employmentType"] == "Full-time"
    assert structured["niceToHave"] == ["Kubernetes experience"]
    assert structured["salary"] is None


def test_cleanup_failure_returns_raw_content(make_client, failing_cleaner) -> None:
    resp = make_client(cleaner=failing_cleaner).post("/api/scrape", json={"url": URL})

    assert resp.status_code == 200
    body = resp.json()
    assert body["cleanupFailed"] is True
    assert "structured" not in body
    assert body["description"] == CLEAN_POSTING
    assert body["location"] == "Berlin"


def test_clean_false_returns_raw_without_flag(make_client) -> None:
    cleaner = FakeCleaner(result=structured_job())
    resp = make_client(cleaner=cleaner).post("/api/scrape", json={"url": URL, "clean": False})

    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"title", "company", "location", "description"}
    assert cleaner.calls == []


# ---------------- 422 ----------------


def test_garbage_page_returns_422(make_client) -> None:
    cleaner = FakeCleaner(result=structured_job())
    resp = make_client(fetcher=_fetcher(TEMPLATE_GARBAGE), cleaner=cleaner).post("/api/scrape", json={"url": URL})

    assert resp.status_code == 422
    body = resp.json()
    assert body["garbageDetected"] is True
    assert body["suggestManualPaste"] is True
    assert body["confidence"] == "high"
    assert "Found 13 template markers (e.g., {{...}}, ng-*, etc.)" in body["reasons"]
    assert "couldn't be automatically extracted from jobs.example.com" in body["error"]
    assert cleaner.calls == []


def test_garbage_cleanup_output_returns_422(make_client) -> None:
    markers = " ".join("{{field%d}}" % i for i in range(12))
    cleaner = FakeCleaner(result=structured_job(title="{{job.title}}", description=markers))

    resp = make_client(cleaner=cleaner).post("/api/scrape", json={"url": URL})

    assert resp.status_code == 422
    assert resp.json()["reasons"][0] == "Cleanup produced unusable output"


# ---------------- 400 ----------------


@pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": "   "}, {"url": None}])
def test_missing_url_returns_400(make_client, payload) -> None:
    resp = make_client().post("/api/scrape", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": "URL is required"}


def test_disallowed_scheme_returns_400(make_client) -> None:
    resp = make_client().post("/api/scrape", json={"url": "file:///etc/passwd"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Only HTTP and HTTPS URLs are allowed"}


def test_malformed_url_returns_400(make_client) -> None:
    resp = make_client().post("/api/scrape", json={"url": "http://"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid URL format"}


def test_malformed_body_returns_400(make_client) -> None:
    client = make_client()
    resp = client.post("/api/scrape", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}

    resp = client.post("/api/scrape", json={"url": ["https://jobs.example.com"]})
    assert resp.status_code == 400


def test_ssrf_block_returns_400_and_redacts_logs(make_client, caplog) -> None:
    caplog.set_level(logging.INFO)

    resp = make_client().post("/api/scrape", json={"url": "http://127.0.0.1:2375/containers/json"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "URL blocked: access to this address is not allowed"}
    warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert any("SSRF attempt blocked (url=[redacted])" in r.getMessage() for r in warnings)
    assert not any("127.0.0.1" in r.getMessage() for r in caplog.records)


# ---------------- 500 ----------------


def test_fetch_failure_returns_500_without_detail(make_client, caplog) -> None:
    error = FetchFailedError(detail="Failed to fetch URL: 503 Service Unavailable")
    resp = make_client(fetcher=_fetcher(error=error)).post("/api/scrape", json={"url": URL})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch the job posting"}
    assert any("503 Service Unavailable" in r.getMessage() for r in caplog.records if r.levelno == logging.ERROR)


def test_unexpected_error_returns_generic_500(make_client) -> None:
    resp = make_client(fetcher=_fetcher(error=RuntimeError("boom"))).post("/api/scrape", json={"url": URL})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to scrape URL"}


def test_health_ready_reports_cleanup_configuration(make_client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "llm_provider", "openai")
    monkeypatch.setattr(settings, "openai_api_key", None)
    client = make_client()
    assert client.get("/api/health/ready").json() == {
        "status": "ok",
        "llmProvider": "openai",
        "cleanup": "unconfigured",
    }

    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    assert client.get("/api/health/ready").json()["cleanup"] == "configured"


def test_unusable_redirect_target_returns_500(make_client, public_resolver) -> None:
    session = FakeSession({URL: FakeResponse(status_code=302, headers={"Location": "http:///nohost"})})
    fetcher = partial(fetch_raw_content, session=session, resolver=public_resolver)

    resp = make_client(fetcher=fetcher).post("/api/scrape", json={"url": URL})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch the job posting"}
