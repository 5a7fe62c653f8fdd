"""Liveness and readiness probes."""

from typing import Dict

from fastapi import APIRouter

from job_importer.configuration import settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/ping", summary="Basic liveness check")
async def ping() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="Report whether AI cleanup can run")
async def ready() -> Dict[str, str]:
    # Imports still work without an LLM key; requests then degrade to raw content
    key = settings.google_api_key if settings.llm_provider == "google" else settings.openai_api_key
    return {
        "status": "ok",
        "llmProvider": settings.llm_provider,
        "cleanup": "configured" if key else "unconfigured",
    }
