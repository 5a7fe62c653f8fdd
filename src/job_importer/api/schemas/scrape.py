"""Request and response models for the URL import endpoint."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from job_importer.models import StructuredJobDescription


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScrapeRequest(BaseModel):
    url: Optional[str] = Field(None, description="Public job posting URL (http or https).")
    clean: bool = Field(True, description="Run AI cleanup on the extracted text.")


class ScrapeResponse(_CamelModel):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    description: str
    structured: Optional[StructuredJobDescription] = Field(
        None, description="Present only when cleanup ran and its output passed re-validation."
    )
    cleanup_failed: Optional[bool] = Field(
        None, description="True when cleanup was requested but the raw text is returned instead."
    )


class ErrorResponse(_CamelModel):
    error: str


class GarbageContentResponse(_CamelModel):
    error: str
    garbage_detected: bool = True
    confidence: Literal["low", "medium", "high"]
    reasons: List[str] = Field(default_factory=list)
    suggest_manual_paste: bool = True
