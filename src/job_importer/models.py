"""Data models for one URL import: fetched content, classification and outcomes."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Confidence = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class RawContent:
    description: str
    source_url: str
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class ClassificationResult:
    is_garbage: bool
    confidence: Confidence
    reasons: Tuple[str, ...]
    suggest_manual_paste: bool
    score: int = 0


class StructuredJobDescription(BaseModel):
    """Schema the cleanup adapter must satisfy; every field is required so bad output fails closed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, description="The job title")
    company: Optional[str] = Field(..., description="Company name if mentioned, else null")
    location: Optional[str] = Field(..., description="Job location if mentioned, else null")
    employment_type: Optional[str] = Field(
        ..., description="Full-time, Part-time, Contract, etc. if mentioned, else null"
    )
    salary: Optional[str] = Field(..., description="Salary range if mentioned, else null")
    description: str = Field(..., min_length=1, description="A clean, well-formatted job description paragraph")
    responsibilities: List[str] = Field(..., description="Key responsibilities")
    requirements: List[str] = Field(..., description="Required qualifications")
    nice_to_have: List[str] = Field(..., description="Preferred / nice-to-have qualifications")
    benefits: List[str] = Field(..., description="Benefits if mentioned")


class RejectionStage(str, Enum):
    RAW = "raw"
    CLEANED = "cleaned"


@dataclass(frozen=True)
class Accepted:
    structured: StructuredJobDescription
    raw: RawContent


@dataclass(frozen=True)
class AcceptedRaw:
    raw: RawContent
    cleanup_failed: bool = True


@dataclass(frozen=True)
class Rejected:
    classification: ClassificationResult
    user_message: str
    stage: RejectionStage = RejectionStage.RAW

    @property
    def reasons(self) -> Tuple[str, ...]:
        if self.stage is RejectionStage.CLEANED:
            return ("Cleanup produced unusable output",) + self.classification.reasons
        return self.classification.reasons


PipelineOutcome = Union[Accepted, AcceptedRaw, Rejected]
