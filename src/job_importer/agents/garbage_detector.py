"""
Garbage Content Detector
- Input: extracted page text (and optionally the URL it came from)
- Output: ClassificationResult (is_garbage, confidence tier, reasons, suggest_manual_paste)

Pages from JavaScript-heavy ATS platforms (BrassRing, Workday, Taleo, iCIMS, ...)
often come back as unrendered template source instead of job prose. Each signal is a
named Rule; every rule is evaluated once per call and the weights add up to a score
that is banded into a confidence tier. Pure and deterministic: no network, no LLM.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlsplit

from job_importer.agents.ats_domains import ATS_DOMAINS, DomainReputationList
from job_importer.models import ClassificationResult, Confidence

# ---------------- Patterns ----------------

# Template syntax that indicates unrendered client-side content.
# Expression bodies are capped at 200 chars and may not contain another opener,
# so a page full of unclosed openers is still scanned in linear time.
TEMPLATE_PATTERNS: Tuple[Pattern[str], ...] = (
    # Angular/Vue/Handlebars double braces
    re.compile(r"\{\{[^{}]{1,200}\}\}"),
    # Django/Jinja2 tags
    re.compile(r"\{%[^%]{1,200}%\}"),
    # ASP.NET/EJS tags
    re.compile(r"<%[^%]{1,200}%>"),
    # Angular attribute directives
    re.compile(r"\bng-[a-z]+\b", re.I),
    # Angular structural directives
    re.compile(r"\*ng(?:If|For|Switch|Class|Style)\b", re.I),
    # Vue directives
    re.compile(r"\bv-(?:if|for|show|model|bind|on)\b", re.I),
    # JSX property-call expressions, e.g. {user.getName(
    re.compile(r"\{[a-zA-Z_$][a-zA-Z0-9_$]*\.[a-zA-Z_$][a-zA-Z0-9_$]*\("),
    # JavaScript template-literal placeholders
    re.compile(r"\$\{[^{}]{1,200}\}"),
    # Mail-merge placeholders
    re.compile(r"\[FIRSTNAME\]|\[LASTNAME\]|\[COMPANY\]", re.I),
)

# Text that only shows up when the page never finished rendering
UNRENDERED_CONTENT_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"loading\.\.\.|please wait|fetching data", re.I),
    re.compile(r"\bfunction\s*\([^()]{0,200}\)\s*\{"),
    re.compile(r"\b(?:import|export)\s+(?:default\s+)?(?:function|class|const|let|var)\b"),
    re.compile(r"\bcomponent\s*:\s*['\"][^'\"]+['\"]", re.I),
    re.compile(r"__webpack_require__|webpackJsonp", re.I),
)

# `ng-` only counts at a word start so prose like "long-term" stays clean
HEADER_TEMPLATE_RE = re.compile(r"\{\{|\{%|<%|\bng-[a-z]|\*ng", re.I)

_WORD_RE = re.compile(r"^[a-zA-Z]{2,20}$")
_EXAMPLE_TEMPLATE_RE = re.compile(r"\{\{[^{}]{1,50}\}\}")
_EXAMPLE_ANGULAR_RE = re.compile(r"\*ng(?:If|For)[^>\s]{0,30}")

# ---------------- Configuration ----------------


@dataclass(frozen=True)
class ClassifierConfig:
    min_content_length: int = 200
    # When set, text under min_content_length is garbage whatever the score
    short_text_decisive: bool = True
    marker_count_threshold: int = 3
    marker_ratio_threshold: float = 0.02
    heavy_marker_count: int = 10
    min_word_ratio: float = 0.30
    header_length: int = 200
    medium_threshold: int = 35
    high_threshold: int = 60
    max_examples: int = 2
    example_length: int = 40
    domains: DomainReputationList = field(default_factory=lambda: ATS_DOMAINS)


DEFAULT_CONFIG = ClassifierConfig()

# ---------------- Rules ----------------

# (text, url) -> reason format params when the rule fires, else None
Matcher = Callable[[str, Optional[str]], Optional[Dict[str, Any]]]


@dataclass(frozen=True)
class RuleHit:
    rule: str
    weight: int
    reason: str
    decisive: bool = False


@dataclass(frozen=True)
class Rule:
    name: str
    weight: int
    reason: str
    matcher: Matcher
    # Applied instead of `weight` when the matcher reports {"escalate": True}
    escalated_weight: Optional[int] = None
    # A hit marks the content as garbage whatever the total score
    decisive: bool = False

    def evaluate(self, text: str, url: Optional[str] = None) -> Optional[RuleHit]:
        params = self.matcher(text, url)
        if params is None:
            return None
        weight = self.weight
        if params.get("escalate") and self.escalated_weight is not None:
            weight = self.escalated_weight
        return RuleHit(
            rule=self.name,
            weight=weight,
            reason=self.reason.format(**params),
            decisive=self.decisive,
        )


def count_template_markers(text: str) -> int:
    return sum(1 for pattern in TEMPLATE_PATTERNS for _ in pattern.finditer(text))


def find_unrendered_patterns(text: str) -> List[str]:
    return [p.pattern for p in UNRENDERED_CONTENT_PATTERNS if p.search(text)]


def word_ratio(text: str) -> float:
    """Share of whitespace-delimited tokens that look like plain words (letters only, 2-20 chars)."""
    tokens = text.split()
    if not tokens:
        return 0.0
    words = sum(1 for t in tokens if _WORD_RE.match(t))
    return words / len(tokens)


def build_rules(config: ClassifierConfig = DEFAULT_CONFIG) -> Tuple[Rule, ...]:
    def too_short(text: str, url: Optional[str]) -> Optional[Dict[str, Any]]:
        return {} if len(text) < config.min_content_length else None

    def ats_domain(text: str, url: Optional[str]) -> Optional[Dict[str, Any]]:
        return {} if url and config.domains.is_problematic(url) else None

    def template_markers(text: str, url: Optional[str]) -> Optional[Dict[str, Any]]:
        count = count_template_markers(text)
        ratio = count / max(len(text), 1)
        if count > config.marker_count_threshold or ratio > config.marker_ratio_threshold:
            return {"count": count, "escalate": count > config.heavy_marker_count}
        return None

    def unrendered(text: str, url: Optional[str]) -> Optional[Dict[str, Any]]:
        return {} if find_unrendered_patterns(text) else None

    def low_word_ratio(text: str, url: Optional[str]) -> Optional[Dict[str, Any]]:
        return {} if word_ratio(text) < config.min_word_ratio else None

    def header_template(text: str, url: Optional[str]) -> Optional[Dict[str, Any]]:
        return {} if HEADER_TEMPLATE_RE.search(text[: config.header_length]) else None

    return (
        Rule(
            "too_short",
            30,
            "Content is too short to be a valid job description",
            too_short,
            decisive=config.short_text_decisive,
        ),
        Rule("ats_domain", 20, "URL is from a known JavaScript-heavy job site", ats_domain),
        Rule(
            "template_markers",
            25,
            "Found {count} template markers (e.g., {{{{...}}}}, ng-*, etc.)",
            template_markers,
            escalated_weight=40,
        ),
        Rule("unrendered_js", 25, "Found unrendered JavaScript/template code", unrendered),
        Rule("low_word_ratio", 20, "Content has unusually low ratio of readable text", low_word_ratio),
        Rule("header_template", 30, "Template syntax found in title/header area", header_template),
    )


def extract_garbage_examples(text: str, limit: int = 2, length: int = 40) -> List[str]:
    """Short snippets of matched template syntax for user-facing diagnostics."""
    examples: List[str] = []
    m = _EXAMPLE_TEMPLATE_RE.search(text)
    if m:
        examples.append(f'Template code: "{m.group(0)[:length]}..."')
    m = _EXAMPLE_ANGULAR_RE.search(text)
    if m:
        examples.append(f'Angular directive: "{m.group(0)[:length]}"')
    return examples[:limit]


# ---------------- Classifier ----------------


class GarbageClassifier:
    def __init__(self, config: ClassifierConfig = DEFAULT_CONFIG, rules: Optional[Sequence[Rule]] = None):
        self.config = config
        self.rules: Tuple[Rule, ...] = tuple(rules) if rules is not None else build_rules(config)

    def band(self, score: int) -> Confidence:
        if score >= self.config.high_threshold:
            return "high"
        if score >= self.config.medium_threshold:
            return "medium"
        return "low"

    def classify(self, text: str, url: Optional[str] = None) -> ClassificationResult:
        text = text or ""
        # No early exit: later reasons are still useful to the caller
        hits = [hit for hit in (rule.evaluate(text, url) for rule in self.rules) if hit]
        score = sum(hit.weight for hit in hits)
        reasons = [hit.reason for hit in hits]

        confidence = self.band(score)
        is_garbage = score >= self.config.medium_threshold or any(hit.decisive for hit in hits)
        if is_garbage and confidence != "low":
            reasons.extend(
                extract_garbage_examples(text, self.config.max_examples, self.config.example_length)
            )

        return ClassificationResult(
            is_garbage=is_garbage,
            confidence=confidence,
            reasons=tuple(reasons),
            suggest_manual_paste=is_garbage,
            score=score,
        )


_DEFAULT_CLASSIFIER = GarbageClassifier()


def detect_garbage_content(text: str, url: Optional[str] = None) -> ClassificationResult:
    return _DEFAULT_CLASSIFIER.classify(text, url)


def create_garbage_content_error_message(result: ClassificationResult, url: Optional[str] = None) -> str:
    """Friendly, non-technical message telling the user to paste the posting by hand."""
    if not result.is_garbage:
        return ""

    try:
        domain = urlsplit(url or "").hostname
    except ValueError:
        domain = None

    parts = [
        f"This job posting couldn't be automatically extracted from {domain or 'this job site'}.",
        "",
        "This often happens with modern job sites that load content dynamically.",
        "",
        "To add this job:",
        "1. Open the job posting in your browser",
        "2. Select and copy the job description text",
        '3. Use the "Paste Text" tab to paste it here',
    ]
    return "\n".join(parts)
