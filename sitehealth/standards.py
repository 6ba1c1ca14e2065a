"""
Content standards: the typed, versioned thresholds the pre-publication gate
enforces. Update STANDARDS_VERSION whenever a value changes; the weekly
research run flags the table as stale 30 days after that date.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Tuple

STANDARDS_VERSION = "2026-02-19"


@dataclass(frozen=True)
class ContentTypeThresholds:
    min_words: int
    target_words: int
    thin_content_threshold: int  # body chars
    meta_title_min: int
    meta_title_optimal: Tuple[int, int]
    meta_description_min: int
    meta_description_optimal: Tuple[int, int]
    quality_gate_score: int
    seo_score_blocker: int
    min_internal_links: int
    min_h2_count: int
    require_affiliate_links: bool = False
    require_authenticity_signals: bool = False
    meta_title_max: int = 160


@dataclass(frozen=True)
class ContentQuality:
    readability_max: float = 12.0
    max_h1_count: int = 1
    min_title_length: int = 10
    heading_check_min_chars: int = 300
    long_body_chars: int = 500
    min_authenticity_signals: int = 3
    max_generic_phrases: int = 1
    stale_after_days: int = 30


CONTENT_TYPE_THRESHOLDS: Dict[str, ContentTypeThresholds] = {
    "blog": ContentTypeThresholds(
        min_words=1000, target_words=1800, thin_content_threshold=300,
        meta_title_min=30, meta_title_optimal=(50, 60),
        meta_description_min=120, meta_description_optimal=(120, 160),
        quality_gate_score=70, seo_score_blocker=50,
        min_internal_links=3, min_h2_count=2,
        require_affiliate_links=True, require_authenticity_signals=True,
    ),
    "news": ContentTypeThresholds(
        min_words=150, target_words=400, thin_content_threshold=80,
        meta_title_min=20, meta_title_optimal=(40, 60),
        meta_description_min=80, meta_description_optimal=(80, 160),
        quality_gate_score=40, seo_score_blocker=20,
        min_internal_links=1, min_h2_count=0,
    ),
    "information": ContentTypeThresholds(
        min_words=300, target_words=800, thin_content_threshold=150,
        meta_title_min=20, meta_title_optimal=(40, 60),
        meta_description_min=80, meta_description_optimal=(80, 160),
        quality_gate_score=50, seo_score_blocker=30,
        min_internal_links=1, min_h2_count=1,
    ),
    "guide": ContentTypeThresholds(
        min_words=400, target_words=1000, thin_content_threshold=200,
        meta_title_min=20, meta_title_optimal=(40, 60),
        meta_description_min=80, meta_description_optimal=(80, 160),
        quality_gate_score=50, seo_score_blocker=30,
        min_internal_links=1, min_h2_count=1,
        require_affiliate_links=True,
    ),
}

# path prefix -> content type; /ar/ variants share the same thresholds
_PATH_TYPES = [
    ("/news/", "news"),
    ("/information/", "information"),
    ("/guides/", "guide"),
]


def content_type_for_url(url: str) -> str:
    path = url or ""
    if "://" in path:
        path = "/" + path.split("://", 1)[1].partition("/")[2]
    if path.startswith("/ar/"):
        path = path[3:]
    for prefix, ctype in _PATH_TYPES:
        if path.startswith(prefix):
            return ctype
    return "blog"


@dataclass(frozen=True)
class Standards:
    version: str = STANDARDS_VERSION
    quality: ContentQuality = field(default_factory=ContentQuality)
    content_types: Dict[str, ContentTypeThresholds] = field(
        default_factory=lambda: dict(CONTENT_TYPE_THRESHOLDS)
    )

    def thresholds_for_url(self, url: str) -> ContentTypeThresholds:
        ctype = content_type_for_url(url)
        return self.content_types.get(ctype) or self.content_types["blog"]


DEFAULT_STANDARDS = Standards()


def thresholds_for_url(url: str) -> ContentTypeThresholds:
    return DEFAULT_STANDARDS.thresholds_for_url(url)
