"""
Heuristic rule tables for the content gate and the research agent.

Every classifier in the project reads from these tables instead of inline
regexes, so a rule can be tuned or tested on its own. Callers accept a
``RuleSet`` and fall back to ``DEFAULT_RULES``.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
import re


@dataclass(frozen=True)
class PatternRule:
    name: str
    pattern: re.Pattern
    weight: float = 1.0


@dataclass(frozen=True)
class CategoryRule:
    category: str
    keywords: Tuple[str, ...]


def _rule(name: str, rx: str, weight: float = 1.0, flags: int = re.IGNORECASE) -> PatternRule:
    return PatternRule(name, re.compile(rx, flags), weight)


# First-hand experience markers, matched against lowercased body text
AUTHENTICITY_SIGNALS: List[PatternRule] = [
    _rule("we_did", r"\b(we (?:visited|tried|tasted|explored|walked|stayed|experienced|discovered|found))\b"),
    _rule("i_did", r"\b(i (?:visited|tried|tasted|explored|walked|stayed|experienced|discovered|found|recommend))\b"),
    _rule("arrival", r"\b(when (?:we|you|i) (?:arrive|visit|walk|enter|step))\b"),
    _rule("tips", r"\b(insider tip|local tip|pro tip|editor'?s? (?:pick|note)|our (?:pick|recommendation|favorite))\b"),
    _rule("contrast", r"\b(what (?:we|most guides|many tourists) (?:don'?t|didn'?t))\b"),
    _rule("experience", r"\b(in (?:my|our) experience)\b"),
    _rule("first_hand", r"\b(first[- ]hand|personally)\b"),
    _rule("recent_visit", r"\b(when we last visited|on our (?:last|recent) visit|during (?:my|our) (?:stay|visit|trip))\b"),
    _rule("last_time", r"\b(last time (?:we|i) (?:were|was) there)\b"),
    _rule("observation", r"\b(the (?:atmosphere|ambiance|view|decor|service) (?:was|is|feels?))\b"),
    _rule("advice", r"\b(don'?t miss|make sure (?:to|you)|be sure to|ask for)\b"),
    _rule("local_secret", r"\b(hidden gem|best[- ]kept secret|locals? (?:know|love|recommend|secret))\b"),
]

GENERIC_PHRASES: List[PatternRule] = [
    _rule("todays_world", r"\bin today'?s (?:world|age|fast[- ]paced)\b"),
    _rule("worth_noting", r"\bit'?s worth noting that\b"),
    _rule("whether_youre", r"\bwhether you'?re a .+ or a\b"),
    _rule("in_conclusion", r"\bin conclusion,?\s"),
    _rule("look_no_further", r"\blook no further\b"),
    _rule("further_ado", r"\bwithout further ado\b"),
    _rule("ultimate_guide", r"\bin this (?:comprehensive|ultimate|definitive) (?:guide|article)\b"),
]

AFFILIATE_DOMAINS: List[PatternRule] = [
    _rule(d, re.escape(d))
    for d in (
        "booking.com", "halalbooking.com", "agoda.com", "getyourguide.com", "viator.com",
        "klook.com", "boatbookings.com", "thefork.com", "tripadvisor.com", "expedia.com",
        "hotels.com", "airbnb.com", "skyscanner.com", "kayak.com",
    )
]

# AI-overview readiness, matched against the lowercased first 100 words
DIRECT_ANSWER: List[PatternRule] = [
    _rule("definition", r"\b(?:is|are|was|were)\s+(?:a|an|the|one of)\b"),
    _rule("superlative", r"\bthe (?:best|easiest|quickest|most|top)\b"),
    _rule("location", r"\b(?:located|found|situated|based)\s+in\b"),
    _rule("how_to", r"\bto [a-z]+ (?:you|your|a|the)\b"),
    _rule("yes_no", r"^(?:yes|no),?\s"),
]

PREAMBLE: List[PatternRule] = [
    _rule("history", r"\b(?:throughout history|since ancient times|for centuries|over the years)\b"),
    _rule("welcome", r"\bwelcome to (?:this|our|my)\b"),
    _rule("looking_for", r"\bare you looking for\b"),
    _rule("wondered", r"\bhave you ever wondered\b"),
    _rule("in_this_article", r"\bin this (?:article|guide|post) (?:we will|we'll|i will|i'll)\b"),
]

QUESTION_H2 = re.compile(r"<h2[^>]*>[^<]*\?[^<]*</h2>", re.IGNORECASE)

RELEVANCE_KEYWORDS: Tuple[str, ...] = (
    "next.js", "nextjs", "vercel", "cloudflare", "seo", "indexing", "structured data",
    "schema.org", "json-ld", "core web vitals", "sitemap", "robots.txt", "hreflang", "i18n",
    "multilingual", "arabic", "rtl", "ai search", "ai overview", "perplexity", "gpt", "claude",
    "llm", "crawl", "render", "ssr", "isr", "cache", "cdn", "page speed", "lighthouse",
    "meta tag", "og:image", "breadcrumb", "faq schema", "rich result", "search console",
    "indexnow", "content quality", "e-e-a-t", "helpful content",
)

# First match wins
CATEGORY_RULES: List[CategoryRule] = [
    CategoryRule("algorithm_update", ("algorithm", "core update")),
    CategoryRule("indexing_change", ("index", "crawl")),
    CategoryRule("structured_data", ("schema", "structured data", "json-ld")),
    CategoryRule("core_web_vitals", ("web vital", "lcp", "cls")),
    CategoryRule("ai_search", ("ai search", "ai overview", "llm")),
    CategoryRule("content_strategy", ("content", "helpful")),
    CategoryRule("framework_optimization", ("next.js", "vercel")),
    CategoryRule("rendering", ("render", "ssr")),
    CategoryRule("security", ("security", "https")),
]

RESEARCH_CATEGORIES: Tuple[str, ...] = (
    "algorithm_update", "indexing_change", "structured_data", "core_web_vitals", "ai_search",
    "content_strategy", "technical_seo", "crawling", "rendering", "security",
    "framework_optimization",
)

ACTION_PATTERNS: List[PatternRule] = [
    _rule("advice", r"(?:you should|we recommend|best practice|update your|make sure|ensure that|consider|implement|add|use|switch to|migrate to)[^.!?]+[.!?]"),
    _rule("change", r"(?:new|updated|changed|deprecated|removed|required|mandatory)[^.!?]+[.!?]"),
]

AGENT_MAP: Dict[str, Tuple[str, ...]] = {
    "algorithm_update": ("seo-agent", "content-generator"),
    "indexing_change": ("seo-agent", "live-site-auditor"),
    "structured_data": ("seo-agent", "content-generator"),
    "core_web_vitals": ("live-site-auditor",),
    "ai_search": ("weekly-research", "seo-agent"),
    "content_strategy": ("content-generator", "topic-orchestrator"),
    "technical_seo": ("seo-agent", "live-site-auditor"),
    "crawling": ("seo-agent", "live-site-auditor"),
    "rendering": ("live-site-auditor",),
    "security": ("live-site-auditor",),
    "framework_optimization": ("live-site-auditor",),
}

UNSAFE_UPDATE_WORDS: Tuple[str, ...] = ("remove", "delete", "disable")


@dataclass(frozen=True)
class RuleSet:
    authenticity: List[PatternRule] = field(default_factory=lambda: list(AUTHENTICITY_SIGNALS))
    generic: List[PatternRule] = field(default_factory=lambda: list(GENERIC_PHRASES))
    affiliates: List[PatternRule] = field(default_factory=lambda: list(AFFILIATE_DOMAINS))
    direct_answer: List[PatternRule] = field(default_factory=lambda: list(DIRECT_ANSWER))
    preamble: List[PatternRule] = field(default_factory=lambda: list(PREAMBLE))
    question_h2: re.Pattern = QUESTION_H2
    relevance_keywords: Tuple[str, ...] = RELEVANCE_KEYWORDS
    categories: List[CategoryRule] = field(default_factory=lambda: list(CATEGORY_RULES))
    action_patterns: List[PatternRule] = field(default_factory=lambda: list(ACTION_PATTERNS))
    agent_map: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(AGENT_MAP))
    unsafe_update_words: Tuple[str, ...] = UNSAFE_UPDATE_WORDS


DEFAULT_RULES = RuleSet()


def count_matching(rules: List[PatternRule], text: str) -> int:
    """Number of rules with at least one match (not the number of matches)."""
    return sum(1 for r in rules if r.pattern.search(text or ""))


def count_occurrences(rules: List[PatternRule], text: str) -> int:
    return sum(len(r.pattern.findall(text or "")) for r in rules)


def categorize(text: str, rules: List[CategoryRule]) -> str | None:
    low = (text or "").lower()
    for rule in rules:
        if any(k in low for k in rule.keywords):
            return rule.category
    return None
