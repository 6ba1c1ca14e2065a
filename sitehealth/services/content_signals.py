from __future__ import annotations
from typing import List, Tuple, Optional
import re
from bs4 import BeautifulSoup

from sitehealth.rules import RuleSet, DEFAULT_RULES, count_matching, count_occurrences

HEADING_RE = re.compile(r"^h([1-6])$")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def html_text(html: str) -> str:
    """Visible text with tags removed and whitespace collapsed."""
    text = _soup(html).get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def count_words(html: str) -> int:
    return len(html_text(html).split())


def heading_levels(html: str) -> List[int]:
    return [int(HEADING_RE.match(t.name).group(1)) for t in _soup(html).find_all(HEADING_RE)]


def check_heading_hierarchy(levels: List[int], max_h1: int = 1, min_h2: int = 2) -> Tuple[bool, str]:
    """
    Validate a heading sequence: at most `max_h1` H1s, no skipped levels on
    the way down (H2 -> H4), at least `min_h2` H2s. First failing rule wins.
    """
    if not levels:
        return False, "No headings found in content. Add H2/H3 headings for structure."

    h1 = levels.count(1)
    h2 = levels.count(2)
    if h1 > max_h1:
        return False, f"Multiple H1 tags found ({h1}, max {max_h1}). Use one H1 per page."

    skipped = [
        f"H{prev} → H{cur}"
        for prev, cur in zip(levels, levels[1:])
        if cur > prev + 1
    ]
    if skipped:
        return False, f"Heading levels skipped: {', '.join(skipped)}."

    if h2 < min_h2:
        return False, f"Only {h2} H2 heading(s) (need {min_h2}+). Add more H2 sections."

    return True, f"Good heading structure: {h2} H2s, {len(levels)} total headings"


def count_internal_links(html: str, pattern: re.Pattern) -> int:
    return len(pattern.findall(html or ""))


def count_syllables(word: str) -> int:
    w = re.sub(r"[^a-z]", "", (word or "").lower())
    if len(w) <= 3:
        return 1
    count = len(VOWEL_GROUP_RE.findall(w)) or 1
    if w.endswith("e") and not w.endswith("le"):
        count -= 1
    if w.endswith("ed") and not w.endswith("ted") and not w.endswith("ded"):
        count -= 1
    return max(1, count)


def readability(html: str) -> Tuple[float, float]:
    """(Flesch-Kincaid grade, Flesch reading ease) using a vowel-group syllable estimate."""
    text = html_text(html)
    sentences = [s for s in SENTENCE_SPLIT_RE.split(text) if len(s.strip()) > 5]
    words = text.split()
    if not sentences or not words:
        return 0.0, 100.0
    wps = len(words) / len(sentences)
    spw = sum(count_syllables(w) for w in words) / len(words)
    grade = 0.39 * wps + 11.8 * spw - 15.59
    ease = 206.835 - 1.015 * wps - 84.6 * spw
    return max(0.0, grade), max(0.0, min(100.0, ease))


def image_alt_stats(html: str) -> Tuple[int, int]:
    """(total images, images whose alt is missing or blank)"""
    imgs = _soup(html).find_all("img")
    missing = sum(1 for img in imgs if not (img.get("alt") or "").strip())
    return len(imgs), missing


def authenticity_counts(html: str, rules: RuleSet = DEFAULT_RULES) -> Tuple[int, int]:
    """(experience signals, generic phrases), each rule counted once."""
    text = html_text(html).lower()
    return count_matching(rules.authenticity, text), count_matching(rules.generic, text)


def affiliate_link_count(html: str, rules: RuleSet = DEFAULT_RULES) -> int:
    return count_occurrences(rules.affiliates, html)


def aio_issues(html: str, rules: RuleSet = DEFAULT_RULES, intro_words: int = 100) -> Tuple[List[str], int]:
    """Return (issues, question-H2 count) for AI-overview readiness."""
    intro = " ".join(html_text(html).split()[:intro_words]).lower()
    question_h2 = len(rules.question_h2.findall(html or ""))

    issues: List[str] = []
    if not count_matching(rules.direct_answer, intro):
        issues.append("intro lacks a direct, concise answer in the first 100 words")
    if question_h2 == 0:
        issues.append("no question-format H2 headings (e.g. 'What is...?', 'How to...?')")
    if count_matching(rules.preamble, intro):
        issues.append("preamble filler before the core answer")
    return issues, question_h2


def is_arabic_only(locale: Optional[str], content_en: Optional[str], content_ar: Optional[str]) -> bool:
    return locale == "ar" and not content_en and bool(content_ar)
