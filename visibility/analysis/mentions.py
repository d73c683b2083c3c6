"""
Brand Mention Detection

Case-insensitive matching of a company's name variants in answer text.
Separators inside a term are optional, so "Acme Corp" is also found as
"AcmeCorp", "ACMECORP" or "acme-corp". Matches must sit on word boundaries:
"Riva" is not found inside "arrival".

Names in any script are matched. Scripts written without spaces (Chinese,
Japanese, Korean) have no word boundaries to respect, so "メルカリ" is found
in "メルカリは人気です".
"""

import re
from typing import Iterable, List, Pattern, Tuple

from ..context.models import CompanyContext
from ..utils.domain_filter import brand_key, brand_label
from .models import MentionResult

# Terms shorter than this (after compaction) are too ambiguous to match
MIN_TERM_LENGTH = 3
# Ideographic and syllabic names are meaningful from two characters ("楽天")
MIN_WIDE_TERM_LENGTH = 2

# CJK radicals through unified ideographs (kana included), Hangul,
# compatibility ideographs, halfwidth katakana
_UNSPACED = "\u2e80-\u9fff\uac00-\ud7af\uf900-\ufaff\uff66-\uff9f"
_UNSPACED_CHAR = re.compile(f"[{_UNSPACED}]")

_SEPARATORS = "[\\s\\-_.'&\u30fb]{0,3}"

# A match may not touch a letter or digit of a spaced script
_BEFORE = rf"(?<![^\W{_UNSPACED}])"
_AFTER = rf"(?![^\W{_UNSPACED}])"


def is_matchable(term: str) -> bool:
    """True when ``term`` is long enough to be matched without ambiguity."""
    key = brand_key(term)
    if _UNSPACED_CHAR.search(key):
        return len(key) >= MIN_WIDE_TERM_LENGTH
    return len(key) >= MIN_TERM_LENGTH


def term_pattern(term: str) -> Pattern:
    """Regex matching ``term`` case-insensitively with optional separators."""
    chars = brand_key(term)
    body = _SEPARATORS.join(re.escape(c) for c in chars)
    return re.compile(f"{_BEFORE}{body}{_AFTER}", re.IGNORECASE)


def mention_terms(context: CompanyContext) -> List[str]:
    """Name, aliases, domain and the domain's brand label."""
    terms = list(context.name_variants)
    if context.domain:
        terms.append(context.domain)
        label = brand_label(context.domain)
        if label:
            terms.append(label)

    seen = set()
    unique = []
    for term in terms:
        key = brand_key(term)
        if is_matchable(term) and key not in seen:
            seen.add(key)
            unique.append(term)
    return unique


def _spans(text: str, terms: Iterable[str]) -> List[Tuple[int, int, str]]:
    found = []
    for term in terms:
        if not is_matchable(term):
            continue
        for match in term_pattern(term).finditer(text):
            found.append((match.start(), match.end(), term))

    # Longest match wins where terms overlap ("Acme Corp" over "Acme")
    found.sort(key=lambda s: (s[0], -(s[1] - s[0])))
    merged = []
    last_end = -1
    for start, end, term in found:
        if start >= last_end:
            merged.append((start, end, term))
            last_end = end
    return merged


def find_mentions(text: str, terms: Iterable[str]) -> MentionResult:
    """
    Detect mentions of any of ``terms`` in ``text``.

    Returns:
        MentionResult with the number of non-overlapping matches, the
        character offset of the first one and which terms matched
    """
    if not text:
        return MentionResult()

    spans = _spans(text, terms)
    if not spans:
        return MentionResult()

    matched = []
    for _, _, term in spans:
        if term not in matched:
            matched.append(term)

    return MentionResult(
        detected=True,
        count=len(spans),
        first_position=spans[0][0],
        matched_terms=matched,
    )


def count_mentions(text: str, terms: Iterable[str]) -> int:
    return len(_spans(text or "", terms))
