"""
Citation Classification

Assigns every cited URL to exactly one bucket relative to the assessed
company, then scores its influence and relevance.

Bucket rules, checked in order:
1. owned       - the company domain (with or without www.) or a configured owned domain
2. operated    - other subdomains of owned domains, configured operated domains,
                 and profile platforms whose URL carries the brand
3. competitor  - a competitor's domain or one of its subdomains
4. earned      - everything else, including URLs that cannot be parsed

Owned is checked first, so an owned citation can never be a competitor.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple
from urllib.parse import unquote, urlsplit

from ..context.models import CompanyContext
from ..utils.domain_filter import (
    PROFILE_PLATFORMS,
    brand_key,
    brand_label,
    domain_matches,
    is_profile_platform,
    match_any,
    normalize_domain,
)
from .mentions import is_matchable
from .models import CitationAnalysis, CitationBucket

logger = logging.getLogger(__name__)

# Weight of position vs. reference count in influence
POSITION_WEIGHT = 0.6
REFERENCE_WEIGHT = 0.4
POSITION_DECAY = 0.25

STOPWORDS: Set[str] = {
    "the", "and", "for", "are", "but", "not", "you", "your", "with", "what",
    "which", "who", "how", "why", "when", "where", "that", "this", "these",
    "those", "from", "into", "about", "should", "would", "could", "can",
    "does", "did", "has", "have", "had", "was", "were", "will", "our", "their",
    "its", "it's", "any", "all", "more", "most", "other", "than", "then",
    "there", "here", "they", "them", "some", "such", "also", "just", "like",
    "know", "need", "me", "my", "is", "of", "to", "in", "on", "a", "an",
    "http", "https", "www", "com", "html", "htm", "php",
}


@dataclass
class Classification:
    """Bucket decision for one URL."""
    bucket: CitationBucket
    domain: Optional[str]
    competitor_name: Optional[str] = None
    reasoning: str = ""


def tokenize(text: str) -> Set[str]:
    """Lowercase word tokens of 3+ characters, stopwords removed."""
    return {
        token for token in re.findall(r"[^\W_]+", (text or "").lower())
        if len(token) >= 3 and token not in STOPWORDS
    }


def split_sentences(text: str) -> List[str]:
    return [s for s in re.split(r"(?<=[.!?])\s+|\n+", text or "") if s.strip()]


def reference_count(answer_text: str, position: int) -> int:
    """How often ``[position]`` is used as a reference marker in the answer."""
    return len(re.findall(rf"\[{position}\]", answer_text or ""))


def influence_score(position: int, references: int) -> float:
    """
    Prominence of a citation in [0, 1].

    Non-increasing in position (1 is most prominent) and non-decreasing in
    the number of reference markers pointing at it.
    """
    position = max(1, position)
    position_factor = 1.0 / (1.0 + POSITION_DECAY * (position - 1))
    reference_factor = 1.0 - 1.0 / (1.0 + max(0, references))
    score = POSITION_WEIGHT * position_factor + REFERENCE_WEIGHT * reference_factor
    return round(min(1.0, max(0.0, score)), 4)


def relevance_score(question_text: str, url: str, answer_text: str, position: int) -> float:
    """
    Share of question terms found in the citation's URL or in the answer
    sentences that reference it, in [0, 1].
    """
    question_terms = tokenize(question_text)
    if not question_terms:
        return 0.0

    marker = f"[{position}]"
    citing_sentences = " ".join(s for s in split_sentences(answer_text) if marker in s)
    citation_terms = tokenize(url) | tokenize(citing_sentences)

    overlap = len(question_terms & citation_terms)
    return round(min(1.0, overlap / len(question_terms)), 4)


class CitationClassifier:
    """
    Classifies citations for one company context.

    Usage:
        classifier = CitationClassifier(context)
        result = classifier.classify("https://acme.dev/blog")
        # result.bucket == CitationBucket.OWNED
    """

    def __init__(self, context: CompanyContext):
        self.context = context

        owned = [context.domain, *context.owned_domains]
        self.owned_domains: List[str] = self._normalize_all(owned)
        self.operated_domains: List[str] = self._normalize_all(context.operated_domains)

        self.competitors: List[Tuple[str, str]] = []
        for competitor in context.competitors:
            domain = normalize_domain(competitor.domain)
            if domain and not match_any(domain, self.owned_domains):
                self.competitors.append((domain, competitor.name))

        tokens = [brand_key(v) for v in context.name_variants]
        label = brand_label(context.domain)
        if label:
            tokens.append(brand_key(label))
        self.brand_tokens: List[str] = sorted(
            {t for t in tokens if is_matchable(t)}, key=len, reverse=True
        )

    @staticmethod
    def _normalize_all(values) -> List[str]:
        result = []
        for value in values:
            domain = normalize_domain(value)
            if domain and domain not in result:
                result.append(domain)
        return result

    def _url_carries_brand(self, url: str, domain: str) -> bool:
        try:
            parts = urlsplit(url if "://" in url else "//" + url)
        except ValueError:
            return False
        host = (parts.hostname or "")
        # Labels in front of the platform host count too
        platform = match_any(domain, PROFILE_PLATFORMS)
        prefix = host[: -len(platform)] if platform and host.endswith(platform) else ""
        haystack = brand_key(prefix + unquote(parts.path))
        return any(token in haystack for token in self.brand_tokens)

    def classify(self, url: str) -> Classification:
        domain = normalize_domain(url)
        if not domain:
            return Classification(CitationBucket.EARNED, None, reasoning="Unparseable URL")

        if domain in self.owned_domains:
            return Classification(CitationBucket.OWNED, domain, reasoning="Company domain")

        owned_parent = match_any(domain, self.owned_domains)
        if owned_parent:
            return Classification(
                CitationBucket.OPERATED, domain,
                reasoning=f"Subdomain of {owned_parent}",
            )

        if match_any(domain, self.operated_domains):
            return Classification(CitationBucket.OPERATED, domain, reasoning="Configured operated domain")

        if is_profile_platform(domain):
            if self._url_carries_brand(url, domain):
                return Classification(CitationBucket.OPERATED, domain, reasoning="Company profile on platform")
            return Classification(CitationBucket.EARNED, domain, reasoning="Third-party platform page")

        for competitor_domain, name in self.competitors:
            if domain_matches(domain, competitor_domain):
                return Classification(
                    CitationBucket.COMPETITOR, domain,
                    competitor_name=name,
                    reasoning=f"Competitor domain ({name})",
                )

        return Classification(CitationBucket.EARNED, domain, reasoning="Third-party source")

    def analyze(
        self,
        citations: List[str],
        answer_text: str,
        question_text: str,
    ) -> List[CitationAnalysis]:
        """Classify and score every citation, keeping answer order (1-based positions)."""
        results = []
        for position, url in enumerate(citations, 1):
            classification = self.classify(url)
            results.append(CitationAnalysis(
                url=url,
                position=position,
                bucket=classification.bucket,
                domain=classification.domain,
                influence_score=influence_score(position, reference_count(answer_text, position)),
                relevance_score=relevance_score(question_text, url, answer_text, position),
                competitor_name=classification.competitor_name,
                reasoning=classification.reasoning,
            ))
        return results

