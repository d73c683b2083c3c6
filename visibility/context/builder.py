"""
Knowledge Context Builder

Folds a company record and its tagged knowledge base items into a typed
CompanyContext. Built fresh for every run, never persisted.

Sparse knowledge bases are normal: every missing section becomes an empty
list. Only a missing or unreadable company record is an error.
"""

import logging
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Pattern
from uuid import UUID

from ..database.repository import CompanyRepository, PersistenceError
from ..utils.domain_filter import (
    brand_key,
    brand_label,
    domain_matches,
    is_platform_domain,
    normalize_domain,
)
from .models import CompanyContext, CompanySize, CompetitorRef, KnowledgeTag

logger = logging.getLogger(__name__)


class ContextBuildError(Exception):
    """The company context could not be built."""

    def __init__(self, company_id: UUID, message: str):
        super().__init__(f"Cannot build context for company {company_id}: {message}")
        self.company_id = company_id


# =============================================================================
# INFERENCE TABLES
# =============================================================================

# Subdomains companies commonly run themselves
OPERATED_SUBDOMAINS = ("app", "docs", "blog", "api", "help", "support", "status", "community", "developers")

# category -> keywords looked for in domain, overview and keywords (first match wins)
# Keywords match whole words (plurals allowed); a trailing "*" marks a stem
# that also matches longer words ("advertis*" finds "advertising").
CATEGORY_KEYWORDS = [
    ("healthcare", ("health*", "medical", "clinic*", "patient", "care")),
    ("finance", ("financ*", "fintech", "bank*", "payment", "invoic*", "accounting", "expense")),
    ("education", ("edu", "educat*", "learn", "course", "school", "training")),
    ("ecommerce", ("shop*", "store", "retail*", "ecommerce", "commerce")),
    ("security", ("secur*", "cyber*", "threat", "identity")),
    ("analytics", ("analytics", "dashboard", "insight", "metrics", "data")),
    ("crm", ("crm", "customer relationship")),
    ("marketing", ("marketing", "seo", "campaign", "advertis*", "brand*")),
    ("sales", ("sales", "lead", "prospect*", "pipeline")),
    ("hr", ("hiring", "recruit*", "payroll", "talent", "employee")),
    ("project management", ("project", "task", "kanban", "roadmap")),
    ("communication", ("chat*", "messag*", "meeting", "video call", "collaborat*")),
    ("developer tools", ("developer", "api", "devops", "deploy*", "code")),
    ("ai", ("ai-powered", "artificial intelligence", "machine learning", "llm", "gpt")),
]

DEFAULT_CATEGORY = "technology"

SIZE_KEYWORDS = [
    (CompanySize.ENTERPRISE, ("enterprise", "fortune 500", "large organizations")),
    (CompanySize.STARTUP, ("startup", "founders", "early-stage")),
    (CompanySize.SMALL, ("small business", "smb", "freelancer", "small teams")),
]

# Richness weights per section item
RICHNESS_WEIGHTS = {
    "competitors": 10,
    "positioning": 8,
    "overview": 6,
    "product_features": 5,
    "use_cases": 5,
    "pain_points": 5,
    "target_personas": 4,
    "unique_value_props": 4,
    "target_audience": 4,
    "keywords": 2,
    "brand_voice": 2,
    "aliases": 1,
}

# "Riva (riva.ai)" or "Riva [riva.ai]"
# Name is one to four capitalized words directly before the bracket
NAMED_DOMAIN_PATTERN = re.compile(
    r"((?:[A-Z][\w&\-\.]*)(?:[ \t]+[A-Z][\w&\-\.]*){0,3})\s*[\(\[]\s*"
    r"((?:https?://)?(?:www\.)?[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,})[^\)\]]*[\)\]]"
)
BARE_DOMAIN_PATTERN = re.compile(r"(?<![@\w.])((?:[a-z0-9\-]+\.)+[a-z]{2,})(?![\w.\-]*@)", re.IGNORECASE)

LIST_SEPARATORS = re.compile(r"[\n,;]+")


# =============================================================================
# HELPERS
# =============================================================================

def split_list(values: Iterable[str]) -> List[str]:
    """Split free-text list entries on newlines, commas and semicolons."""
    items = []
    for value in values:
        for part in LIST_SEPARATORS.split(value or ""):
            part = part.strip().lstrip("-*• ").strip()
            if part and part not in items:
                items.append(part)
    return items


def infer_operated_domains(domain: str, configured: Iterable[str] = ()) -> List[str]:
    """Configured operated domains plus common subdomains of the main domain."""
    result = []
    for value in configured:
        normalized = normalize_domain(value)
        if normalized and normalized not in result:
            result.append(normalized)

    base = normalize_domain(domain)
    if base:
        for sub in OPERATED_SUBDOMAINS:
            candidate = f"{sub}.{base}"
            if candidate not in result:
                result.append(candidate)
    return result


def keyword_pattern(keyword: str) -> Pattern:
    """Whole-word pattern for a category keyword, prefix pattern for a ``stem*``."""
    if keyword.endswith("*"):
        return re.compile(rf"\b{re.escape(keyword[:-1])}")
    return re.compile(rf"\b{re.escape(keyword)}(?:e?s)?\b")


CATEGORY_PATTERNS = [
    (
        category,
        [keyword_pattern(k) for k in keywords],
        [re.compile(rf"\b{re.escape(k.rstrip('*'))}") for k in keywords],
    )
    for category, keywords in CATEGORY_KEYWORDS
]


def infer_category(industry: Optional[str], domain: str, texts: Iterable[str]) -> str:
    """
    Industry when known, otherwise the first keyword match, otherwise 'technology'.

    Domain labels are often run together ("shopwise.com"), so there a
    keyword only has to start a label.
    """
    if industry and industry.strip():
        return industry.strip().lower()

    domain = (domain or "").lower()
    text = " ".join(texts).lower()
    for category, word_patterns, label_patterns in CATEGORY_PATTERNS:
        if any(p.search(text) for p in word_patterns) or any(p.search(domain) for p in label_patterns):
            return category
    return DEFAULT_CATEGORY


def infer_company_size(texts: Iterable[str]) -> CompanySize:
    haystack = " ".join(texts).lower()
    for size, keywords in SIZE_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return size
    return CompanySize.MEDIUM


def richness_score(context: CompanyContext) -> float:
    """Weighted section item counts, capped at 100. Diagnostic only."""
    total = sum(len(getattr(context, section)) * weight for section, weight in RICHNESS_WEIGHTS.items())
    return float(min(100, total))


class CompetitorParser:
    """
    Extracts competitors from competitor-notes items.

    Structured metadata wins ({"name", "domain"} or {"competitors": [...]});
    free text is scanned for "Name (domain.tld)" and bare domains.
    Platform domains and the company's own domains are never competitors.
    """

    def __init__(self, company_name: str, owned_domains: List[str]):
        self.company_key = brand_key(company_name)
        self.owned_domains = owned_domains
        self._seen: set = set()
        self.competitors: List[CompetitorRef] = []

    def _excluded(self, domain: Optional[str]) -> bool:
        if not domain:
            return False
        if is_platform_domain(domain):
            return True
        return any(domain_matches(domain, owned) or domain_matches(owned, domain) for owned in self.owned_domains)

    def add(self, name: Optional[str], domain: Optional[str]) -> None:
        domain = normalize_domain(domain) if domain else None
        name = (name or "").strip().strip(".,:;-").strip()

        if domain and self._excluded(domain):
            return
        if not name and domain:
            label = brand_label(domain)
            name = label.capitalize() if label else domain
        if not name:
            return

        name_key = brand_key(name)
        if not name_key or name_key == self.company_key:
            return

        key = domain or name_key
        if key in self._seen or name_key in self._seen:
            return
        self._seen.update({key, name_key})
        self.competitors.append(CompetitorRef(name=name, domain=domain))

    def add_metadata(self, metadata: Dict[str, Any]) -> bool:
        entries = metadata.get("competitors") if isinstance(metadata.get("competitors"), list) else [metadata]
        found = False
        for entry in entries:
            if isinstance(entry, dict) and (entry.get("name") or entry.get("domain")):
                self.add(entry.get("name"), entry.get("domain"))
                found = True
        return found

    def add_text(self, text: str) -> None:
        consumed = []
        for match in NAMED_DOMAIN_PATTERN.finditer(text or ""):
            self.add(match.group(1), match.group(2))
            consumed.append((match.start(), match.end()))

        for match in BARE_DOMAIN_PATTERN.finditer(text or ""):
            if any(start <= match.start() < end for start, end in consumed):
                continue
            self.add(None, match.group(1))


# =============================================================================
# BUILDER
# =============================================================================

class KnowledgeContextBuilder:
    """
    Builds CompanyContext objects from the knowledge base.

    Usage:
        builder = KnowledgeContextBuilder(CompanyRepository())
        context = builder.build_context(company_id)
    """

    def __init__(self, repository: Optional[CompanyRepository] = None):
        self.repository = repository or CompanyRepository()

    def build_context(self, company_id: UUID) -> CompanyContext:
        """
        Build the context for one company.

        Raises:
            ContextBuildError: Company record missing or unreadable
        """
        try:
            company = self.repository.get_company(company_id)
            if company is None:
                raise ContextBuildError(company_id, "company not found")
            items = self.repository.list_knowledge_items(company_id)
        except PersistenceError as e:
            raise ContextBuildError(company_id, f"company record unreadable ({e})") from e

        grouped: Dict[KnowledgeTag, List[Any]] = {tag: [] for tag in KnowledgeTag}
        ignored = 0
        for item in items:
            try:
                tag = KnowledgeTag(item.tag)
            except ValueError:
                ignored += 1
                continue
            grouped[tag].append(item)

        def contents(tag: KnowledgeTag) -> List[str]:
            return [i.content.strip() for i in grouped[tag] if i.content and i.content.strip()]

        def listed(tag: KnowledgeTag) -> List[str]:
            values = contents(tag)
            for item in grouped[tag]:
                extra = (item.item_metadata or {}).get("values")
                if isinstance(extra, list):
                    values.extend(str(v) for v in extra)
            return split_list(values)

        domain = normalize_domain(company.domain) or (company.domain or "").strip().lower()
        owned_domains = [d for d in (normalize_domain(v) for v in (company.owned_domains or [])) if d]

        parser = CompetitorParser(company.name, [domain, *owned_domains])
        for item in grouped[KnowledgeTag.COMPETITOR_NOTES]:
            metadata = item.item_metadata or {}
            if not (isinstance(metadata, dict) and parser.add_metadata(metadata)):
                parser.add_text(item.content or "")

        aliases = split_list([*(company.aliases or []), *listed(KnowledgeTag.ALIASES)])
        aliases = [a for a in aliases if a.lower() != company.name.strip().lower()]

        overview = contents(KnowledgeTag.COMPANY_OVERVIEW)
        if company.description and company.description.strip() not in overview:
            overview.insert(0, company.description.strip())

        keywords = listed(KnowledgeTag.KEYWORDS)
        target_audience = contents(KnowledgeTag.TARGET_AUDIENCE)
        personas = listed(KnowledgeTag.PERSONAS)

        context = CompanyContext(
            company_id=company.id,
            name=company.name,
            domain=domain,
            aliases=aliases,
            industry=company.industry,
            category=infer_category(company.industry, domain, [*overview, *keywords]),
            business_model=company.business_model,
            company_size=infer_company_size([*target_audience, *personas, *overview]),
            overview=overview,
            positioning=contents(KnowledgeTag.POSITIONING),
            pain_points=contents(KnowledgeTag.PAIN_POINTS),
            product_features=contents(KnowledgeTag.PRODUCT_FEATURES),
            use_cases=contents(KnowledgeTag.USE_CASES),
            brand_voice=contents(KnowledgeTag.BRAND_VOICE),
            target_audience=target_audience,
            competitors=parser.competitors,
            target_personas=personas,
            keywords=keywords,
            unique_value_props=listed(KnowledgeTag.VALUE_PROPOSITIONS),
            owned_domains=owned_domains,
            operated_domains=infer_operated_domains(domain, company.operated_domains or []),
        )
        context = replace(context, richness_score=richness_score(context))

        logger.info(
            f"Built context for {context.name}: {len(items)} knowledge items "
            f"({ignored} ignored), {len(context.competitors)} competitors, "
            f"richness {context.richness_score:.0f}"
        )
        return context
