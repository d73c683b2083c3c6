"""
Company Context Data Models

Typed snapshot of everything known about a company, built fresh for each
assessment from the knowledge base. This is the only shape downstream
components (question generation, response analysis) ever see.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from uuid import UUID


# =============================================================================
# ENUMS
# =============================================================================


class KnowledgeTag(str, Enum):
    """Knowledge base item tags the context builder understands."""
    COMPANY_OVERVIEW = "company-overview"
    TARGET_AUDIENCE = "target-audience"
    PAIN_POINTS = "pain-points"
    POSITIONING = "positioning"
    PRODUCT_FEATURES = "product-features"
    USE_CASES = "use-cases"
    COMPETITOR_NOTES = "competitor-notes"
    BRAND_VOICE = "brand-voice"
    KEYWORDS = "keywords"
    PERSONAS = "personas"
    VALUE_PROPOSITIONS = "value-propositions"
    ALIASES = "aliases"


class CompanySize(str, Enum):
    """Rough company size, used to phrase questions."""
    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    ENTERPRISE = "enterprise"


# =============================================================================
# CONTEXT
# =============================================================================


@dataclass(frozen=True)
class CompetitorRef:
    """A competitor known from the knowledge base."""
    name: str
    domain: Optional[str] = None


@dataclass(frozen=True)
class CompanyContext:
    """
    Read-only view of a company for one assessment run.

    Every collection is present (possibly empty) so consumers never need to
    guard against missing sections.
    """

    # Identity
    company_id: UUID
    name: str
    domain: str
    aliases: List[str] = field(default_factory=list)

    # Classification
    industry: Optional[str] = None
    category: str = "technology"
    business_model: Optional[str] = None
    company_size: CompanySize = CompanySize.MEDIUM

    # Free-text sections
    overview: List[str] = field(default_factory=list)
    positioning: List[str] = field(default_factory=list)
    pain_points: List[str] = field(default_factory=list)
    product_features: List[str] = field(default_factory=list)
    use_cases: List[str] = field(default_factory=list)
    brand_voice: List[str] = field(default_factory=list)
    target_audience: List[str] = field(default_factory=list)

    # Structured lists
    competitors: List[CompetitorRef] = field(default_factory=list)
    target_personas: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    unique_value_props: List[str] = field(default_factory=list)

    # Domains used for citation ownership
    owned_domains: List[str] = field(default_factory=list)
    operated_domains: List[str] = field(default_factory=list)

    # Diagnostics
    richness_score: float = 0.0

    @property
    def name_variants(self) -> List[str]:
        """Name plus aliases, de-duplicated case-insensitively, order preserved."""
        seen = set()
        variants = []
        for value in [self.name, *self.aliases]:
            key = (value or "").strip().lower()
            if key and key not in seen:
                seen.add(key)
                variants.append(value.strip())
        return variants
