"""
Question Generator

Turns a CompanyContext into a deterministic set of assessment questions.

Algorithm:
1. Split the requested count across the allowed types by TYPE_WEIGHTS
   (largest remainder, ties broken by type order)
2. For each type, render templates in descending weight / library order
3. Skip renders whose normalized text was already produced
4. Top up any shortfall round-robin from types that still have templates

Same context + same count + same types -> same texts in the same order.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set, Union

from ..context.models import CompanyContext, CompanySize
from .templates import (
    QuestionTemplate,
    QuestionType,
    TYPE_WEIGHTS,
    get_templates_by_type,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedQuestion:
    """A rendered assessment question, immutable once generated."""
    sequence: int  # 1-based
    question_type: QuestionType
    text: str
    template_id: str


# =============================================================================
# SLOT VALUES
# =============================================================================

COMPETITOR_FALLBACKS = ("the leading alternatives", "other established vendors")

# category -> (problem_space, solution_type, market, role, default use case)
CATEGORY_PROFILES: Dict[str, tuple] = {
    "analytics": ("data-driven decision making", "analytics platform", "business intelligence", "data analyst", "reporting and dashboards"),
    "marketing": ("customer acquisition", "marketing platform", "marketing technology", "marketing manager", "campaign management"),
    "sales": ("pipeline growth", "sales platform", "sales technology", "sales manager", "lead management"),
    "crm": ("customer relationships", "CRM system", "CRM", "sales manager", "customer data management"),
    "security": ("threat protection", "security solution", "cybersecurity", "security lead", "threat detection"),
    "developer tools": ("developer productivity", "developer platform", "developer tooling", "engineering lead", "software delivery"),
    "ai": ("automation with AI", "AI platform", "artificial intelligence", "head of operations", "workflow automation"),
    "ecommerce": ("online sales growth", "ecommerce platform", "ecommerce", "ecommerce manager", "online store management"),
    "finance": ("financial operations", "finance platform", "financial technology", "finance lead", "expense management"),
    "hr": ("people operations", "HR platform", "HR technology", "HR manager", "employee onboarding"),
    "healthcare": ("patient outcomes", "healthcare platform", "healthcare technology", "operations lead", "patient management"),
    "education": ("learning outcomes", "learning platform", "education technology", "program manager", "online learning"),
    "project management": ("team coordination", "project management tool", "project management software", "project manager", "project tracking"),
    "communication": ("team communication", "collaboration tool", "collaboration software", "team lead", "team messaging"),
}

DEFAULT_PROFILE = ("business efficiency", "software solution", "business software", "business owner", "day-to-day operations")

SIZE_LABELS = {
    CompanySize.STARTUP: "startup",
    CompanySize.SMALL: "small business",
    CompanySize.MEDIUM: "mid-sized company",
    CompanySize.ENTERPRISE: "enterprise",
}

BUDGET_LABELS = {
    CompanySize.STARTUP: "limited",
    CompanySize.SMALL: "modest",
    CompanySize.MEDIUM: "mid-range",
    CompanySize.ENTERPRISE: "enterprise-level",
}

# Free-text knowledge entries longer than this are not used verbatim in a question
MAX_SLOT_LENGTH = 60


def _short(values: List[str]) -> Optional[str]:
    for value in values:
        value = (value or "").strip().rstrip(".")
        if value and len(value) <= MAX_SLOT_LENGTH:
            return value
    return None


def build_slot_values(context: CompanyContext) -> Dict[str, str]:
    """Fill every template slot from context, with deterministic fallbacks."""
    category = (context.category or "technology").strip()
    problem_space, solution_type, market, role, default_use_case = CATEGORY_PROFILES.get(
        category.lower(), DEFAULT_PROFILE
    )

    competitor_names = [c.name for c in context.competitors if c.name]
    competitor1 = competitor_names[0] if competitor_names else COMPETITOR_FALLBACKS[0]
    competitor2 = competitor_names[1] if len(competitor_names) > 1 else COMPETITOR_FALLBACKS[1]

    return {
        "company": context.name,
        "domain": context.domain,
        "category": category,
        "competitor1": competitor1,
        "competitor2": competitor2,
        "use_case": _short(context.use_cases) or default_use_case,
        "problem_space": _short(context.pain_points) or problem_space,
        "solution_type": solution_type,
        "market": market,
        "company_size": SIZE_LABELS.get(context.company_size, "company"),
        "budget": BUDGET_LABELS.get(context.company_size, "moderate"),
        "role": role,
        "persona": _short(context.target_personas) or role,
        "keyword": _short(context.keywords) or category,
    }


# =============================================================================
# GENERATOR
# =============================================================================


def normalize_question(text: str) -> str:
    """Case- and whitespace-insensitive key used for de-duplication."""
    return re.sub(r"\s+", " ", text).strip().lower()


def allocate_counts(count: int, types: List[QuestionType]) -> Dict[QuestionType, int]:
    """
    Split ``count`` across ``types`` proportionally to TYPE_WEIGHTS.

    Largest-remainder method: floors first, then the leftover units go to the
    largest fractional parts, earlier types winning ties.
    """
    if count <= 0 or not types:
        return {t: 0 for t in types}

    total_weight = sum(TYPE_WEIGHTS[t] for t in types)
    # Rounded so float noise cannot change floors or tie order
    exact = {t: round(count * TYPE_WEIGHTS[t] / total_weight, 9) for t in types}
    quotas = {t: int(math.floor(exact[t])) for t in types}

    leftover = count - sum(quotas.values())
    by_remainder = sorted(
        range(len(types)),
        key=lambda i: (-(exact[types[i]] - quotas[types[i]]), i),
    )
    for i in by_remainder[:leftover]:
        quotas[types[i]] += 1

    return quotas


class QuestionGenerator:
    """
    Generates assessment questions from the template library.

    Usage:
        generator = QuestionGenerator()
        for question in generator.generate(context, count=10):
            print(question.sequence, question.text)
    """

    def __init__(self, type_order: Optional[List[QuestionType]] = None):
        self.type_order = type_order or list(TYPE_WEIGHTS.keys())

    def generate(
        self,
        context: CompanyContext,
        count: int,
        allowed_types: Optional[Iterable[Union[QuestionType, str]]] = None,
    ) -> Iterator[GeneratedQuestion]:
        """
        Generate up to ``count`` questions.

        Arguments are validated immediately; questions are produced lazily as
        the returned iterator is consumed.

        Args:
            context: Company context to fill slots from
            count: Number of questions wanted (<= 0 yields nothing)
            allowed_types: Restrict to these types (default: all)

        Returns:
            Single-use iterator of GeneratedQuestion, sequence starting at 1

        Raises:
            ValueError: If an allowed type is unknown
        """
        types = self._resolve_types(allowed_types)
        return self._iter_questions(context, count, types)

    def _resolve_types(
        self, allowed_types: Optional[Iterable[Union[QuestionType, str]]]
    ) -> List[QuestionType]:
        if allowed_types is None:
            return list(self.type_order)

        requested: Set[QuestionType] = set()
        for value in allowed_types:
            try:
                requested.add(QuestionType(value))
            except ValueError:
                raise ValueError(f"Unknown question type: {value!r}") from None

        return [t for t in self.type_order if t in requested]

    def _iter_questions(
        self,
        context: CompanyContext,
        count: int,
        types: List[QuestionType],
    ) -> Iterator[GeneratedQuestion]:
        if count <= 0 or not types:
            return

        values = build_slot_values(context)
        pools: Dict[QuestionType, List[QuestionTemplate]] = {
            t: list(get_templates_by_type(t)) for t in types
        }
        seen: Set[str] = set()
        sequence = 0

        def take(question_type: QuestionType) -> Optional[GeneratedQuestion]:
            nonlocal sequence
            pool = pools[question_type]
            while pool:
                template = pool.pop(0)
                text = template.render(values)
                key = normalize_question(text)
                if key in seen:
                    continue
                seen.add(key)
                sequence += 1
                return GeneratedQuestion(
                    sequence=sequence,
                    question_type=question_type,
                    text=text,
                    template_id=template.id,
                )
            return None

        quotas = allocate_counts(count, types)
        produced = 0

        for question_type in types:
            for _ in range(quotas[question_type]):
                question = take(question_type)
                if question is None:
                    break
                produced += 1
                yield question

        # Round-robin top-up when some type ran out of templates
        while produced < count:
            progressed = False
            for question_type in types:
                if produced >= count:
                    break
                question = take(question_type)
                if question is not None:
                    produced += 1
                    progressed = True
                    yield question
            if not progressed:
                break

        if produced < count:
            logger.info(
                f"Template library exhausted for {context.name}: "
                f"generated {produced} of {count} requested questions"
            )
