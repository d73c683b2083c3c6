"""
Question Template Library

Fixed library of conversational question templates. Each template is bound to
exactly one question type and names its slots with ``{slot}`` placeholders,
which the generator fills from the company context.
"""

from dataclasses import dataclass
from enum import Enum
from string import Formatter
from typing import Dict, List, Tuple


class QuestionType(str, Enum):
    """Kind of assessment question sent to the answer engine."""
    DIRECT_CONVERSATIONAL = "direct_conversational"  # Brand named in the question
    INDIRECT = "indirect"  # Category question, brand not named
    COMPARISON = "comparison"  # Brand against named competitors
    RECOMMENDATION = "recommendation"  # "What should I buy" requests
    EXPLANATORY = "explanatory"  # Educational questions about the space


# Share of questions per type when all types are allowed
TYPE_WEIGHTS: Dict[QuestionType, float] = {
    QuestionType.DIRECT_CONVERSATIONAL: 0.30,
    QuestionType.INDIRECT: 0.25,
    QuestionType.COMPARISON: 0.20,
    QuestionType.RECOMMENDATION: 0.15,
    QuestionType.EXPLANATORY: 0.10,
}


@dataclass(frozen=True)
class QuestionTemplate:
    """A single question template."""
    id: str
    template: str
    type: QuestionType
    weight: float = 1.0

    @property
    def slots(self) -> Tuple[str, ...]:
        return tuple(
            name for _, name, _, _ in Formatter().parse(self.template) if name
        )

    def render(self, values: Dict[str, str]) -> str:
        return self.template.format(**{slot: values[slot] for slot in self.slots})


TEMPLATE_LIBRARY: List[QuestionTemplate] = [
    # Direct conversational (brand-specific)
    QuestionTemplate(
        "direct-eval-01",
        "Help me understand what {company} does and if it's right for my {use_case} needs",
        QuestionType.DIRECT_CONVERSATIONAL,
    ),
    QuestionTemplate(
        "direct-eval-02",
        "I'm evaluating {company} for our {company_size} - what should I know about their pricing and features?",
        QuestionType.DIRECT_CONVERSATIONAL,
    ),
    QuestionTemplate(
        "direct-decision-01",
        "What are the pros and cons of choosing {company} over alternatives in the {category} space?",
        QuestionType.DIRECT_CONVERSATIONAL,
    ),
    QuestionTemplate(
        "direct-choice-01",
        "Is {company} a good choice for {use_case}? What are the alternatives I should consider?",
        QuestionType.DIRECT_CONVERSATIONAL,
    ),
    QuestionTemplate(
        "direct-investment-01",
        "Is {company} worth the investment for a {company_size}? What's the typical ROI?",
        QuestionType.DIRECT_CONVERSATIONAL,
        weight=0.9,
    ),
    QuestionTemplate(
        "direct-approach-01",
        "Walk me through {company}'s approach to {problem_space} and why it matters",
        QuestionType.DIRECT_CONVERSATIONAL,
        weight=0.8,
    ),
    QuestionTemplate(
        "direct-implement-01",
        "If I choose {company}, what should I know about implementation and getting started?",
        QuestionType.DIRECT_CONVERSATIONAL,
        weight=0.8,
    ),
    QuestionTemplate(
        "direct-domain-01",
        "What do people say about {domain} and the product behind it?",
        QuestionType.DIRECT_CONVERSATIONAL,
        weight=0.7,
    ),

    # Indirect (competitive landscape, brand not named)
    QuestionTemplate(
        "indirect-options-01",
        "I need to choose the best {category} platform for my team - what are my options?",
        QuestionType.INDIRECT,
    ),
    QuestionTemplate(
        "indirect-criteria-01",
        "What should I look for when evaluating {category} tools for a {company_size}?",
        QuestionType.INDIRECT,
    ),
    QuestionTemplate(
        "indirect-building-01",
        "I'm setting up {use_case} - what tools and platforms should I consider?",
        QuestionType.INDIRECT,
    ),
    QuestionTemplate(
        "indirect-recommend-01",
        "What are the top {category} solutions for a {company_size} right now?",
        QuestionType.INDIRECT,
    ),
    QuestionTemplate(
        "indirect-landscape-01",
        "Help me understand the landscape of {market} solutions and the key players",
        QuestionType.INDIRECT,
        weight=0.9,
    ),
    QuestionTemplate(
        "indirect-budget-01",
        "I have a {budget} budget for {category} tools - what do you recommend?",
        QuestionType.INDIRECT,
        weight=0.9,
    ),
    QuestionTemplate(
        "indirect-role-01",
        "I'm a {role} at a {company_size} looking for a {solution_type} - what should I consider?",
        QuestionType.INDIRECT,
        weight=0.8,
    ),
    QuestionTemplate(
        "indirect-keyword-01",
        "Which companies are known for {keyword}?",
        QuestionType.INDIRECT,
        weight=0.8,
    ),

    # Comparison
    QuestionTemplate(
        "comp-detailed-01",
        "Create a detailed comparison of {company} vs {competitor1} vs {competitor2}",
        QuestionType.COMPARISON,
    ),
    QuestionTemplate(
        "comp-usecase-01",
        "Compare {company} and {competitor1} for {use_case} - which is better?",
        QuestionType.COMPARISON,
    ),
    QuestionTemplate(
        "comp-features-01",
        "Compare the features and capabilities of {company} versus {competitor1}",
        QuestionType.COMPARISON,
    ),
    QuestionTemplate(
        "comp-pricing-01",
        "How does {company}'s pricing compare to {competitor1} and other {category} tools?",
        QuestionType.COMPARISON,
        weight=0.9,
    ),
    QuestionTemplate(
        "comp-enterprise-01",
        "{company} vs {competitor2} for larger customers - comprehensive comparison",
        QuestionType.COMPARISON,
        weight=0.9,
    ),

    # Recommendation
    QuestionTemplate(
        "rec-best-01",
        "What's the best {category} solution for {use_case} this year?",
        QuestionType.RECOMMENDATION,
    ),
    QuestionTemplate(
        "rec-budget-01",
        "I have {budget} to spend on {category} - what do you recommend and why?",
        QuestionType.RECOMMENDATION,
    ),
    QuestionTemplate(
        "rec-startup-01",
        "Recommend {category} tools for a growing company focused on {use_case}",
        QuestionType.RECOMMENDATION,
        weight=0.9,
    ),
    QuestionTemplate(
        "rec-persona-01",
        "As a {persona}, which {solution_type} would you recommend I try first?",
        QuestionType.RECOMMENDATION,
        weight=0.8,
    ),
    QuestionTemplate(
        "rec-integration-01",
        "I need a {solution_type} that integrates well with our existing tech stack - recommendations?",
        QuestionType.RECOMMENDATION,
        weight=0.8,
    ),

    # Explanatory
    QuestionTemplate(
        "exp-differences-01",
        "Explain the key differences between {category} platforms like {company} and {competitor1}",
        QuestionType.EXPLANATORY,
        weight=0.9,
    ),
    QuestionTemplate(
        "exp-choosing-01",
        "How do I choose between {category} solutions? What criteria matter most?",
        QuestionType.EXPLANATORY,
        weight=0.9,
    ),
    QuestionTemplate(
        "exp-market-01",
        "How has the {market} market evolved and what are the leading solutions?",
        QuestionType.EXPLANATORY,
        weight=0.8,
    ),
    QuestionTemplate(
        "exp-approach-01",
        "What are the different approaches to {problem_space} and their trade-offs?",
        QuestionType.EXPLANATORY,
        weight=0.8,
    ),
]


def get_templates_by_type(question_type: QuestionType) -> List[QuestionTemplate]:
    """Templates of one type, highest weight first, library order on ties."""
    indexed = [
        (i, t) for i, t in enumerate(TEMPLATE_LIBRARY) if t.type == question_type
    ]
    indexed.sort(key=lambda pair: (-pair[1].weight, pair[0]))
    return [t for _, t in indexed]
