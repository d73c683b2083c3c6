"""
Question Generation

Template-driven assessment questions for answer engines.
"""

from .templates import (
    QuestionType,
    QuestionTemplate,
    TEMPLATE_LIBRARY,
    TYPE_WEIGHTS,
    get_templates_by_type,
)
from .generator import (
    GeneratedQuestion,
    QuestionGenerator,
    allocate_counts,
    build_slot_values,
    normalize_question,
)

__all__ = [
    "QuestionType",
    "QuestionTemplate",
    "TEMPLATE_LIBRARY",
    "TYPE_WEIGHTS",
    "get_templates_by_type",
    "GeneratedQuestion",
    "QuestionGenerator",
    "allocate_counts",
    "build_slot_values",
    "normalize_question",
]
