"""Service layer for AI visibility assessments."""

from .assessment import AssessmentService, AssessmentOptions, CompanyInput

__all__ = [
    "AssessmentService",
    "AssessmentOptions",
    "CompanyInput",
]
