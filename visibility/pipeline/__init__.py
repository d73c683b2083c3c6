"""
Assessment Pipeline

Run orchestration: connectivity check, context, questions, concurrent
answering and analysis, aggregation.
"""

from .orchestrator import AssessmentOrchestrator, PipelineConfig

__all__ = [
    "AssessmentOrchestrator",
    "PipelineConfig",
]
