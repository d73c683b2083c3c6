"""
AI Visibility Engine

Measures how visible a company is inside AI-generated answers:
1. Builds company context from the knowledge base
2. Generates conversational assessment questions
3. Queries an answer engine (Perplexity) for each question
4. Scores brand mentions and citations, aggregates a run-level score
"""

__version__ = "0.1.0"
