#!/usr/bin/env python3
"""
Assessment Runner

Runs a complete AI visibility assessment from the command line:
1. Connectivity self-test against Perplexity
2. Company context from the knowledge base
3. Assessment questions, answers and analysis
4. Score summary with competitor benchmark

Usage:
    # Set environment variables first (or put them in .env):
    export PERPLEXITY_API_KEY=your_key
    export DATABASE_URL=postgresql://...   # optional, SQLite otherwise

    # Run assessment:
    python scripts/run_assessment.py acme.dev --company "Acme Corp"

    # With options:
    python scripts/run_assessment.py acme.dev \
        --company "Acme Corp" \
        --alias Acme \
        --questions 15 \
        --types comparison recommendation
"""

import argparse
import asyncio
import logging
from datetime import datetime

from visibility.database import init_db
from visibility.questions import QuestionType
from visibility.services import AssessmentOptions, AssessmentService, CompanyInput
from visibility.utils.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_assessment(
    domain: str,
    company_name: str = None,
    aliases: list = None,
    industry: str = None,
    question_count: int = None,
    question_types: list = None,
):
    """Run one assessment and print the outcome."""
    settings = get_settings()
    if not settings.PERPLEXITY_API_KEY:
        print("ERROR: Missing required environment variable PERPLEXITY_API_KEY")
        print("\nSet it with:")
        print("  export PERPLEXITY_API_KEY=your_key")
        return None

    company_name = company_name or domain.split(".")[0].capitalize()

    print(f"\n{'='*70}")
    print("AI VISIBILITY ASSESSMENT")
    print(f"{'='*70}")
    print(f"Domain:       {domain}")
    print(f"Company:      {company_name}")
    print(f"Aliases:      {', '.join(aliases) if aliases else '(none)'}")
    print(f"Questions:    {question_count or settings.DEFAULT_QUESTION_COUNT}")
    print(f"Types:        {', '.join(question_types) if question_types else 'all'}")
    print(f"{'='*70}\n")

    start_time = datetime.now()

    init_db()

    service = AssessmentService(settings=settings)
    results = await service.assess(
        CompanyInput(
            name=company_name,
            domain=domain,
            industry=industry,
            aliases=aliases or [],
        ),
        AssessmentOptions(question_count=question_count, allowed_types=question_types),
    )

    duration = (datetime.now() - start_time).total_seconds()

    if results["status"] != "completed":
        print(f"✗ Assessment failed: {results['error_message']}")
        return results

    print("\n" + "="*70)
    print("QUESTIONS")
    print("="*70)
    for question in results["questions"]:
        analysis = question["analysis"]
        if analysis is None:
            print(f"✗ [{question['question_type']}] {question['text']} ({question['failure_reason']})")
            continue
        marker = "✓" if analysis["mention_detected"] else "·"
        print(f"{marker} [{question['question_type']}] {question['text']} -> {analysis['question_score']:.0f}")

    print("\n" + "="*70)
    print("COMPETITORS")
    print("="*70)
    breakdown = results["score_breakdown"] or {}
    print(f"{company_name}: rank {breakdown.get('target_rank')} (visibility {breakdown.get('target_visibility_score')})")
    for competitor in results["competitors"]:
        print(f"{competitor['name']}: rank {competitor['rank']} (visibility {competitor['visibility_score']})")

    recommendations = breakdown.get("recommendations") or []
    if recommendations:
        print("\n" + "="*70)
        print("RECOMMENDATIONS")
        print("="*70)
        for rec in recommendations:
            print(f"[{rec['category']}] {rec['title']} (priority {rec['priority']:.2f})")
            print(f"    {rec['description']}")

    stats = results["citation_stats"] or {}
    print("\n" + "="*70)
    print("ASSESSMENT COMPLETE")
    print("="*70)
    print(f"Duration: {duration:.1f} seconds")
    print(f"Total score: {results['total_score']:.1f}/100")
    print(f"Mention rate: {results['mention_rate']:.0%}")
    print(f"Consistency: {results['consistency_score']:.1f}/100")
    print(f"Citations: {stats.get('total', 0)} {stats.get('by_bucket', {})}")
    for warning in results["warnings"]:
        print(f"⚠ {warning}")
    print("="*70 + "\n")

    return results


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run an AI visibility assessment for a company"
    )
    parser.add_argument(
        "domain",
        help="Company domain (e.g., acme.dev)"
    )
    parser.add_argument(
        "--company",
        default=None,
        help="Company name (default: derived from domain)"
    )
    parser.add_argument(
        "--alias",
        action="append",
        default=[],
        help="Alternative brand spelling (repeatable)"
    )
    parser.add_argument(
        "--industry",
        default=None,
        help="Industry, used as the question category"
    )
    parser.add_argument(
        "--questions",
        type=int,
        default=None,
        help="Number of assessment questions"
    )
    parser.add_argument(
        "--types",
        nargs="+",
        default=None,
        choices=[t.value for t in QuestionType],
        help="Restrict to these question types"
    )

    args = parser.parse_args()

    results = asyncio.run(run_assessment(
        domain=args.domain,
        company_name=args.company,
        aliases=args.alias,
        industry=args.industry,
        question_count=args.questions,
        question_types=args.types,
    ))

    if results:
        print(f"\nRun id: {results['run_id']}")


if __name__ == "__main__":
    main()
