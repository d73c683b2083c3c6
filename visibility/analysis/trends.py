"""
Trend Tracking

Compares a company's completed runs over time: total score and mention
rate per run, change against the previous run, and the overall direction
from the first to the latest run.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Changes inside these bands count as stable
STABLE_SCORE_BAND = 2.0  # score points
STABLE_MENTION_RATE_BAND = 0.05

# A run-to-run change of this share of the previous value raises an alert
SIGNIFICANT_CHANGE = 0.10


def trend_direction(change: Optional[float], band: float) -> Optional[str]:
    if change is None:
        return None
    if change > band:
        return "upward"
    if change < -band:
        return "downward"
    return "stable"


def _delta(current: Optional[float], previous: Optional[float], digits: int) -> Optional[float]:
    if current is None or previous is None:
        return None
    return round(current - previous, digits)


def _metric_summary(values: List[float], band: float, digits: int) -> Dict[str, Any]:
    first = values[0] if values else None
    latest = values[-1] if values else None
    change = _delta(latest, first, digits) if len(values) > 1 else None
    return {
        "first": first,
        "latest": latest,
        "change": change,
        "direction": trend_direction(change, band),
        "best": max(values) if values else None,
        "worst": min(values) if values else None,
    }


def compute_trends(runs: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the trend summary for one company.

    Args:
        runs: Run dicts as returned by the run store, in any order and any
            status; only completed runs are used

    Returns:
        Dict with one point per completed run (oldest first, with changes
        against the previous run), score and mention-rate summaries, and
        alerts for significant run-to-run changes
    """
    completed = sorted(
        (r for r in runs if r["status"] == "completed"),
        key=lambda r: (r.get("completed_at") or r.get("created_at") or "", r["run_id"]),
    )

    points = []
    alerts = []
    previous = None
    for run in completed:
        score = run.get("total_score")
        rate = run.get("mention_rate")
        point = {
            "run_id": run["run_id"],
            "completed_at": run.get("completed_at"),
            "total_score": score,
            "mention_rate": rate,
            "score_change": _delta(score, previous["total_score"], 2) if previous else None,
            "mention_rate_change": _delta(rate, previous["mention_rate"], 4) if previous else None,
        }
        points.append(point)

        if previous and previous["total_score"] and point["score_change"] is not None:
            relative = point["score_change"] / previous["total_score"]
            if abs(relative) >= SIGNIFICANT_CHANGE:
                alerts.append({
                    "run_id": run["run_id"],
                    "metric": "total_score",
                    "previous_value": previous["total_score"],
                    "current_value": score,
                    "change_percentage": round(100.0 * relative, 1),
                    "description": f"Significant {'improvement' if relative > 0 else 'decline'} in total score",
                })
        previous = point

    scores = [p["total_score"] for p in points if p["total_score"] is not None]
    rates = [p["mention_rate"] for p in points if p["mention_rate"] is not None]

    logger.debug(f"Computed trends over {len(points)} completed runs")

    return {
        "runs_compared": len(points),
        "points": points,
        "total_score": _metric_summary(scores, STABLE_SCORE_BAND, 2),
        "mention_rate": _metric_summary(rates, STABLE_MENTION_RATE_BAND, 4),
        "alerts": alerts,
    }
