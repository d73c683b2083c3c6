"""
Tests for trend tracking across runs.
"""

import pytest

from visibility.analysis.trends import compute_trends, trend_direction


def _run(run_id, completed_at, score, rate, status="completed"):
    return {
        "run_id": run_id,
        "status": status,
        "total_score": score,
        "mention_rate": rate,
        "created_at": completed_at,
        "completed_at": completed_at if status == "completed" else None,
    }


class TestTrendDirection:

    @pytest.mark.parametrize("change, expected", [
        (5.0, "upward"),
        (-5.0, "downward"),
        (1.5, "stable"),
        (-2.0, "stable"),
        (None, None),
    ])
    def test_directions(self, change, expected):
        assert trend_direction(change, 2.0) == expected


class TestComputeTrends:

    def test_points_are_oldest_first_with_deltas(self):
        runs = [
            _run("c", "2026-03-01T00:00:00", 70.0, 0.8),
            _run("a", "2026-01-01T00:00:00", 40.0, 0.4),
            _run("b", "2026-02-01T00:00:00", 55.0, 0.6),
        ]

        trends = compute_trends(runs)

        assert trends["runs_compared"] == 3
        assert [p["run_id"] for p in trends["points"]] == ["a", "b", "c"]
        assert trends["points"][0]["score_change"] is None
        assert [p["score_change"] for p in trends["points"][1:]] == [15.0, 15.0]
        assert [p["mention_rate_change"] for p in trends["points"][1:]] == [0.2, 0.2]
        assert trends["total_score"]["change"] == 30.0
        assert trends["total_score"]["direction"] == "upward"
        assert trends["mention_rate"]["direction"] == "upward"
        assert trends["total_score"]["best"] == 70.0

    def test_only_completed_runs_count(self):
        runs = [
            _run("a", "2026-01-01T00:00:00", 60.0, 0.5),
            _run("b", "2026-02-01T00:00:00", None, None, status="failed"),
            _run("c", "2026-03-01T00:00:00", None, None, status="running"),
        ]

        trends = compute_trends(runs)

        assert [p["run_id"] for p in trends["points"]] == ["a"]
        assert trends["total_score"]["change"] is None
        assert trends["total_score"]["direction"] is None

    def test_decline_raises_alert(self):
        runs = [
            _run("a", "2026-01-01T00:00:00", 80.0, 0.9),
            _run("b", "2026-02-01T00:00:00", 79.0, 0.9),
            _run("c", "2026-03-01T00:00:00", 60.0, 0.7),
        ]

        trends = compute_trends(runs)

        assert trends["total_score"]["direction"] == "downward"
        assert len(trends["alerts"]) == 1
        alert = trends["alerts"][0]
        assert alert["run_id"] == "c"
        assert alert["change_percentage"] == pytest.approx(-24.1, abs=0.1)
        assert "decline" in alert["description"]

    def test_no_runs(self):
        trends = compute_trends([])

        assert trends["runs_compared"] == 0
        assert trends["points"] == []
        assert trends["total_score"]["latest"] is None
        assert trends["alerts"] == []
