"""Tests for mistake statistics and recommendations."""

from datetime import datetime, timedelta, timezone

from lessonflow.services.mistake_patterns import (
    HISTORY_DAYS,
    find_step_patterns,
    summarize_mistakes,
)

NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)

FOIL_STEPS = [
    {"step": "$(x + 4)(x + 3)$", "explanation": "Two binomials to multiply together"},
    {"step": "$x^2 + 3x + 4x + 12$", "explanation": "Apply FOIL method"},
    {"step": "$x^2 + 7x + 12$", "explanation": "Combine like terms"},
]

FACTOR_STEPS = [
    {"step": "$x^2 - 9 = 0$", "explanation": "Recognise a difference of squares"},
    {"step": "$(x - 3)(x + 3) = 0$", "explanation": "Factor the left side"},
]


def _mistake(kind, topic, days_ago, incorrect_steps=None, steps=None):
    return {
        "type": kind,
        "topic": topic,
        "problem": "p",
        "incorrect_steps": incorrect_steps or [],
        "step_details": steps,
        "created_at": (NOW - timedelta(days=days_ago)).isoformat(),
    }


class TestSummary:

    def test_empty_log(self):
        summary = summarize_mistakes([], now=NOW)
        assert summary.total == 0
        assert summary.topics == []
        assert summary.most_challenging_topic is None
        assert summary.recommendations == []
        assert len(summary.history) == HISTORY_DAYS
        assert all(d.quiz == d.exercise == d.practice == 0 for d in summary.history)

    def test_topic_shares_and_most_challenging(self):
        mistakes = [
            _mistake("quiz", "Quadratics", 1),
            _mistake("exercise", "Quadratics", 2),
            _mistake("practice", "Quadratics", 2),
            _mistake("quiz", "Linear", 3),
        ]
        summary = summarize_mistakes(mistakes, now=NOW)
        assert summary.total == 4
        assert summary.most_challenging_topic == "Quadratics"
        assert summary.topics[0].topic == "Quadratics"
        assert summary.topics[0].count == 3
        assert summary.topics[0].percent == 75.0
        assert summary.topics[1].percent == 25.0
        assert summary.by_type == {"quiz": 2, "exercise": 1, "practice": 1}

    def test_week_over_week_improvement(self):
        mistakes = [
            _mistake("quiz", "Linear", 1),
            _mistake("quiz", "Linear", 8),
            _mistake("quiz", "Linear", 9),
            _mistake("quiz", "Linear", 10),
            _mistake("quiz", "Linear", 11),
            _mistake("quiz", "Linear", 30),
        ]
        summary = summarize_mistakes(mistakes, now=NOW)
        assert summary.this_week == 1
        assert summary.last_week == 4
        assert summary.percent_change == 75.0
        assert "Great progress! You've reduced mistakes by 75% this week" in summary.recommendations

    def test_no_previous_week_means_no_change(self):
        summary = summarize_mistakes([_mistake("quiz", "Linear", 1)], now=NOW)
        assert summary.last_week == 0
        assert summary.percent_change == 0.0

    def test_mistake_free_streak(self):
        summary = summarize_mistakes([_mistake("quiz", "Linear", 5)], now=NOW)
        assert summary.days_since_last_mistake == 5
        assert "5 days mistake-free! Keep up the excellent work!" in summary.recommendations

    def test_recent_mistake_has_no_streak_message(self):
        summary = summarize_mistakes([_mistake("quiz", "Linear", 1)], now=NOW)
        assert summary.days_since_last_mistake == 1
        assert not any("mistake-free" in r for r in summary.recommendations)

    def test_history_buckets_by_day_and_type(self):
        mistakes = [
            _mistake("quiz", "Linear", 0),
            _mistake("exercise", "Linear", 0),
            _mistake("exercise", "Linear", 13),
            _mistake("practice", "Linear", 20),
        ]
        summary = summarize_mistakes(mistakes, now=NOW)
        assert summary.history[-1].date == "2026-03-20"
        assert summary.history[-1].quiz == 1
        assert summary.history[-1].exercise == 1
        assert summary.history[0].date == "2026-03-07"
        assert summary.history[0].exercise == 1
        assert sum(d.practice for d in summary.history) == 0

    def test_sqlite_timestamps_are_read_as_utc(self):
        mistake = _mistake("quiz", "Linear", 0)
        mistake["created_at"] = "2026-03-18 09:30:00"
        summary = summarize_mistakes([mistake], now=NOW)
        assert summary.days_since_last_mistake == 2
        assert summary.history[-3].quiz == 1

    def test_recommendation_order(self):
        mistakes = [
            _mistake("exercise", "Polynomials", 1, [1], FOIL_STEPS),
            _mistake("exercise", "Polynomials", 1, [1, 2], FOIL_STEPS),
        ]
        summary = summarize_mistakes(mistakes, now=NOW)
        assert summary.recommendations[0] == "Focus on expand techniques - you've struggled with this 2 times"
        assert summary.recommendations[1] == (
            "Practice more Polynomials problems - this is your most challenging area"
        )


class TestStepPatterns:

    def test_counts_each_technique_once_per_mistake(self):
        mistakes = [
            _mistake("exercise", "Polynomials", 1, [1, 2], FOIL_STEPS),
            _mistake("exercise", "Quadratics", 1, [1], FACTOR_STEPS),
            _mistake("exercise", "Quadratics", 2, [1], FACTOR_STEPS),
            _mistake("exercise", "Quadratics", 3, [], FACTOR_STEPS),
            _mistake("quiz", "Quadratics", 1),
        ]
        patterns = find_step_patterns(mistakes)
        by_keyword = {p.keyword: p for p in patterns}
        assert by_keyword["factor"].count == 2
        assert by_keyword["factor"].percent_of_exercise_mistakes == 50.0
        assert by_keyword["expand"].count == 1
        assert by_keyword["combine"].count == 1
        assert patterns[0].keyword == "factor"

    def test_out_of_range_steps_are_ignored(self):
        mistakes = [_mistake("exercise", "Polynomials", 1, [7], FOIL_STEPS)]
        assert find_step_patterns(mistakes) == []

    def test_no_exercise_mistakes(self):
        assert find_step_patterns([_mistake("quiz", "Linear", 1)]) == []
