"""
mistake_patterns.py - Statistics over a learner's recorded mistakes

Provides:
- summarize_mistakes(mistakes, now) - topic shares, week-over-week change,
  14-day history, frequent wrong solution steps and recommendations

Input rows are the dictionaries returned by lessonflow.db.mistakes.
"""

import re
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from lessonflow.models.mistake import (
    DailyMistakes,
    MistakeSummary,
    StepPattern,
    TopicStat,
)

logger = logging.getLogger(__name__)

HISTORY_DAYS = 14
MAX_STEP_PATTERNS = 5
MISTAKE_FREE_STREAK_DAYS = 3

# Techniques a solution step can name; a flagged step counts toward each one it mentions
STEP_KEYWORDS = {
    "factor": ("factor", "factoring", "factorise", "factorize"),
    "expand": ("expand", "foil", "distribute", "distributive"),
    "combine": ("combine", "like terms", "group"),
    "simplify": ("simplify", "cancel", "reduce"),
    "substitute": ("substitute", "plug in"),
    "isolate": ("isolate", "move", "subtract both", "add both"),
    "divide": ("divide", "division"),
    "multiply": ("multiply", "multiplication"),
    "square root": ("square root", "sqrt"),
    "quadratic formula": ("quadratic formula", "discriminant"),
}


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are UTC (SQLite CURRENT_TIMESTAMP)."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        logger.warning("Unparseable mistake timestamp: %r", value)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _step_text(step: Any) -> str:
    if isinstance(step, dict):
        return f"{step.get('step', '')} {step.get('explanation', '')}"
    return str(step or "")


def _keywords_in(text: str) -> set[str]:
    lowered = text.lower()
    found = set()
    for keyword, aliases in STEP_KEYWORDS.items():
        for alias in aliases:
            if re.search(rf"\b{re.escape(alias)}", lowered):
                found.add(keyword)
                break
    return found


def find_step_patterns(mistakes: List[Dict[str, Any]]) -> List[StepPattern]:
    """Count which techniques show up in the steps learners flagged as wrong.

    Each exercise mistake contributes at most once per technique.
    """
    exercise_mistakes = [m for m in mistakes if m.get("type") == "exercise"]
    if not exercise_mistakes:
        return []

    counts: Counter = Counter()
    for mistake in exercise_mistakes:
        steps = mistake.get("step_details") or []
        keywords: set[str] = set()
        for idx in mistake.get("incorrect_steps") or []:
            if isinstance(idx, int) and 0 <= idx < len(steps):
                keywords |= _keywords_in(_step_text(steps[idx]))
        counts.update(keywords)

    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:MAX_STEP_PATTERNS]
    return [
        StepPattern(
            keyword=keyword,
            count=count,
            percent_of_exercise_mistakes=round(count / len(exercise_mistakes) * 100, 1),
        )
        for keyword, count in ranked
    ]


def summarize_mistakes(
    mistakes: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> MistakeSummary:
    """Build the learner/parent mistake overview."""
    now = now or datetime.now(timezone.utc)
    total = len(mistakes)
    if total == 0:
        return MistakeSummary(history=_history([], now))

    dated = [(m, _parse_timestamp(m.get("created_at"))) for m in mistakes]

    topic_counts = Counter(m.get("topic") or "unknown" for m in mistakes)
    topics = [
        TopicStat(topic=topic, count=count, percent=round(count / total * 100, 1))
        for topic, count in sorted(topic_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    by_type = dict(Counter(m.get("type") for m in mistakes))

    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    this_week = sum(1 for _, ts in dated if ts and ts >= week_ago)
    last_week = sum(1 for _, ts in dated if ts and two_weeks_ago <= ts < week_ago)
    percent_change = (last_week - this_week) / last_week * 100 if last_week > 0 else 0.0

    timestamps = [ts for _, ts in dated if ts]
    days_since_last = (now - max(timestamps)).days if timestamps else 0

    most_challenging = topics[0].topic
    patterns = find_step_patterns(mistakes)

    recommendations = []
    if patterns:
        top = patterns[0]
        recommendations.append(
            f"Focus on {top.keyword} techniques - you've struggled with this {top.count} times"
        )
    recommendations.append(
        f"Practice more {most_challenging} problems - this is your most challenging area"
    )
    if percent_change > 0:
        recommendations.append(
            f"Great progress! You've reduced mistakes by {percent_change:.0f}% this week"
        )
    if days_since_last >= MISTAKE_FREE_STREAK_DAYS:
        recommendations.append(
            f"{days_since_last} days mistake-free! Keep up the excellent work!"
        )

    return MistakeSummary(
        total=total,
        by_type=by_type,
        topics=topics,
        this_week=this_week,
        last_week=last_week,
        percent_change=round(percent_change, 1),
        days_since_last_mistake=max(days_since_last, 0),
        most_challenging_topic=most_challenging,
        step_patterns=patterns,
        history=_history(dated, now),
        recommendations=recommendations,
    )


def _history(dated, now: datetime) -> List[DailyMistakes]:
    """Per-day counts by mistake type for the last HISTORY_DAYS days, oldest first."""
    today = now.astimezone(timezone.utc).date()
    days = [today - timedelta(days=offset) for offset in range(HISTORY_DAYS - 1, -1, -1)]
    buckets = {d.isoformat(): DailyMistakes(date=d.isoformat()) for d in days}

    for mistake, ts in dated:
        if ts is None:
            continue
        bucket = buckets.get(ts.astimezone(timezone.utc).date().isoformat())
        kind = mistake.get("type")
        if bucket is not None and kind in ("quiz", "exercise", "practice"):
            setattr(bucket, kind, getattr(bucket, kind) + 1)

    return list(buckets.values())
