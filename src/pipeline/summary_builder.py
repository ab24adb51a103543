"""Helpers for building concise insight text for UI consumption."""

from __future__ import annotations

from typing import Optional

from models import CorrelationInsights


def _clip(s: str, limit: int = 260) -> str:
    s = (s or "").replace("\n", " ").strip()
    if len(s) <= limit:
        return s
    return s[: limit - 3].rstrip() + "..."


def _bullet(label: str, value: str) -> str:
    prefix = f"- {label}: "
    allowed = max(48, 280 - len(prefix))
    return prefix + _clip(value, allowed)


def _sentence(text: str) -> str:
    text = (text or "").strip()
    if not text:
        return text
    text = text[0].upper() + text[1:]
    return text if text.endswith((".", "!", "?")) else text + "."


def build_concise_summary(insights: Optional[CorrelationInsights]) -> str:
    """Create a strict 3-bullet, human-friendly summary for UI cards."""
    if insights is None or (not insights.patterns and insights.confidence_score == 0):
        next_step = (
            insights.recommendations[0]
            if insights is not None and insights.recommendations
            else "Keep logging injections and symptoms daily."
        )
        return (
            "- What we see: Insufficient data in this run.\n"
            "- Why it matters: Without a stable signal, symptom timing around injections is still unknown.\n"
            f"{_bullet('Next 24-48h', next_step)}"
        )

    if insights.patterns:
        what_we_see = _sentence(insights.patterns[0].description)
    elif insights.peak_symptom_window is not None:
        what_we_see = _sentence(insights.peak_symptom_window.description)
    else:
        what_we_see = "No recurring symptom pattern stands out yet."

    if insights.peak_symptom_window is not None and insights.patterns:
        why = (
            f"{_sentence(insights.peak_symptom_window.description)} "
            f"Confidence in these patterns is {insights.confidence_score}/100."
        )
    else:
        why = f"Confidence in these patterns is {insights.confidence_score}/100 based on your logged history."

    next_step = insights.recommendations[0] if insights.recommendations else "Keep logging to sharpen these insights."

    return (
        f"{_bullet('What we see', what_we_see)}\n"
        f"{_bullet('Why it matters', why)}\n"
        f"{_bullet('Next 24-48h', next_step)}"
    )
