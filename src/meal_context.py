"""
Meal-context advisor: "what should I watch for with this meal, today?"

Combines days since the last injection with the user's CorrelationInsights
into at most 3 warnings and 2 tips, plus a coarse daily risk level.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from constants import SYMPTOM_FAMILIES
from models import CorrelationInsights, MealContext, MealContextWarning, Pattern
from settings import DEFAULT_SETTINGS, AnalyticsSettings

log = logging.getLogger("meal_context")

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

INJECTION_DAY_NOTE = (
    "Injection day - some users experience immediate mild nausea. "
    "Consider eating this meal before injecting if you haven't already."
)


def symptom_family(symptom: str) -> Optional[str]:
    name = (symptom or "").strip().lower()
    for family, aliases in SYMPTOM_FAMILIES.items():
        if name in aliases:
            return family
    return None


def _severity_level(avg_severity: float, settings: AnalyticsSettings) -> str:
    if avg_severity >= settings.severe_threshold:
        return "high"
    if avg_severity >= settings.moderate_threshold:
        return "medium"
    return "low"


class MealContextAdvisor:

    def __init__(self, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.settings = settings

    def build(
        self,
        days_since: int,
        insights: CorrelationInsights,
        meal_type: Optional[str] = None,
    ) -> MealContext:
        """Assemble the meal context for ``days_since`` days after the last injection.

        ``days_since`` is -1 when no injection has been logged; the context
        then carries no warnings or tips.
        """
        meal = (meal_type or "").strip().lower() or None
        is_injection_day = days_since == 0

        if days_since < 0:
            return MealContext(
                days_since_injection=days_since,
                is_injection_day=False,
                is_peak_symptom_window=False,
                confidence=insights.confidence_score,
            )

        peak = insights.peak_symptom_window
        is_peak = bool(peak and days_since in peak.days)

        warnings = self._warnings(days_since, insights, is_injection_day, is_peak, meal)
        tips = self._tips(days_since, insights, is_injection_day, is_peak, meal)

        return MealContext(
            days_since_injection=days_since,
            is_injection_day=is_injection_day,
            is_peak_symptom_window=is_peak,
            warnings=warnings,
            tips=tips,
            confidence=insights.confidence_score,
        )

    def daily_risk_level(self, context: MealContext) -> str:
        if context.confidence < self.settings.risk_min_confidence:
            return "unknown"
        severities = [w.severity for w in context.warnings]
        if "high" in severities:
            return "high"
        if severities.count("medium") > 1 or context.is_peak_symptom_window:
            return "medium"
        return "low"

    # ─── Warnings ───────────────────────────────────────────

    def _warnings(
        self,
        days_since: int,
        insights: CorrelationInsights,
        is_injection_day: bool,
        is_peak: bool,
        meal: Optional[str] = None,
    ) -> List[MealContextWarning]:
        s = self.settings
        raw: List[MealContextWarning] = []

        if is_injection_day:
            raw.append(MealContextWarning(type="timing", message=INJECTION_DAY_NOTE, severity="low"))

        if is_peak and insights.confidence_score > s.peak_caution_min_confidence and insights.patterns:
            top = insights.patterns[0]
            raw.append(
                MealContextWarning(
                    type="caution",
                    message=(
                        f"Based on your patterns, {top.symptom} risk is elevated today "
                        f"(day {days_since} post-injection). Consider smaller portions and eat slowly."
                    ),
                    severity=_severity_level(top.avg_severity, s),
                )
            )

        for pattern in insights.patterns:
            if days_since in pattern.days_after_injection and pattern.confidence != "low":
                warning = self._pattern_warning(pattern, days_since, meal)
                if warning is not None:
                    raw.append(warning)

        return self._dedupe(raw)

    def _pattern_warning(
        self, pattern: Pattern, days_since: int, meal: Optional[str] = None
    ) -> Optional[MealContextWarning]:
        """Family-specific warning for a pattern matching today, or None when it stays quiet.

        Mild nausea (below the moderate threshold) and early fullness without
        a meal to plan produce no warning.
        """
        family = symptom_family(pattern.symptom)
        if family == "nausea":
            if pattern.avg_severity < self.settings.moderate_threshold:
                return None
            return MealContextWarning(
                type="caution",
                message="Your nausea patterns suggest keeping portions moderate and avoiding strong flavors today.",
                severity="medium",
            )
        if family == "early_fullness":
            if meal is None:
                return None
            return MealContextWarning(
                type="tip",
                message="You may feel full quickly today. Start with half portions and save the rest for later if needed.",
                severity="low",
            )
        if family == "heartburn":
            return MealContextWarning(
                type="caution",
                message="Heartburn risk detected. Avoid lying down for 2-3 hours after eating.",
                severity="medium",
            )
        return MealContextWarning(
            type="caution",
            message=(
                f"{pattern.symptom.capitalize()} has shown up on day {days_since} after past injections. "
                "Keep this meal simple and note how you feel afterwards."
            ),
            severity=_severity_level(pattern.avg_severity, self.settings),
        )

    def _dedupe(self, warnings: List[MealContextWarning]) -> List[MealContextWarning]:
        """One warning per (type, severity), keeping the longer message."""
        unique: Dict[Tuple[str, str], MealContextWarning] = {}
        for w in warnings:
            key = (w.type, w.severity)
            if key not in unique or len(w.message) > len(unique[key].message):
                unique[key] = w
        ordered = sorted(unique.values(), key=lambda w: SEVERITY_ORDER[w.severity])
        return ordered[: self.settings.max_warnings]

    # ─── Tips ───────────────────────────────────────────────

    def _tips(
        self,
        days_since: int,
        insights: CorrelationInsights,
        is_injection_day: bool,
        is_peak: bool,
        meal: Optional[str],
    ) -> List[str]:
        tips: List[str] = []

        matches_today = any(days_since in p.days_after_injection for p in insights.patterns)
        if not matches_today and days_since > 0:
            tips.append("Based on your patterns, today is typically a good day for normal portions.")

        peak = insights.peak_symptom_window
        if peak is not None:
            tomorrow = days_since + 1
            if tomorrow in peak.days and days_since not in peak.days:
                tips.append(f"Tomorrow may be more challenging (day {tomorrow}). Consider meal prepping today.")

        if insights.confidence_score > self.settings.reinforcement_min_confidence:
            tips.append("Your consistent tracking is providing personalized insights!")

        if meal == "breakfast" and is_peak:
            tips.append(
                "Morning meals during peak days: start with something bland like toast, "
                "then add protein if tolerated."
            )
        if meal == "dinner" and is_injection_day:
            tips.append("Injection day dinner: light meals may help with overnight comfort.")

        return tips[: self.settings.max_tips]
