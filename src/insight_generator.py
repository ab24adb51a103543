"""Turn scored patterns into expiring, actionability-tagged insights."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Sequence

from constants import PLACEHOLDER_INSIGHT
from models import AdaptiveInsight, InjectionEvent, Pattern, WeightedSymptomLog, ensure_utc
from settings import DEFAULT_SETTINGS, AnalyticsSettings

log = logging.getLogger("insight_generator")


def actionability(confidence: int) -> str:
    if confidence > 70:
        return "high"
    if confidence > 40:
        return "medium"
    return "low"


class InsightGenerator:
    """
    Insights are re-evaluated on a schedule:
      valid_until = now + 14d x confidence multiplier x recency multiplier
    where confidence > 70 lasts twice as long (x2), > 40 half again (x1.5),
    and very recent patterns (recency > 80) expire sooner (x0.8).
    """

    def __init__(self, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.settings = settings

    def generate(
        self,
        weighted: Sequence[WeightedSymptomLog],
        patterns: Sequence[Pattern],
        injections: Sequence[InjectionEvent],
        now: datetime,
    ) -> List[AdaptiveInsight]:
        now = ensure_utc(now)
        if len(weighted) < self.settings.min_symptoms or len(injections) < self.settings.min_injections:
            log.info("Not enough weighted data for insights (%d symptoms, %d injections)",
                     len(weighted), len(injections))
            return [self.placeholder(now)]

        insights = [self._from_pattern(p, now) for p in patterns]
        insights.sort(key=lambda i: i.confidence, reverse=True)
        return insights[: self.settings.max_insights]

    def placeholder(self, now: datetime) -> AdaptiveInsight:
        return AdaptiveInsight(
            pattern=PLACEHOLDER_INSIGHT,
            confidence=0,
            recency_score=0.0,
            relevance_score=0.0,
            actionability="low",
            valid_until=ensure_utc(now) + timedelta(days=self.settings.placeholder_days),
        )

    def expiry(self, pattern: Pattern, now: datetime) -> datetime:
        if pattern.confidence_score > 70:
            confidence_multiplier = 2.0
        elif pattern.confidence_score > 40:
            confidence_multiplier = 1.5
        else:
            confidence_multiplier = 1.0
        recency_multiplier = 0.8 if pattern.recency_score > 80 else 1.0
        days_valid = self.settings.insight_base_days * confidence_multiplier * recency_multiplier
        return ensure_utc(now) + timedelta(days=days_valid)

    def _from_pattern(self, pattern: Pattern, now: datetime) -> AdaptiveInsight:
        return AdaptiveInsight(
            pattern=pattern.description,
            symptom=pattern.symptom,
            confidence=pattern.confidence_score,
            recency_score=pattern.recency_score,
            relevance_score=pattern.relevance_score,
            actionability=actionability(pattern.confidence_score),
            valid_until=self.expiry(pattern, now),
        )
