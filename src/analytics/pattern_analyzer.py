"""
Weighted symptom-pattern analysis.

Groups weighted symptom logs by type and scores each group on three axes:

  recency      min(100, total_weight x 25)
  consistency  max(0, min(100, 100 - variance(day offsets) x 20))
  relevance    min(100, mean(contextual_relevance) x 100)

confidence = round(mean of the three); groups scoring <= 25 are dropped.

Day-offset variance defaults to weighted resampling: every offset is
repeated ceil(weight x 5) times before a plain population variance, so
high-weight logs dominate.  ``variance_method="weighted"`` switches to the
closed form  sum(w (x - xbar)^2) / sum(w).  The two differ slightly.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from analytics.symptom_weighting import days_after, find_relevant_injection
from models import InjectionEvent, Pattern, WeightedSymptomLog
from settings import DEFAULT_SETTINGS, AnalyticsSettings

log = logging.getLogger("analytics.pattern_analyzer")


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half away from zero (Python's round() is banker's rounding)."""
    factor = 10 ** digits
    return math.floor(abs(value) * factor + 0.5) / factor * (1 if value >= 0 else -1)


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def modal_value(values: Sequence[int]) -> Optional[int]:
    """Most frequent value; ties resolve to the larger value."""
    if not values:
        return None
    counts = Counter(values)
    best = max(counts.values())
    return max(v for v, c in counts.items() if c == best)


def severity_tier(severity: float, settings: AnalyticsSettings = DEFAULT_SETTINGS) -> str:
    if severity >= settings.severe_threshold:
        return "severe"
    if severity >= settings.moderate_threshold:
        return "moderate"
    return "mild"


def frequency_adverb(frequency: float) -> str:
    if frequency >= 0.7:
        return "consistently"
    if frequency >= 0.4:
        return "frequently"
    return "occasionally"


def describe_pattern(symptom: str, day: Optional[int], severity: float, frequency: float,
                     settings: AnalyticsSettings = DEFAULT_SETTINGS) -> str:
    tier = severity_tier(severity, settings)
    adverb = frequency_adverb(frequency)
    if day is None:
        return f"{symptom} {adverb} appears without a clear link to injection timing, with {tier} intensity"
    if day == 0:
        return f"{symptom} {adverb} occurs on injection day with {tier} intensity"
    plural = "s" if day > 1 else ""
    return f"{symptom} {adverb} appears {day} day{plural} after injection with {tier} intensity"


class PatternAnalyzer:
    """Derive confidence-scored timing/severity patterns per symptom type."""

    def __init__(self, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.settings = settings

    def analyze(
        self,
        weighted: Sequence[WeightedSymptomLog],
        injections: Sequence[InjectionEvent],
    ) -> List[Pattern]:
        groups: Dict[str, List[WeightedSymptomLog]] = {}
        for w in weighted:
            groups.setdefault(w.symptom, []).append(w)

        patterns: List[Pattern] = []
        for symptom, logs in groups.items():
            if len(logs) < self.settings.min_group_size:
                continue
            pattern = self._analyze_group(symptom, logs, injections)
            if pattern is not None:
                patterns.append(pattern)

        patterns.sort(key=lambda p: p.confidence_score, reverse=True)
        log.debug("%d symptom groups -> %d patterns", len(groups), len(patterns))
        return patterns

    # ─── Per-group scoring ───────────────────────────────────

    def _analyze_group(
        self,
        symptom: str,
        logs: Sequence[WeightedSymptomLog],
        injections: Sequence[InjectionEvent],
    ) -> Optional[Pattern]:
        s = self.settings
        weights = np.array([w.weight for w in logs], dtype=np.float64)
        severities = np.array([w.severity for w in logs], dtype=np.float64)
        total_weight = float(weights.sum())
        if total_weight <= 0:
            log.debug("Skipping %s: zero total weight", symptom)
            return None

        weighted_severity = float((severities * weights).sum() / total_weight)

        offsets: List[int] = []
        offset_weights: List[float] = []
        for w in logs:
            relevant = find_relevant_injection(injections, w.timestamp, s.relevance_lookback_days)
            if relevant is not None:
                offsets.append(days_after(relevant, w.timestamp))
                offset_weights.append(w.weight)

        recency_score = clamp(total_weight * s.recency_score_scale)
        consistency_score = self._consistency(offsets, offset_weights)
        relevance_score = clamp(float(np.mean([w.contextual_relevance for w in logs])) * 100.0)

        confidence = int(round_half_up((recency_score + consistency_score + relevance_score) / 3))
        if confidence <= s.min_pattern_confidence:
            return None

        occurrences = len(logs)
        frequency = occurrences / len(injections) if injections else 0.0
        modal_day = modal_value(offsets)

        return Pattern(
            symptom=symptom,
            avg_severity=round_half_up(weighted_severity, 1),
            frequency=round_half_up(frequency, 2),
            days_after_injection=offsets,
            modal_day=modal_day,
            occurrences=occurrences,
            confidence=self._tier(occurrences),
            confidence_score=int(clamp(confidence)),
            recency_score=recency_score,
            consistency_score=consistency_score,
            relevance_score=relevance_score,
            description=describe_pattern(symptom, modal_day, weighted_severity, frequency, s),
        )

    def _consistency(self, offsets: Sequence[int], weights: Sequence[float]) -> float:
        s = self.settings
        if not offsets:
            return 0.0
        if s.variance_method == "weighted":
            if len(offsets) < 2:
                return 0.0
            x = np.array(offsets, dtype=np.float64)
            w = np.array(weights, dtype=np.float64)
            mean = np.average(x, weights=w)
            variance = float(np.average((x - mean) ** 2, weights=w))
        else:
            reps = [math.ceil(wt * s.resample_factor) for wt in weights]
            samples = np.repeat(np.array(offsets, dtype=np.float64), reps)
            if len(samples) < 2:
                return 0.0
            variance = float(np.var(samples))
        return clamp(100.0 - variance * s.variance_penalty)

    def _tier(self, occurrences: int) -> str:
        if occurrences >= self.settings.high_tier_occurrences:
            return "high"
        if occurrences >= self.settings.medium_tier_occurrences:
            return "medium"
        return "low"
