"""
Symptom weighting — recency decay x contextual relevance x severity.

    recency    = exp(-age_days / 21)
    contextual = medication factor (1.0 same / 0.3 other)
                 x max(0.2, 1 - |dose - current_dose| / current_dose)
                 or 0.5 when no injection precedes the log within 7 days
    severity   = 1.2 (>=7), 1.0 (>=5), 0.8 otherwise
    weight     = min(1, recency x contextual x severity)

Logs whose weight falls below the noise floor (0.1) are dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import numpy as np

from models import InjectionEvent, SymptomLog, WeightedSymptomLog, ensure_utc
from settings import DEFAULT_SETTINGS, AnalyticsSettings

log = logging.getLogger("analytics.symptom_weighting")

SECONDS_PER_DAY = 86_400.0


def find_relevant_injection(
    injections: Sequence[InjectionEvent],
    when: datetime,
    lookback_days: int = 7,
) -> Optional[InjectionEvent]:
    """Most recent injection at or before ``when`` with a gap <= lookback.

    Never the nearest injection by absolute distance: an injection logged
    after the symptom is not a candidate, however close.
    """
    limit = timedelta(days=lookback_days)
    latest: Optional[InjectionEvent] = None
    for inj in injections:
        if inj.timestamp <= when and (latest is None or inj.timestamp > latest.timestamp):
            latest = inj
    if latest is None or when - latest.timestamp > limit:
        return None
    return latest


def days_after(injection: InjectionEvent, when: datetime) -> int:
    """Whole days elapsed from ``injection`` to ``when`` (floored)."""
    return int((when - injection.timestamp).total_seconds() // SECONDS_PER_DAY)


def severity_bonus(severity: int, settings: AnalyticsSettings = DEFAULT_SETTINGS) -> float:
    if severity >= settings.severe_threshold:
        return settings.severe_bonus
    if severity >= settings.moderate_threshold:
        return settings.moderate_bonus
    return settings.mild_bonus


class SymptomWeightCalculator:
    """Assign each symptom log a [0, 1] weight relative to the current regimen."""

    def __init__(self, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.settings = settings

    def contextual_weight(
        self,
        relevant: Optional[InjectionEvent],
        current_medication: Optional[str],
        current_dose: float,
    ) -> float:
        s = self.settings
        weight = 1.0
        if relevant is None:
            return weight * s.no_context_factor

        if relevant.medication == current_medication:
            weight *= s.same_medication_factor
        else:
            weight *= s.other_medication_factor

        dose_diff = abs(relevant.dose - current_dose)
        if current_dose > 0:
            dose_relevance = max(s.min_dose_relevance, 1.0 - dose_diff / current_dose)
        else:
            # No current dose to compare against
            dose_relevance = 1.0 if dose_diff == 0 else s.min_dose_relevance
        weight *= dose_relevance
        return min(1.0, max(0.0, weight))

    def weigh(
        self,
        symptom: SymptomLog,
        injections: Sequence[InjectionEvent],
        now: datetime,
        current_medication: Optional[str] = None,
        current_dose: float = 0.0,
    ) -> WeightedSymptomLog:
        s = self.settings
        now = ensure_utc(now)
        age_days = (now - symptom.timestamp).total_seconds() / SECONDS_PER_DAY
        # Logs stamped in the future count as fresh
        recency = float(np.exp(-max(0.0, age_days) / s.recency_decay_days))

        relevant = find_relevant_injection(injections, symptom.timestamp, s.relevance_lookback_days)
        contextual = self.contextual_weight(relevant, current_medication, current_dose)

        weight = min(1.0, recency * contextual * severity_bonus(symptom.severity, s))
        return WeightedSymptomLog(entry=symptom, weight=weight, contextual_relevance=contextual)

    def weigh_all(
        self,
        symptoms: Sequence[SymptomLog],
        injections: Sequence[InjectionEvent],
        now: datetime,
    ) -> List[WeightedSymptomLog]:
        """Weight every log against the newest injection's regimen, dropping noise."""
        current_medication = injections[0].medication if injections else None
        current_dose = injections[0].dose if injections else 0.0

        weighted = [
            self.weigh(sym, injections, now, current_medication, current_dose)
            for sym in symptoms
        ]
        kept = [w for w in weighted if w.weight >= self.settings.noise_weight_floor]
        if len(kept) < len(weighted):
            log.debug("Dropped %d low-weight symptom logs", len(weighted) - len(kept))
        return kept
