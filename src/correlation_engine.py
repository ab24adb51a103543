"""
Injection–Symptom Correlation Engine
====================================
Correlates logged injections with reported symptoms and produces the
top-level ``CorrelationInsights`` consumed by the insight generator, the
meal advisor and the HTTP layer.

Architecture (4 layers):
  Layer 0 — Linking:  pair every symptom with its relevant injection (most
            recent at-or-before, gap <= 7 days) into a pandas frame of
            (symptom, severity, day offset, site, dose).
  Layer 1 — Patterns:  recency/context weighting + PatternAnalyzer.
  Layer 2 — Secondary correlations:  peak symptom window, per-site symptom
            tallies, per-dose severity.
  Layer 3 — Recommendations + overall confidence score.

Insufficient data (< 2 injections or < 3 symptoms) short-circuits to an
empty result with confidence 0 and two canonical guidance strings.  The
engine never raises on well-formed input: the empty history is a valid
input with a valid output.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

import pandas as pd

from analytics.pattern_analyzer import PatternAnalyzer, round_half_up
from analytics.symptom_weighting import SymptomWeightCalculator, days_after, find_relevant_injection
from constants import CONTINUE_MONITORING, INJECTION_SITES, INSUFFICIENT_DATA_RECOMMENDATIONS
from models import (
    CorrelationInsights,
    DoseCorrelation,
    InjectionEvent,
    Pattern,
    PeakSymptomWindow,
    SiteCorrelation,
    SiteSymptomCount,
    SymptomLog,
)
from settings import DEFAULT_SETTINGS, AnalyticsSettings

log = logging.getLogger("correlation_engine")

LINK_COLUMNS = ["symptom", "severity", "day", "site", "dose"]


def insufficient_data_insights() -> CorrelationInsights:
    return CorrelationInsights(
        recommendations=list(INSUFFICIENT_DATA_RECOMMENDATIONS),
        confidence_score=0,
    )


def _day_phrase(day: int) -> str:
    return f"{day} day" if day == 1 else f"{day} days"


def _window_phrase(days: Sequence[int]) -> str:
    lo, hi = min(days), max(days)
    return f"day {lo}" if lo == hi else f"days {lo}-{hi}"


class CorrelationEngine:
    """Orchestrates all four layers of injection–symptom correlation."""

    def __init__(self, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self.weigher = SymptomWeightCalculator(settings)
        self.analyzer = PatternAnalyzer(settings)

    # ─── MAIN ENTRY ─────────────────────────────────────────

    def analyze(
        self,
        injections: Sequence[InjectionEvent],
        symptoms: Sequence[SymptomLog],
        now: datetime,
        patterns: Optional[List[Pattern]] = None,
    ) -> CorrelationInsights:
        """Run layers 0-3 on an immutable snapshot.

        Parameters
        ----------
        injections : newest first.
        symptoms : symptom logs inside the analysis window.
        now : reference time for recency decay.
        patterns : precomputed PatternAnalyzer output; computed here if None.
        """
        if self.is_insufficient(injections, symptoms):
            log.info(
                "Insufficient data for correlation (%d injections, %d symptoms)",
                len(injections), len(symptoms),
            )
            return insufficient_data_insights()

        if patterns is None:
            weighted = self.weigher.weigh_all(symptoms, injections, now)
            patterns = self.analyzer.analyze(weighted, injections)

        linked = self._layer0_link(injections, symptoms)
        peak = self._layer2_peak_window(linked)
        sites = self._layer2_site_correlations(linked)
        doses = self._layer2_dose_correlations(linked)
        recommendations = self._layer3_recommendations(patterns, peak, sites)
        score = self._layer3_confidence(injections, symptoms, patterns)

        log.info(
            "Correlation: %d patterns, %d sites, %d doses, confidence=%d",
            len(patterns), len(sites), len(doses), score,
        )
        return CorrelationInsights(
            patterns=patterns,
            peak_symptom_window=peak,
            site_correlations=sites,
            dose_correlations=doses,
            recommendations=recommendations,
            confidence_score=score,
        )

    def is_insufficient(self, injections: Sequence[InjectionEvent], symptoms: Sequence[SymptomLog]) -> bool:
        return len(injections) < self.settings.min_injections or len(symptoms) < self.settings.min_symptoms

    # ─── Layer 0: linking ───────────────────────────────────

    def _layer0_link(self, injections: Sequence[InjectionEvent], symptoms: Sequence[SymptomLog]) -> pd.DataFrame:
        rows = []
        for sym in symptoms:
            inj = find_relevant_injection(injections, sym.timestamp, self.settings.relevance_lookback_days)
            if inj is None:
                continue
            rows.append({
                "symptom": sym.symptom,
                "severity": sym.severity,
                "day": days_after(inj, sym.timestamp),
                "site": inj.site,
                "dose": inj.dose,
            })
        return pd.DataFrame(rows, columns=LINK_COLUMNS)

    # ─── Layer 2: secondary correlations ────────────────────

    def _layer2_peak_window(self, linked: pd.DataFrame) -> Optional[PeakSymptomWindow]:
        if linked.empty:
            return None

        # groupby sorts days ascending; a stable sort keeps the smaller day first on ties
        counts = linked.groupby("day").size().sort_values(ascending=False, kind="stable")
        days = [int(d) for d in counts.index[: self.settings.peak_window_size]]

        top = days[0]
        if top == 0:
            description = "Symptoms most commonly occur on injection day"
        elif top <= self.settings.peak_start_max_day:
            description = f"Peak symptom window is {_window_phrase(days)} after injection"
        else:
            description = f"Symptoms typically appear {_day_phrase(top)} post-injection"
        return PeakSymptomWindow(days=days, description=description)

    def _layer2_site_correlations(self, linked: pd.DataFrame) -> List[SiteCorrelation]:
        out: List[SiteCorrelation] = []
        if linked.empty:
            return out
        for site in linked["site"].unique():
            sub = linked[linked["site"] == site]
            counts = sub.groupby("symptom", sort=False).size().sort_values(ascending=False, kind="stable")
            out.append(
                SiteCorrelation(
                    site=str(site),
                    symptoms=[SiteSymptomCount(symptom=str(k), frequency=int(v)) for k, v in counts.items()],
                )
            )
        return out

    def _layer2_dose_correlations(self, linked: pd.DataFrame) -> List[DoseCorrelation]:
        out: List[DoseCorrelation] = []
        if linked.empty:
            return out
        for dose, sub in linked.groupby("dose", sort=True):
            out.append(
                DoseCorrelation(
                    dose=float(dose),
                    avg_symptom_severity=round_half_up(float(sub["severity"].mean()), 1),
                    common_symptoms=[str(s) for s in sub["symptom"].unique()[: self.settings.max_dose_symptoms]],
                )
            )
        return out

    # ─── Layer 3: recommendations + confidence ──────────────

    def _layer3_recommendations(
        self,
        patterns: Sequence[Pattern],
        peak: Optional[PeakSymptomWindow],
        sites: Sequence[SiteCorrelation],
    ) -> List[str]:
        s = self.settings
        recs: List[str] = []

        if peak is not None and peak.days and peak.days[0] <= s.peak_start_max_day:
            recs.append(
                f"Your symptoms typically peak {_window_phrase(peak.days)} after injection. "
                "Plan lighter activities during this window."
            )

        # only the top two patterns are eligible; a third high, severe pattern never reaches the provider
        for pattern in patterns[:2]:
            if pattern.confidence == "high" and pattern.avg_severity >= s.provider_severity_threshold:
                day = pattern.modal_day if pattern.modal_day is not None else 0
                recs.append(
                    f"{pattern.symptom} consistently occurs {_day_phrase(day)} post-injection. "
                    "Discuss symptom management strategies with your provider."
                )

        problem_sites = [
            site for site in sites
            if site.symptoms and site.symptoms[0].frequency > s.site_frequency_threshold
        ]
        if problem_sites:
            labels = ", ".join(INJECTION_SITES.get(site.site, site.site) for site in problem_sites)
            recs.append(
                f"Review your injection site rotation: symptoms cluster after injections in {labels}. "
                "Consider avoiding sites that correlate with higher symptom frequency."
            )

        if not recs:
            recs.append(CONTINUE_MONITORING)
        return recs

    def _layer3_confidence(
        self,
        injections: Sequence[InjectionEvent],
        symptoms: Sequence[SymptomLog],
        patterns: Sequence[Pattern],
    ) -> int:
        data_points = len(injections) + len(symptoms)
        high = sum(1 for p in patterns if p.confidence == "high")
        score = data_points * self.settings.data_point_weight + high * self.settings.high_pattern_bonus
        return int(min(100, score))
