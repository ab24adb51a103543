"""Per-user insight pipeline: snapshot the stores, analyse, degrade instead of raising."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from analytics.injection_schedule import days_since_last_injection, site_rotation_status
from analytics.pattern_analyzer import PatternAnalyzer
from analytics.symptom_weighting import SymptomWeightCalculator
from analytics.window_selector import AdaptiveWindowSelector
from constants import REASON_ANALYSIS_EXCEPTION, REASON_DATA_UNAVAILABLE, REASON_INSUFFICIENT_DATA
from correlation_engine import CorrelationEngine, insufficient_data_insights
from insight_generator import InsightGenerator
from meal_context import MealContextAdvisor
from models import (
    AdaptiveInsight,
    CorrelationInsights,
    InjectionEvent,
    MealContext,
    Pattern,
    SymptomLog,
    WeightedSymptomLog,
    ensure_utc,
    parse_injections,
    parse_symptom_logs,
)
from pipeline.summary_builder import build_concise_summary
from settings import DEFAULT_SETTINGS, AnalyticsSettings
from stores import InjectionStore, SymptomStore

log = logging.getLogger("insight_pipeline")


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Immutable input of one analysis run."""
    user_id: str
    now: datetime
    injections: Tuple[InjectionEvent, ...]
    symptoms: Tuple[SymptomLog, ...]
    window_days: int
    degraded_reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    snapshot: AnalysisSnapshot
    weighted: Tuple[WeightedSymptomLog, ...]
    patterns: Tuple[Pattern, ...]
    correlations: CorrelationInsights
    insights: Tuple[AdaptiveInsight, ...]
    degraded_reasons: Tuple[str, ...] = field(default=())

    @property
    def analysis_status(self) -> str:
        return "degraded" if self.degraded_reasons else "success"


class InsightPipeline:
    """Fetch both streams concurrently, then run a synchronous pure transform.

    The pipeline holds no per-user state: every call builds a fresh snapshot,
    so concurrent calls for any users are safe without locking.
    """

    def __init__(
        self,
        injection_store: InjectionStore,
        symptom_store: Optional[SymptomStore] = None,
        settings: AnalyticsSettings = DEFAULT_SETTINGS,
    ):
        self.injection_store = injection_store
        self.symptom_store = symptom_store if symptom_store is not None else injection_store
        self.settings = settings
        self.selector = AdaptiveWindowSelector(settings)
        self.weigher = SymptomWeightCalculator(settings)
        self.analyzer = PatternAnalyzer(settings)
        self.engine = CorrelationEngine(settings)
        self.generator = InsightGenerator(settings)
        self.advisor = MealContextAdvisor(settings)

    # ─── Snapshot ───────────────────────────────────────────

    def load_snapshot(self, user_id: str, now: Optional[datetime] = None) -> AnalysisSnapshot:
        """Read both streams (concurrently) and cut them to the adaptive window.

        Symptoms are fetched for the widest possible window so the two reads
        do not depend on each other; the adaptive window is applied locally.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))
        widest_since = now - timedelta(days=self.settings.widest_window_days)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="store-read") as pool:
            inj_future = pool.submit(self._fetch_injections, user_id)
            sym_future = pool.submit(self._fetch_symptoms, user_id, widest_since)
            injections, inj_ok = inj_future.result()
            symptoms, sym_ok = sym_future.result()

        reasons: List[str] = []
        if not (inj_ok and sym_ok):
            reasons.append(REASON_DATA_UNAVAILABLE)

        injections = [inj for inj in injections if inj.timestamp <= now]
        window_days = self.selector.select(injections)
        since = now - timedelta(days=window_days)
        in_window = [s for s in symptoms if since <= s.timestamp <= now]
        in_window = in_window[: self.settings.symptom_fetch_limit]

        log.info(
            "Snapshot for %s: %d injections, %d/%d symptoms in %d-day window",
            user_id, len(injections), len(in_window), len(symptoms), window_days,
        )
        return AnalysisSnapshot(
            user_id=user_id,
            now=now,
            injections=tuple(injections),
            symptoms=tuple(in_window),
            window_days=window_days,
            degraded_reasons=tuple(reasons),
        )

    def _fetch_injections(self, user_id: str) -> Tuple[List[InjectionEvent], bool]:
        try:
            return parse_injections(self.injection_store.get_injections(user_id)), True
        except Exception as e:
            log.warning("Injection store unavailable for %s: %s", user_id, e)
            return [], False

    def _fetch_symptoms(self, user_id: str, since: datetime) -> Tuple[List[SymptomLog], bool]:
        try:
            return parse_symptom_logs(self.symptom_store.get_symptom_logs(user_id, since)), True
        except Exception as e:
            log.warning("Symptom store unavailable for %s: %s", user_id, e)
            return [], False

    # ─── Analysis ───────────────────────────────────────────

    def analyze(self, snapshot: AnalysisSnapshot) -> AnalysisResult:
        """Pure transform of a snapshot into every derived output."""
        reasons = list(snapshot.degraded_reasons)
        injections, symptoms = list(snapshot.injections), list(snapshot.symptoms)

        try:
            weighted = self.weigher.weigh_all(symptoms, injections, snapshot.now)
            patterns = self.analyzer.analyze(weighted, injections)
            correlations = self.engine.analyze(injections, symptoms, snapshot.now, patterns=patterns)
            insights = self.generator.generate(weighted, patterns, injections, snapshot.now)
        except Exception as e:
            log.exception("Analysis failed for %s; returning placeholder output: %s", snapshot.user_id, e)
            reasons.append(REASON_ANALYSIS_EXCEPTION)
            weighted, patterns = [], []
            correlations = insufficient_data_insights()
            insights = [self.generator.placeholder(snapshot.now)]

        if self.engine.is_insufficient(injections, symptoms) and REASON_INSUFFICIENT_DATA not in reasons:
            reasons.append(REASON_INSUFFICIENT_DATA)

        return AnalysisResult(
            snapshot=snapshot,
            weighted=tuple(weighted),
            patterns=tuple(patterns),
            correlations=correlations,
            insights=tuple(insights),
            degraded_reasons=tuple(reasons),
        )

    def run_analysis(self, user_id: str, now: Optional[datetime] = None) -> AnalysisResult:
        return self.analyze(self.load_snapshot(user_id, now))

    # ─── Public queries ─────────────────────────────────────

    def correlation_insights(self, user_id: str, now: Optional[datetime] = None) -> CorrelationInsights:
        return self.run_analysis(user_id, now).correlations

    def adaptive_insights(self, user_id: str, now: Optional[datetime] = None) -> List[AdaptiveInsight]:
        return list(self.run_analysis(user_id, now).insights)

    def meal_context(
        self, user_id: str, meal_type: Optional[str] = None, now: Optional[datetime] = None
    ) -> MealContext:
        return self.meal_context_for(self.run_analysis(user_id, now), meal_type)

    def daily_risk_level(self, user_id: str, now: Optional[datetime] = None) -> str:
        return self.advisor.daily_risk_level(self.meal_context(user_id, now=now))

    def meal_context_for(self, result: AnalysisResult, meal_type: Optional[str] = None) -> MealContext:
        days_since = days_since_last_injection(result.snapshot.injections, result.snapshot.now)
        return self.advisor.build(days_since, result.correlations, meal_type)

    # ─── Full report ────────────────────────────────────────

    def run(self, user_id: str, meal_type: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Every output for one user as a JSON-ready dict with status metadata."""
        log.info("=" * 60)
        log.info("  INSIGHT RUN for %s", user_id)
        log.info("=" * 60)

        result = self.run_analysis(user_id, now)
        context = self.meal_context_for(result, meal_type)
        snapshot = result.snapshot

        report: Dict[str, Any] = {
            "user_id": user_id,
            "generated_at": snapshot.now.isoformat(),
            "analysis_window_days": snapshot.window_days,
            "injection_count": len(snapshot.injections),
            "symptom_count": len(snapshot.symptoms),
            "analysis_status": result.analysis_status,
            "degraded_reasons": list(result.degraded_reasons),
            "insights": [i.model_dump(mode="json") for i in result.insights],
            "correlations": result.correlations.model_dump(mode="json"),
            "meal_context": context.model_dump(mode="json"),
            "daily_risk_level": self.advisor.daily_risk_level(context),
            "sites": [
                s.model_dump(mode="json")
                for s in site_rotation_status(snapshot.injections, snapshot.now, self.settings)
            ],
            "summary": build_concise_summary(result.correlations),
        }

        if result.degraded_reasons:
            log.warning("Insight run degraded: %s", ", ".join(result.degraded_reasons))
        log.info("  INSIGHT RUN COMPLETE (status=%s, confidence=%d)",
                 result.analysis_status, result.correlations.confidence_score)
        return report
