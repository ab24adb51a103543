"""
Tests for the injection–symptom correlation engine.

Covers: insufficient-data guard, linking, peak window, site and dose
correlations, recommendations, confidence score, determinism.
"""
from datetime import timedelta

import pytest

from conftest import BASE, injection, symptom
from constants import CONTINUE_MONITORING, INSUFFICIENT_DATA_RECOMMENDATIONS
from correlation_engine import CorrelationEngine, insufficient_data_insights
from models import Pattern


def _pattern(symptom_name, confidence="high", avg_severity=7.0, modal_day=1, score=80):
    return Pattern(
        symptom=symptom_name,
        avg_severity=avg_severity,
        frequency=0.8,
        days_after_injection=[modal_day] * 4 if modal_day is not None else [],
        modal_day=modal_day,
        occurrences=4,
        confidence=confidence,
        confidence_score=score,
        recency_score=70.0,
        consistency_score=100.0,
        relevance_score=100.0,
        description=f"{symptom_name} pattern",
    )


def _linked_history(offsets, site="abdomen-left", dose=1.0, name="nausea"):
    """One weekly injection per offset, with a symptom ``offset`` days after it."""
    sites = site if isinstance(site, list) else [site] * len(offsets)
    injections, symptoms = [], []
    for k, off in enumerate(offsets):
        t = BASE - timedelta(days=7 * k)
        injections.append(injection(t, dose=dose, site=sites[k], id=f"inj-{k}"))
        symptoms.append(symptom(t + timedelta(days=off, hours=2), name=name, id=f"sym-{k}"))
    return injections, symptoms


# ─── Insufficient data ──────────────────────────────────────


class TestInsufficientData:

    def test_no_injections(self):
        syms = [symptom(BASE - timedelta(hours=h), id=f"s{h}") for h in range(5)]
        out = CorrelationEngine().analyze([], syms, BASE)
        assert out.confidence_score == 0
        assert out.recommendations == list(INSUFFICIENT_DATA_RECOMMENDATIONS)
        assert out.patterns == []
        assert out.peak_symptom_window is None

    def test_too_few_symptoms(self):
        inj = [injection(BASE), injection(BASE - timedelta(days=7))]
        syms = [symptom(BASE + timedelta(days=1)), symptom(BASE + timedelta(days=2))]
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=3))
        assert out == insufficient_data_insights()

    def test_single_injection(self):
        inj = [injection(BASE)]
        syms = [symptom(BASE + timedelta(hours=h), id=f"s{h}") for h in range(1, 5)]
        assert CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=1)).confidence_score == 0

    def test_canonical_guidance_text(self):
        recs = insufficient_data_insights().recommendations
        assert recs[0] == (
            "Continue logging injections and symptoms for at least 2-3 weeks to identify patterns."
        )
        assert recs[1] == (
            "Consistent tracking will unlock personalized insights about your medication response."
        )


# ─── Scenario ───────────────────────────────────────────────


class TestRecurringNausea:

    def test_full_insights(self, weekly_history):
        injections, symptoms, now = weekly_history
        out = CorrelationEngine().analyze(injections, symptoms, now)

        assert [p.symptom for p in out.patterns] == ["nausea"]
        assert out.peak_symptom_window.days == [1]
        assert out.peak_symptom_window.description == "Peak symptom window is day 1 after injection"
        assert out.confidence_score == (5 + 4) * 2 + 15
        assert out.recommendations == [
            "Your symptoms typically peak day 1 after injection. Plan lighter activities during this window.",
            "nausea consistently occurs 1 day post-injection. "
            "Discuss symptom management strategies with your provider.",
        ]

    def test_rotated_sites_each_counted_once(self, weekly_history):
        injections, symptoms, now = weekly_history
        out = CorrelationEngine().analyze(injections, symptoms, now)
        assert {s.site for s in out.site_correlations} == {
            "abdomen-left", "abdomen-right", "thigh-left", "thigh-right",
        }
        assert all(s.symptoms[0].frequency == 1 for s in out.site_correlations)

    def test_single_dose_correlation(self, weekly_history):
        injections, symptoms, now = weekly_history
        out = CorrelationEngine().analyze(injections, symptoms, now)
        assert len(out.dose_correlations) == 1
        dc = out.dose_correlations[0]
        assert dc.dose == 1.0
        assert dc.avg_symptom_severity == 7.0
        assert dc.common_symptoms == ["nausea"]

    def test_deterministic(self, weekly_history):
        injections, symptoms, now = weekly_history
        engine = CorrelationEngine()
        assert engine.analyze(injections, symptoms, now) == engine.analyze(injections, symptoms, now)


# ─── Peak window ────────────────────────────────────────────


class TestPeakWindow:

    def test_injection_day(self):
        inj, syms = _linked_history([0, 0, 0])
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=1))
        assert out.peak_symptom_window.days == [0]
        assert out.peak_symptom_window.description == "Symptoms most commonly occur on injection day"

    def test_late_peak_has_no_peak_recommendation(self):
        inj, syms = _linked_history([4, 4, 4])
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=5))
        assert out.peak_symptom_window.days == [4]
        assert out.peak_symptom_window.description == "Symptoms typically appear 4 days post-injection"
        assert not any("typically peak" in r for r in out.recommendations)

    def test_two_most_frequent_days_ties_to_smaller(self):
        inj, syms = _linked_history([3, 1, 3, 1, 2])
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=4))
        assert out.peak_symptom_window.days == [1, 3]
        assert out.peak_symptom_window.description == "Peak symptom window is days 1-3 after injection"

    def test_unlinked_symptoms_have_no_peak(self):
        inj = [injection(BASE - timedelta(days=20)), injection(BASE - timedelta(days=27))]
        syms = [symptom(BASE - timedelta(hours=h), severity=5, id=f"s{h}") for h in (1, 2, 3)]
        out = CorrelationEngine().analyze(inj, syms, BASE)
        assert out.peak_symptom_window is None
        assert out.site_correlations == []
        assert out.dose_correlations == []
        assert out.recommendations == [CONTINUE_MONITORING]
        assert out.confidence_score == 10


# ─── Site and dose ──────────────────────────────────────────


class TestSiteAndDose:

    def test_site_recommendation_when_one_site_dominates(self):
        inj, syms = _linked_history([1, 1, 1], site="thigh-right")
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=2))
        assert out.site_correlations[0].site == "thigh-right"
        assert out.site_correlations[0].symptoms[0].frequency == 3
        assert any("Right Thigh" in r and "rotation" in r for r in out.recommendations)

    def test_site_symptoms_sorted_by_frequency(self):
        inj = [injection(BASE, id="i0"), injection(BASE - timedelta(days=7), id="i1")]
        syms = [
            symptom(BASE + timedelta(days=1), name="fatigue", id="a"),
            symptom(BASE + timedelta(days=2), name="nausea", id="b"),
            symptom(BASE + timedelta(days=3), name="nausea", id="c"),
        ]
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=4))
        counts = out.site_correlations[0].symptoms
        assert [(c.symptom, c.frequency) for c in counts] == [("nausea", 2), ("fatigue", 1)]

    def test_dose_groups_sorted_with_mean_severity(self):
        inj = [
            injection(BASE, dose=1.0, id="hi"),
            injection(BASE - timedelta(days=7), dose=0.5, id="lo"),
        ]
        syms = [
            symptom(BASE + timedelta(days=1), severity=8, id="a"),
            symptom(BASE + timedelta(days=2), name="headache", severity=5, id="b"),
            symptom(BASE - timedelta(days=6), severity=3, id="c"),
            symptom(BASE - timedelta(days=5), name="fatigue", severity=4, id="d"),
        ]
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=3))
        assert [d.dose for d in out.dose_correlations] == [0.5, 1.0]
        low, high = out.dose_correlations
        assert low.avg_symptom_severity == 3.5
        assert high.avg_symptom_severity == 6.5
        assert sorted(high.common_symptoms) == ["headache", "nausea"]

    def test_common_symptoms_capped_at_three(self):
        inj = [injection(BASE, id="i0"), injection(BASE - timedelta(days=7), id="i1")]
        names = ["nausea", "fatigue", "headache", "bloating"]
        syms = [symptom(BASE + timedelta(hours=6 * (i + 1)), name=n, id=n) for i, n in enumerate(names)]
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=2))
        assert len(out.dose_correlations[0].common_symptoms) == 3


# ─── Recommendations and confidence ─────────────────────────


class TestRecommendations:

    def setup_method(self):
        self.inj, self.syms = _linked_history([4, 5, 6], site=["arm-left", "arm-right", "thigh-left"])
        self.now = BASE + timedelta(days=7)

    def test_provider_recommendation_only_for_top_two(self):
        patterns = [
            _pattern("nausea", score=90),
            _pattern("fatigue", confidence="medium", score=85),
            _pattern("heartburn", score=80),
        ]
        out = CorrelationEngine().analyze(self.inj, self.syms, self.now, patterns=patterns)
        provider = [r for r in out.recommendations if "provider" in r]
        assert len(provider) == 1
        assert provider[0].startswith("nausea consistently occurs 1 day post-injection")

    def test_third_severe_pattern_not_escalated(self):
        patterns = [
            _pattern("nausea", score=95),
            _pattern("headache", score=90),
            _pattern("heartburn", avg_severity=9.0, score=85),
        ]
        out = CorrelationEngine().analyze(self.inj, self.syms, self.now, patterns=patterns)
        provider = [r for r in out.recommendations if "provider" in r]
        assert len(provider) == 2
        assert not any(r.startswith("heartburn") for r in provider)

    def test_mild_high_pattern_not_escalated(self):
        patterns = [_pattern("nausea", avg_severity=5.9)]
        out = CorrelationEngine().analyze(self.inj, self.syms, self.now, patterns=patterns)
        assert not any("provider" in r for r in out.recommendations)

    def test_plural_day_phrase(self):
        patterns = [_pattern("headache", modal_day=3)]
        out = CorrelationEngine().analyze(self.inj, self.syms, self.now, patterns=patterns)
        assert any(r.startswith("headache consistently occurs 3 days post-injection") for r in out.recommendations)

    def test_default_recommendation(self):
        out = CorrelationEngine().analyze(self.inj, self.syms, self.now, patterns=[])
        assert out.recommendations == [CONTINUE_MONITORING]


class TestConfidence:

    def test_counts_data_points_and_high_patterns(self):
        inj, syms = _linked_history([4, 5, 6])
        patterns = [_pattern("nausea"), _pattern("fatigue"), _pattern("bloating", confidence="medium")]
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=7), patterns=patterns)
        assert out.confidence_score == (3 + 3) * 2 + 2 * 15

    def test_capped_at_100(self):
        inj, syms = _linked_history([1] * 30)
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=2))
        assert out.confidence_score == 100

    @pytest.mark.parametrize("n", [2, 3, 5, 8])
    def test_bounded(self, n):
        inj, syms = _linked_history([1] * n)
        out = CorrelationEngine().analyze(inj, syms, BASE + timedelta(days=2))
        assert 0 <= out.confidence_score <= 100
