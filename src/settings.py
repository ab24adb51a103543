"""
Analytics settings loaded from .env
====================================
Every empirically-chosen constant of the analytics core lives here so it
can be tuned per deployment without touching the algorithms.

Override any field with an environment variable named
``INSIGHTS_<FIELD_NAME_UPPER>`` (e.g. ``INSIGHTS_RECENCY_DECAY_DAYS=28``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from dotenv import load_dotenv

log = logging.getLogger("settings")

ENV_PREFIX = "INSIGHTS_"

VARIANCE_METHODS = ("resample", "weighted")


@dataclass(frozen=True)
class AnalyticsSettings:
    # Symptom weighting
    recency_decay_days: float = 21.0
    relevance_lookback_days: int = 7
    same_medication_factor: float = 1.0
    other_medication_factor: float = 0.3
    min_dose_relevance: float = 0.2
    no_context_factor: float = 0.5
    severe_threshold: int = 7
    moderate_threshold: int = 5
    severe_bonus: float = 1.2
    moderate_bonus: float = 1.0
    mild_bonus: float = 0.8
    noise_weight_floor: float = 0.1

    # Pattern analysis
    min_group_size: int = 2
    min_pattern_confidence: int = 25
    resample_factor: int = 5
    variance_penalty: float = 20.0
    recency_score_scale: float = 25.0
    variance_method: str = "resample"
    high_tier_occurrences: int = 4
    medium_tier_occurrences: int = 3

    # Adaptive window (days)
    default_window_days: int = 60
    dose_change_window_daily: int = 21
    dose_change_window_weekly: int = 35
    new_user_window_daily: int = 45
    new_user_window_weekly: int = 75
    established_window_daily: int = 35
    established_window_weekly: int = 60
    min_window_days: int = 14
    max_window_days: int = 75
    dose_change_lookback: int = 4
    new_user_injection_count: int = 4

    # Correlation engine
    min_injections: int = 2
    min_symptoms: int = 3
    peak_window_size: int = 2
    peak_start_max_day: int = 2
    provider_severity_threshold: float = 6.0
    site_frequency_threshold: int = 2
    max_dose_symptoms: int = 3
    data_point_weight: int = 2
    high_pattern_bonus: int = 15

    # Insight generation
    max_insights: int = 5
    insight_base_days: float = 14.0
    placeholder_days: float = 7.0

    # Meal context
    max_warnings: int = 3
    max_tips: int = 2
    peak_caution_min_confidence: int = 40
    reinforcement_min_confidence: int = 60
    risk_min_confidence: int = 30

    # Stores / schedule
    symptom_fetch_limit: int = 150
    site_rotation_days: int = 14

    def __post_init__(self):
        if self.variance_method not in VARIANCE_METHODS:
            raise ValueError(
                f"variance_method must be one of {VARIANCE_METHODS}, got {self.variance_method!r}"
            )
        if self.min_window_days > self.max_window_days:
            raise ValueError("min_window_days must not exceed max_window_days")

    @property
    def widest_window_days(self) -> int:
        """Upper bound on how far back any analysis can look."""
        return self.max_window_days

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "AnalyticsSettings":
        """Build settings from defaults overridden by INSIGHTS_* variables."""
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        defaults = cls()
        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or not str(raw).strip():
                continue
            current = getattr(defaults, f.name)
            try:
                overrides[f.name] = _coerce(raw, current)
            except ValueError:
                log.warning("Ignoring %s%s=%r (expected %s)",
                            ENV_PREFIX, f.name.upper(), raw, type(current).__name__)

        try:
            return replace(defaults, **overrides)
        except ValueError as e:
            log.warning("Invalid analytics settings from env (%s); using defaults", e)
            return defaults


def _coerce(raw: str, current: Any) -> Any:
    text = str(raw).strip()
    if isinstance(current, bool):
        return text.lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(text)
    if isinstance(current, float):
        return float(text)
    return text


DEFAULT_SETTINGS = AnalyticsSettings()
