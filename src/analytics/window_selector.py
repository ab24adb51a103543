"""Adaptive analysis-window selection from dosing cadence and dose changes."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from constants import DAILY_MEDICATIONS
from models import InjectionEvent
from settings import DEFAULT_SETTINGS, AnalyticsSettings

log = logging.getLogger("analytics.window_selector")


def is_daily_medication(medication: Optional[str]) -> bool:
    return (medication or "").lower() in DAILY_MEDICATIONS


def has_recent_dose_change(
    injections: Sequence[InjectionEvent],
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> bool:
    """True when any of the last N injections differs from the newest dose.

    ``injections`` must be ordered newest first.
    """
    if not injections:
        return False
    recent = injections[: settings.dose_change_lookback]
    current = recent[0].dose
    return any(inj.dose != current for inj in recent)


class AdaptiveWindowSelector:
    """Decide how many days of symptom history are analytically relevant.

    Window table (daily / weekly medication):
      dose change in last 4 injections  -> 21 / 35  (focus on new regimen)
      fewer than 4 injections (new user) -> 45 / 75  (widen to find patterns)
      established and stable             -> 35 / 60
      no injections at all               -> 60
    The result is clamped to [min_window_days, max_window_days].
    """

    def __init__(self, settings: AnalyticsSettings = DEFAULT_SETTINGS):
        self.settings = settings

    def select(self, injections: Sequence[InjectionEvent]) -> int:
        s = self.settings
        if not injections:
            return self._clamp(s.default_window_days)

        daily = is_daily_medication(injections[0].medication)

        if has_recent_dose_change(injections, s):
            days = s.dose_change_window_daily if daily else s.dose_change_window_weekly
            reason = "dose change"
        elif len(injections) < s.new_user_injection_count:
            days = s.new_user_window_daily if daily else s.new_user_window_weekly
            reason = "new user"
        else:
            days = s.established_window_daily if daily else s.established_window_weekly
            reason = "established"

        log.debug("Analysis window %d days (%s, %s cadence)", days, reason, "daily" if daily else "weekly")
        return self._clamp(days)

    def _clamp(self, days: int) -> int:
        return max(self.settings.min_window_days, min(self.settings.max_window_days, int(days)))
