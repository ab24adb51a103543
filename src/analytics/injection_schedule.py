"""Injection timing helpers: days since last dose, due check, site rotation."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Sequence

from analytics.window_selector import is_daily_medication
from constants import INJECTION_SITES
from models import InjectionEvent, SiteStatus, ensure_utc
from settings import DEFAULT_SETTINGS, AnalyticsSettings


def days_since_last_injection(injections: Sequence[InjectionEvent], now: datetime) -> int:
    """Whole days since the newest injection, or -1 when none is logged."""
    if not injections:
        return -1
    delta = abs(ensure_utc(now) - injections[0].timestamp)
    return delta.days


def is_injection_due(injections: Sequence[InjectionEvent], now: datetime) -> bool:
    """Daily medications are due after 24h, weekly ones after 7 days."""
    if not injections:
        return True
    last = injections[0]
    elapsed = ensure_utc(now) - last.timestamp
    if is_daily_medication(last.medication):
        return elapsed >= timedelta(hours=24)
    return elapsed >= timedelta(days=7)


def site_rotation_status(
    injections: Sequence[InjectionEvent],
    now: datetime,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> List[SiteStatus]:
    """Last use of every body site and whether it has rested long enough."""
    now = ensure_utc(now)
    out: List[SiteStatus] = []
    for site, label in INJECTION_SITES.items():
        last = next((inj for inj in injections if inj.site == site), None)
        if last is None:
            out.append(SiteStatus(site=site, label=label))
            continue
        rested_days = (now - last.timestamp).days
        out.append(
            SiteStatus(
                site=site,
                label=label,
                last_used=last.timestamp,
                is_available=rested_days >= settings.site_rotation_days,
            )
        )
    return out


def site_rotation_warnings(
    injections: Sequence[InjectionEvent],
    now: datetime,
    settings: AnalyticsSettings = DEFAULT_SETTINGS,
) -> List[SiteStatus]:
    return [s for s in site_rotation_status(injections, now, settings) if not s.is_available]
