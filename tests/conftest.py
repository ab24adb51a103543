"""
Shared test configuration.

Adds src/ to sys.path so flat modules (correlation_engine, meal_context,
stores, ...) and the analytics/pipeline/routes packages import with plain
`import module_name`, and provides factories for injection/symptom records.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from models import InjectionEvent, SymptomLog  # noqa: E402

# Newest injection in the shared weekly history
BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
ROTATION = ["abdomen-left", "abdomen-right", "thigh-left", "thigh-right", "arm-left"]


def injection(ts, dose=1.0, medication="ozempic", site="abdomen-left", id=None):
    return InjectionEvent(
        id=id or f"inj-{ts.isoformat()}",
        timestamp=ts,
        medication=medication,
        dose=dose,
        site=site,
    )


def symptom(ts, name="nausea", severity=7, id=None, meal_related=None):
    return SymptomLog(
        id=id or f"sym-{name}-{ts.isoformat()}",
        symptom=name,
        severity=severity,
        timestamp=ts,
        meal_related=meal_related,
    )


@pytest.fixture
def make_injection():
    return injection


@pytest.fixture
def make_symptom():
    return symptom


@pytest.fixture
def weekly_history():
    """Five weekly ozempic 1.0mg injections with severity-7 nausea the day after the last four.

    Returns (injections newest first, symptoms newest first, now).
    """
    injections = [
        injection(BASE - timedelta(days=7 * k), site=ROTATION[k], id=f"inj-{k}")
        for k in range(5)
    ]
    symptoms = [
        symptom(BASE - timedelta(days=7 * k) + timedelta(days=1), id=f"sym-{k}")
        for k in range(4)
    ]
    now = BASE + timedelta(days=1, hours=3)
    return injections, symptoms, now
