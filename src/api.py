"""
FastAPI read-only surface for injection–symptom insights.

Route handlers are defined here; shared utilities live in routes/helpers.py.
Analysis never fails a request: missing or unreadable data yields 200 with
placeholder/low-confidence payloads.  Only unexpected errors map to 500.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from analytics.injection_schedule import is_injection_due, site_rotation_status, site_rotation_warnings
from constants import MEAL_TYPES
from models import ensure_utc
from pipeline.insight_pipeline import InsightPipeline
from routes.helpers import (
    _insights_payload,
    _parse_now,
    _pipeline,
    _summary_payload,
    _to_jsonable,
)
from settings import AnalyticsSettings
from stores import InMemoryEventStore

log = logging.getLogger("api")

ADHOC_USER = "adhoc"


# ─── App setup ─────────────────────────────────────────────

app = FastAPI(title="Injection Insights API", version="1.0.0")

_origin_env = os.getenv("FRONTEND_ORIGINS", "")
_origins = [o.strip() for o in _origin_env.split(",") if o.strip()] or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


class AnalyzeRequest(BaseModel):
    injections: List[Dict[str, Any]] = Field(default_factory=list)
    symptoms: List[Dict[str, Any]] = Field(default_factory=list)
    now: Optional[datetime] = None
    meal_type: Optional[str] = None


def _meal_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    meal = value.strip().lower()
    if meal not in MEAL_TYPES:
        raise HTTPException(status_code=422, detail=f"meal_type must be one of {', '.join(MEAL_TYPES)}")
    return meal


def _now(value: Optional[str]) -> datetime:
    try:
        return _parse_now(value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ─── Routes ────────────────────────────────────────────────

@app.get("/")
def root() -> Dict[str, Any]:
    return {"service": "injection-insights-api", "status": "ok"}


@app.get("/health-check")
def health_check() -> Dict[str, Any]:
    pipeline = _pipeline()
    return {"status": "Online", "window_bounds_days": [pipeline.settings.min_window_days,
                                                        pipeline.settings.max_window_days]}


@app.get("/api/v1/users/{user_id}/insights")
def user_insights(user_id: str, now: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    ref = _now(now)
    try:
        return _insights_payload(user_id, _pipeline().adaptive_insights(user_id, ref))
    except Exception as e:
        log.exception("insights failed for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/users/{user_id}/correlations")
def user_correlations(user_id: str, now: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    ref = _now(now)
    try:
        return _to_jsonable(_pipeline().correlation_insights(user_id, ref))
    except Exception as e:
        log.exception("correlations failed for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/users/{user_id}/meal-context")
def user_meal_context(
    user_id: str,
    meal_type: Optional[str] = Query(default=None),
    now: Optional[str] = Query(default=None),
) -> Dict[str, Any]:
    meal = _meal_type(meal_type)
    ref = _now(now)
    try:
        pipeline = _pipeline()
        result = pipeline.run_analysis(user_id, ref)
        context = pipeline.meal_context_for(result, meal)
        out = _to_jsonable(context)
        out["daily_risk_level"] = pipeline.advisor.daily_risk_level(context)
        out["injection_due"] = is_injection_due(result.snapshot.injections, result.snapshot.now)
        return out
    except Exception as e:
        log.exception("meal context failed for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/users/{user_id}/risk")
def user_risk(user_id: str, now: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    ref = _now(now)
    try:
        return {"user_id": user_id, "daily_risk_level": _pipeline().daily_risk_level(user_id, ref)}
    except Exception as e:
        log.exception("risk failed for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/users/{user_id}/summary")
def user_summary(user_id: str, now: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    ref = _now(now)
    try:
        return _summary_payload(user_id, _pipeline().correlation_insights(user_id, ref))
    except Exception as e:
        log.exception("summary failed for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/users/{user_id}/sites")
def user_sites(user_id: str, now: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    ref = _now(now)
    try:
        pipeline = _pipeline()
        snapshot = pipeline.load_snapshot(user_id, ref)
        resting = site_rotation_warnings(snapshot.injections, snapshot.now, pipeline.settings)
        return {
            "user_id": user_id,
            "sites": _to_jsonable(site_rotation_status(snapshot.injections, snapshot.now, pipeline.settings)),
            "rotation_warnings": [s.site for s in resting],
        }
    except Exception as e:
        log.exception("sites failed for %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/v1/analyze")
def analyze_snapshot(req: AnalyzeRequest) -> Dict[str, Any]:
    """Stateless analysis of a caller-supplied snapshot (nothing is stored)."""
    meal = _meal_type(req.meal_type)
    try:
        store = InMemoryEventStore(
            injections={ADHOC_USER: req.injections},
            symptoms={ADHOC_USER: req.symptoms},
        )
        pipeline = InsightPipeline(store, settings=AnalyticsSettings.from_env())
        now = ensure_utc(req.now) if req.now else None
        return pipeline.run(ADHOC_USER, meal_type=meal, now=now)
    except Exception as e:
        log.exception("ad-hoc analysis failed")
        raise HTTPException(status_code=500, detail=str(e))
