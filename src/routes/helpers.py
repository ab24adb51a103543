"""
Shared helpers for API routes.
Contains: pipeline construction, type coercion, payload builders.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

from models import ensure_utc
from pipeline.insight_pipeline import InsightPipeline
from pipeline.summary_builder import build_concise_summary
from settings import AnalyticsSettings
from stores import PostgresEventStore

log = logging.getLogger("api")


# ─── Pipeline ──────────────────────────────────────────────

@lru_cache(maxsize=1)
def _pipeline() -> InsightPipeline:
    settings = AnalyticsSettings.from_env()
    store = PostgresEventStore()
    if not store.conn_str:
        log.warning("No database configured; every analysis will degrade to placeholder output")
    return InsightPipeline(store, settings=settings)


# ─── Type coercion ──────────────────────────────────────────

def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _parse_now(value: Optional[str]) -> datetime:
    """ISO-8601 reference time from a query string, defaulting to the current time."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as e:
        raise ValueError(f"Invalid 'now' timestamp {value!r}; expected ISO-8601") from e


# ─── Payload builders ──────────────────────────────────────

def _insights_payload(user_id: str, insights: Iterable[BaseModel]) -> Dict[str, Any]:
    items = [_to_jsonable(i) for i in insights]
    return {"user_id": user_id, "insights": items, "count": len(items)}


def _summary_payload(user_id: str, correlations) -> Dict[str, Any]:
    summary = build_concise_summary(correlations)
    bullets: List[str] = [line[2:] for line in summary.splitlines() if line.startswith("- ")]
    return {
        "user_id": user_id,
        "summary": summary,
        "bullets": bullets,
        "confidence_score": correlations.confidence_score,
        "recommendations": list(correlations.recommendations),
    }
