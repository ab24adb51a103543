"""
Typed records for the injection/symptom analytics core.

Raw store rows (loosely-typed dicts) are validated once at the ingestion
boundary via ``parse_injections`` / ``parse_symptom_logs``; everything
downstream works on the frozen models defined here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from constants import INJECTION_SITES, MEDICATIONS

log = logging.getLogger("models")

Tier = Literal["high", "medium", "low"]
RiskLevel = Literal["low", "medium", "high", "unknown"]


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ─── Input records ─────────────────────────────────────────


class InjectionEvent(_Record):
    id: str
    timestamp: datetime
    medication: str
    dose: float = Field(gt=0)
    site: str
    notes: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("medication")
    @classmethod
    def _known_medication(cls, v: str) -> str:
        code = v.strip().lower()
        if code not in MEDICATIONS:
            raise ValueError(f"unknown medication {v!r}")
        return code

    @field_validator("site")
    @classmethod
    def _known_site(cls, v: str) -> str:
        code = v.strip().lower()
        if code not in INJECTION_SITES:
            raise ValueError(f"unknown injection site {v!r}")
        return code

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> str:
        return "" if v is None else str(v)


class SymptomLog(_Record):
    id: str
    symptom: str = Field(min_length=1)
    severity: int = Field(ge=1, le=10)
    timestamp: datetime
    meal_related: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("meal_related", "mealRelated")
    )
    notes: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("symptom")
    @classmethod
    def _normalize_symptom(cls, v: str) -> str:
        name = " ".join(v.strip().lower().split())
        if not name:
            raise ValueError("symptom must not be blank")
        return name

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> str:
        return "" if v is None else str(v)


# ─── Derived records ───────────────────────────────────────


class WeightedSymptomLog(_Record):
    entry: SymptomLog
    weight: float = Field(ge=0.0, le=1.0)
    contextual_relevance: float = Field(ge=0.0, le=1.0)

    @property
    def symptom(self) -> str:
        return self.entry.symptom

    @property
    def severity(self) -> int:
        return self.entry.severity

    @property
    def timestamp(self) -> datetime:
        return self.entry.timestamp


class Pattern(_Record):
    symptom: str
    avg_severity: float
    frequency: float
    days_after_injection: List[int]
    modal_day: Optional[int]
    occurrences: int
    confidence: Tier
    confidence_score: int = Field(ge=0, le=100)
    recency_score: float = Field(ge=0.0, le=100.0)
    consistency_score: float = Field(ge=0.0, le=100.0)
    relevance_score: float = Field(ge=0.0, le=100.0)
    description: str


class PeakSymptomWindow(_Record):
    days: List[int]
    description: str


class SiteSymptomCount(_Record):
    symptom: str
    frequency: int


class SiteCorrelation(_Record):
    site: str
    symptoms: List[SiteSymptomCount]


class DoseCorrelation(_Record):
    dose: float
    avg_symptom_severity: float
    common_symptoms: List[str]


class CorrelationInsights(_Record):
    patterns: List[Pattern] = Field(default_factory=list)
    peak_symptom_window: Optional[PeakSymptomWindow] = None
    site_correlations: List[SiteCorrelation] = Field(default_factory=list)
    dose_correlations: List[DoseCorrelation] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    confidence_score: int = Field(default=0, ge=0, le=100)


class AdaptiveInsight(_Record):
    pattern: str
    symptom: Optional[str] = None
    confidence: int = Field(ge=0, le=100)
    recency_score: float = Field(ge=0.0, le=100.0)
    relevance_score: float = Field(ge=0.0, le=100.0)
    actionability: Tier
    valid_until: datetime


class MealContextWarning(_Record):
    type: Literal["caution", "tip", "timing"]
    message: str
    severity: Tier


class MealContext(_Record):
    days_since_injection: int
    is_injection_day: bool
    is_peak_symptom_window: bool
    warnings: List[MealContextWarning] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    confidence: int = Field(default=0, ge=0, le=100)


class SiteStatus(_Record):
    site: str
    label: str
    last_used: Optional[datetime] = None
    is_available: bool = True


# ─── Ingestion boundary ────────────────────────────────────


def parse_injections(records: Iterable[Any]) -> List[InjectionEvent]:
    """Validate raw injection rows and return them newest first.

    Malformed rows are skipped with a warning rather than raised.
    """
    out: List[InjectionEvent] = []
    for raw in records or ():
        if isinstance(raw, InjectionEvent):
            out.append(raw)
            continue
        try:
            out.append(InjectionEvent.model_validate(raw))
        except ValidationError as e:
            log.warning("Skipping malformed injection %r: %s", _record_id(raw), e.errors()[0].get("msg"))
    out.sort(key=lambda inj: inj.timestamp, reverse=True)
    return out


def parse_symptom_logs(records: Iterable[Any]) -> List[SymptomLog]:
    """Validate raw symptom rows and return them newest first."""
    out: List[SymptomLog] = []
    for raw in records or ():
        if isinstance(raw, SymptomLog):
            out.append(raw)
            continue
        try:
            out.append(SymptomLog.model_validate(raw))
        except ValidationError as e:
            log.warning("Skipping malformed symptom log %r: %s", _record_id(raw), e.errors()[0].get("msg"))
    out.sort(key=lambda s: s.timestamp, reverse=True)
    return out


def _record_id(raw: Any) -> Any:
    if isinstance(raw, dict):
        return raw.get("id")
    return getattr(raw, "id", None)
